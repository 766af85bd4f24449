# src/vectorio/__init__.py
#
# Copyright (c) The vectorio project contributors
# This software is distributed under the Apache-2.0 license.
# See the NOTICE file for more information

"""
vectorio loads vector data (Shapefile, zipped Shapefile, GeoPackage, GeoJSON)
into one in-memory FeatureCollection, optionally filtered by an attribute
query and a spatial filter at load time, and saves it back to any supported format.
"""

# Errors
from .errors import (
    VectorIOError,
    UnknownFormat,
    FileNotFound,
    LayerNotFound,
    LayerAmbiguous,
    MalformedQuery,
    TargetExists,
    UnsupportedDriver,
    SchemaIncompatible,
    InvalidStageOrder
)

# Format registry
from .registry import (
    DriverDescriptor,
    FormatRegistry,
    REGISTRY,
    resolve_driver
)

# Data model
from .layer import (
    Feature,
    FeatureCollection,
    BoundingBox
)

# Attribute queries
from .query import (
    AttributeQuery,
    parse_query,
    apply_query
)

# Virtual paths
from .vsi import (
    Stage,
    compose,
    split,
    is_virtual
)

# Backends
from .backend import (
    VectorBackend,
    PyogrioBackend,
    get_backend,
    set_backend
)

# I/O
from .options import (
    ReadOptions,
    WriteOptions
)

from .io import (
    read,
    write,
    list_layers,
    read_info,
    resolve_collection
)

__all__ = [
    # Errors
    "VectorIOError",
    "UnknownFormat",
    "FileNotFound",
    "LayerNotFound",
    "LayerAmbiguous",
    "MalformedQuery",
    "TargetExists",
    "UnsupportedDriver",
    "SchemaIncompatible",
    "InvalidStageOrder",

    # Registry
    "DriverDescriptor",
    "FormatRegistry",
    "REGISTRY",
    "resolve_driver",

    # Data model
    "Feature",
    "FeatureCollection",
    "BoundingBox",

    # Queries
    "AttributeQuery",
    "parse_query",
    "apply_query",

    # Virtual paths
    "Stage",
    "compose",
    "split",
    "is_virtual",

    # Backends
    "VectorBackend",
    "PyogrioBackend",
    "get_backend",
    "set_backend",

    # I/O
    "ReadOptions",
    "WriteOptions",
    "read",
    "write",
    "list_layers",
    "read_info",
    "resolve_collection"
]
