# src/vectorio/io.py

"""
This module provides functions for reading and writing vector data (points, lines, polygons)
in any registered format, with optional attribute and spatial filtering at load time.
"""

import datetime
import logging
import os
import shutil
import tempfile
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import geopandas as gpd
import pandas as pd
from pandas.api import types as ptypes
from pyproj import CRS
from shapely import wkt as shapely_wkt
from shapely.errors import ShapelyError
from shapely.geometry.base import BaseGeometry

from .backend import VectorBackend, get_backend
from .errors import (
    FileNotFound,
    LayerAmbiguous,
    LayerNotFound,
    MalformedQuery,
    SchemaIncompatible,
    TargetExists,
    UnsupportedDriver,
    VectorIOError
)
from .layer import BoundingBox, FeatureCollection
from .options import ReadOptions, WriteOptions
from .query import AttributeQuery, apply_query, parse_query
from .registry import DriverDescriptor, resolve_driver
from .vsi import is_virtual

log = logging.getLogger(__name__)

__all__ = [
    "read",
    "write",
    "list_layers",
    "read_info",
    "resolve_collection"
]

PathLike = Union[str, Path]

GEOMETRY_FAMILIES = {
    "Point": "point",
    "MultiPoint": "point",
    "LineString": "line",
    "LinearRing": "line",
    "MultiLineString": "line",
    "Polygon": "polygon",
    "MultiPolygon": "polygon",
    "GeometryCollection": "collection"
}

def _as_path_string(path: PathLike) -> str:
    # Path() would collapse the '//' of chained virtual prefixes
    return path if isinstance(path, str) else str(path)

def _ensure_readable(path: str, desc: DriverDescriptor):
    if not desc.can_read:
        raise UnsupportedDriver(f"Driver '{desc.name}' cannot read", path=path, driver=desc.name)
    if not is_virtual(path) and not Path(path).exists():
        raise FileNotFound(f"Vector file not found: {path}", path=path)

def list_layers(
    path: PathLike,
    driver: Optional[str] = None,
    backend: Optional[VectorBackend] = None
) -> List[Tuple[str, Optional[str]]]:
    """
    Lists the layers of a dataset.

    Returns:
        List of (layer name, geometry type) in dataset order.
    """
    path = _as_path_string(path)
    _ensure_readable(path, resolve_driver(path, driver))
    return (backend or get_backend()).list_layers(path)

def read_info(
    path: PathLike,
    layer: Optional[str] = None,
    driver: Optional[str] = None,
    backend: Optional[VectorBackend] = None
) -> Dict[str, Any]:
    """
    Inspects one layer without materializing its features.

    Args:
        path: Local, remote or virtual path.
        layer: Layer to inspect. Same disambiguation rules as `read`.
        driver: Optional explicit driver.
        backend: Optional backend; defaults to the process backend.

    Returns:
        Dict with crs, fields, dtypes, geometry_type, features, driver, layer,
        plus the resolved format key and its capability flags.
    """
    path = _as_path_string(path)
    desc = resolve_driver(path, driver)
    _ensure_readable(path, desc)
    backend = backend or get_backend()

    layer = _select_layer(backend, path, desc, layer, None)
    info = dict(backend.read_info(path, layer))
    info.update({
        "layer": layer,
        "format": desc.key,
        "multi_layer": desc.multi_layer,
        "sql_pushdown": desc.sql_pushdown,
        "spatial_pushdown": desc.spatial_pushdown
    })
    return info

def _match_layer(requested: str, layers: List[str], path: str) -> Optional[str]:
    """Exact name first, then a case-insensitive match as OGR does."""
    if requested in layers:
        return requested

    candidates = [name for name in layers if name.lower() == requested.lower()]
    if len(candidates) > 1:
        raise LayerAmbiguous(
            f"Layer '{requested}' matches {candidates} in {path} when case is ignored",
            path=path,
            layers=candidates
        )
    return candidates[0] if candidates else None

def _select_layer(
    backend: VectorBackend,
    path: str,
    desc: DriverDescriptor,
    requested: Optional[str],
    query: Optional[AttributeQuery]
) -> str:
    if query is not None:
        if requested is not None and requested.lower() != query.layer.lower():
            raise MalformedQuery(
                f"Query reads from '{query.layer}' but layer '{requested}' was requested",
                path=path,
                layer=requested
            )
        requested = query.layer

    layers = [name for name, _ in backend.list_layers(path)]

    if requested is not None:
        match = _match_layer(requested, layers, path)
        if match is not None:
            return match

        if not desc.multi_layer and len(layers) == 1:
            log.warning(
                f"{desc.name} holds a single layer; ignoring layer '{requested}' "
                f"and reading '{layers[0]}' from {path}"
            )
            return layers[0]

        raise LayerNotFound(
            f"Layer '{requested}' not found in {path}. Available layers: {layers}",
            path=path,
            layer=requested
        )

    if not layers:
        raise LayerNotFound(f"No layers found in {path}", path=path)

    if len(layers) > 1:
        raise LayerAmbiguous(
            f"{path} contains {len(layers)} layers {layers}; name one with `layer`",
            path=path,
            layers=layers
        )

    return layers[0]

def _spatial_mask(options: ReadOptions, layer_crs: Any) -> Optional[BaseGeometry]:
    """Normalizes the spatial filter to a shapely geometry in the layer CRS."""
    spatial = options.spatial_filter
    if spatial is None:
        return None

    crs = options.filter_crs
    if isinstance(spatial, BoundingBox):
        crs = crs if crs is not None else spatial.crs
        geom = spatial.to_polygon()
    elif isinstance(spatial, str):
        try:
            geom = shapely_wkt.loads(spatial)
        except (ShapelyError, ValueError) as e:
            raise ValueError(f"Invalid spatial filter WKT {spatial!r}: {e}") from e
    elif isinstance(spatial, BaseGeometry):
        geom = spatial
    else:
        raise TypeError(f"Expected shapely geometry, WKT string or BoundingBox, got {type(spatial)}")

    if crs is None or layer_crs is None:
        if crs is not None:
            log.warning(f"Layer has no CRS; spatial filter used as-is in {crs}")
        return geom

    source, dest = CRS.from_user_input(crs), CRS.from_user_input(layer_crs)
    if source == dest:
        return geom

    log.debug(f"Reprojecting spatial filter from {source.to_string()} to {dest.to_string()}")
    return gpd.GeoSeries([geom], crs=source).to_crs(dest).iloc[0]

def read(
    path: PathLike,
    options: Optional[Union[ReadOptions, dict]] = None,
    backend: Optional[VectorBackend] = None,
    driver: Optional[str] = None,
    **kwargs
) -> FeatureCollection:
    """
    Load one layer of a vector dataset into memory.

    The attribute query and the spatial filter compose with AND. When the
    driver supports it, both are pushed down so unselected features are never
    materialized; otherwise they are applied in memory. Results are identical:
    comparisons between a text and a numeric operand are rejected up front
    rather than left to the driver's implicit conversion.

    Layer names (from `layer` or the query's FROM) are matched like OGR does:
    exactly first, then ignoring case. On single-layer formats a name that
    does not match is ignored with a warning and the only layer is read.

    Args:
        path: Local path, URL or composed virtual path (see vectorio.vsi).
        options: ReadOptions or dict; keyword arguments override its fields
            (layer, query, spatial_filter, filter_crs).
        backend: Optional backend; defaults to the process backend.
        driver: Optional explicit driver, overriding extension inference.

    Returns:
        FeatureCollection: The selected features, tagged with their layer name.

    Raises:
        FileNotFound: The path does not exist or cannot be opened.
        LayerNotFound: The named layer is absent from a multi-layer dataset.
        LayerAmbiguous: Several layers and none named.
        MalformedQuery: The query does not parse, names unknown fields,
            compares incompatible types, or conflicts with `layer`.
    """
    opts = ReadOptions.coerce(options, **kwargs)
    path = _as_path_string(path)
    desc = resolve_driver(path, driver)
    _ensure_readable(path, desc)
    backend = backend or get_backend()

    query = parse_query(opts.query) if opts.query is not None else None
    layer = _select_layer(backend, path, desc, opts.layer, query)
    info = backend.read_info(path, layer)

    if query is not None:
        query.validate_fields(info["fields"], dtypes=info.get("dtypes"), path=path)

    mask = _spatial_mask(opts, info.get("crs"))
    push_sql = query is not None and desc.sql_pushdown
    push_mask = mask is not None and desc.spatial_pushdown

    columns = None
    where = None
    if push_sql:
        where = query.where_sql()
        if query.columns is not None:
            # Fields used by WHERE must be read even when not selected
            needed = set(query.referenced_fields())
            columns = [f for f in info["fields"] if f in needed]

    log.debug(
        f"Reading {path} layer='{layer}' driver={desc.key} "
        f"sql_pushdown={push_sql} spatial_pushdown={push_mask}"
    )

    try:
        gdf = backend.read(
            path,
            layer=layer,
            columns=columns,
            where=where,
            mask=mask if push_mask else None
        )
    except VectorIOError:
        raise
    except Exception as e:
        raise IOError(f"Failed to read vector from {path}: {e}") from e

    if query is not None:
        if push_sql:
            if query.columns is not None:
                geom_col = gdf.geometry.name
                gdf = gdf[[c for c in query.columns if c != geom_col] + [geom_col]]
        else:
            gdf = apply_query(gdf, query)

    if mask is not None and not push_mask:
        gdf = gdf[gdf.intersects(mask)]

    gdf = gdf.reset_index(drop=True)
    log.info(f"Loaded {len(gdf)} features from {path} (layer '{layer}')")
    return FeatureCollection(gdf, layer=layer)

def _field_kind(series: pd.Series) -> str:
    """Classifies a column into one of the scalar kinds of DriverDescriptor.field_types."""
    dtype = series.dtype
    if ptypes.is_bool_dtype(dtype):
        return "bool"
    if ptypes.is_integer_dtype(dtype):
        return "int"
    if ptypes.is_float_dtype(dtype):
        return "float"
    if ptypes.is_datetime64_any_dtype(dtype):
        return "datetime"
    if isinstance(dtype, pd.StringDtype):
        return "str"
    if dtype != object:
        return "other"

    values = series.dropna()
    if values.empty:
        return "str"

    kinds = set()
    for value in values:
        if isinstance(value, str):
            kinds.add("str")
        elif ptypes.is_bool(value):
            kinds.add("bool")
        elif ptypes.is_integer(value):
            kinds.add("int")
        elif ptypes.is_float(value):
            kinds.add("float")
        elif isinstance(value, datetime.datetime):
            kinds.add("datetime")
        elif isinstance(value, datetime.date):
            kinds.add("date")
        elif isinstance(value, (bytes, bytearray)):
            kinds.add("bytes")
        else:
            kinds.add("other")

    if kinds <= {"int", "float"} and "float" in kinds:
        return "float"
    return kinds.pop() if len(kinds) == 1 else "other"

def _check_schema(gdf: gpd.GeoDataFrame, desc: DriverDescriptor, path: str):
    geom_col = gdf.geometry.name
    fields = [c for c in gdf.columns if c != geom_col]

    for name in fields:
        kind = _field_kind(gdf[name])
        if kind not in desc.field_types:
            raise SchemaIncompatible(
                f"Field '{name}' ({gdf[name].dtype}, {kind}) cannot be stored by {desc.name}. "
                f"Supported kinds: {sorted(desc.field_types)}",
                path=path,
                field=str(name),
                driver=desc.name
            )

    if desc.max_field_name:
        limit = desc.max_field_name
        seen = {}
        for name in fields:
            short = str(name)[:limit]
            if short in seen:
                raise SchemaIncompatible(
                    f"Fields '{seen[short]}' and '{name}' collide as '{short}' "
                    f"after truncation to {limit} characters by {desc.name}",
                    path=path,
                    field=str(name),
                    driver=desc.name
                )
            seen[short] = name
            if len(str(name)) > limit:
                log.warning(f"Field '{name}' will be truncated to '{short}' by {desc.name}")

    if not desc.mixed_geometry:
        present = gdf.geometry[gdf.geometry.notna()].geom_type.unique()
        families = {GEOMETRY_FAMILIES.get(t, t) for t in present}
        if len(families) > 1:
            raise SchemaIncompatible(
                f"{desc.name} stores one geometry family per layer, got {sorted(present)}",
                path=path,
                driver=desc.name
            )

def _existing_files(target: Path, desc: DriverDescriptor) -> List[Path]:
    if desc.multi_file:
        candidates = [target] + [target.with_suffix(ext) for ext in desc.sidecars]
    else:
        candidates = [target]
    return [p for p in candidates if p.exists()]

def write(
    collection: Union[FeatureCollection, gpd.GeoDataFrame],
    path: PathLike,
    options: Optional[Union[WriteOptions, dict]] = None,
    backend: Optional[VectorBackend] = None,
    **kwargs
):
    """
    Save a feature collection to disk.

    The dataset is first written to a temporary directory next to the target
    and moved into place only once complete, so a failed write never leaves a
    truncated target behind.

    Args:
        collection: FeatureCollection or GeoDataFrame. Zero features are allowed.
        path: Output path. The format is inferred from the extension unless
            `driver` is given.
        options: WriteOptions or dict; keyword arguments override its fields
            (driver, overwrite, layer).
        backend: Optional backend; defaults to the process backend.

    Raises:
        TargetExists: The target exists and overwrite is False.
        UnsupportedDriver: The format cannot be written.
        SchemaIncompatible: A field kind or geometry mix cannot be stored.
    """
    opts = WriteOptions.coerce(options, **kwargs)

    if isinstance(collection, FeatureCollection):
        gdf = collection.data
        layer = opts.layer or collection.layer
    elif isinstance(collection, gpd.GeoDataFrame):
        gdf = collection
        layer = opts.layer
    else:
        raise TypeError(f"Expected FeatureCollection or GeoDataFrame, got {type(collection)}")

    path = _as_path_string(path)
    desc = resolve_driver(path, opts.driver)

    if not desc.can_write:
        raise UnsupportedDriver(f"Driver '{desc.name}' cannot write", path=path, driver=desc.name)
    if is_virtual(path):
        raise UnsupportedDriver(
            f"Writing to virtual or remote paths is not supported: {path}",
            path=path,
            driver=desc.name
        )
    if not desc.multi_layer:
        layer = None

    target = Path(path)
    existing = _existing_files(target, desc)
    if existing and not opts.overwrite:
        raise TargetExists(
            f"Target already exists: {target}. Pass overwrite=True to replace it.",
            path=str(target)
        )

    _check_schema(gdf, desc, str(target))

    target.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{target.name}.", dir=target.parent))

    log.info(f"Saving {len(gdf)} features → {target} ({desc.name})")

    try:
        (backend or get_backend()).write(gdf, str(staging / target.name), desc.name, layer=layer)

        produced = sorted(p for p in staging.iterdir() if p.is_file())
        if not produced:
            raise IOError(f"Driver {desc.name} produced no output for {target}")

        for old in existing:
            old.unlink()
        for new in produced:
            os.replace(new, target.parent / new.name)

    except VectorIOError:
        raise
    except Exception as e:
        raise IOError(f"Failed to save vector to {target}: {e}") from e
    finally:
        shutil.rmtree(staging, ignore_errors=True)

def resolve_collection(func: Callable):
    """
    Decorator letting a function take a path or a FeatureCollection as its
    first argument. Paths are read with default options.
    """
    @wraps(func)
    def wrapper(input_obj: Union[str, Path, FeatureCollection, None], *args, **kwargs):
        if input_obj is None:
            return func(None, *args, **kwargs)

        if isinstance(input_obj, (str, Path)):
            collection = read(input_obj)
        elif isinstance(input_obj, FeatureCollection):
            collection = input_obj
        else:
            raise TypeError(f"Expected file path or FeatureCollection, got {type(input_obj)}")

        return func(collection, *args, **kwargs)
    return wrapper
