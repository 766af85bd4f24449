# src/vectorio/registry.py

"""
This module maps file extensions and driver names to static driver metadata.

The registry is built once at import time and is read-only afterwards, so it
can be shared between threads without locking.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import Optional, Tuple, Union, Iterator, Mapping

from .errors import UnknownFormat

log = logging.getLogger(__name__)

__all__ = [
    "DriverDescriptor",
    "FormatRegistry",
    "REGISTRY",
    "resolve_driver"
]

# Scalar kinds understood by the schema check in io.write
ALL_FIELD_TYPES = frozenset({"int", "float", "str", "bool", "date", "datetime", "bytes"})

@dataclass(frozen=True)
class DriverDescriptor:
    """
    Static capabilities of a vector format.

    Args:
        name: GDAL/OGR driver name passed to pyogrio.
        key: Short alias accepted wherever a driver name is.
        extensions: Lower-case extensions, compound ones included (e.g. '.shp.zip').
        can_read: Driver supports reading.
        can_write: Driver supports writing.
        multi_layer: A single file may hold several layers.
        multi_file: A dataset is a set of sidecar files sharing a stem.
        archived: The dataset is stored inside a zip archive.
        sql_pushdown: WHERE clauses and column lists are evaluated by the driver.
        spatial_pushdown: Spatial filters are evaluated by the driver (indexed).
        empty_schema: The format persists field definitions for zero-feature layers.
        field_types: Scalar kinds the format can store.
        max_field_name: Field names longer than this are truncated on write.
        mixed_geometry: One layer may hold several geometry families.
        sidecars: Extensions written next to the main file for multi-file formats.
        lossy: Human readable lossy-conversion rules applied on write.
    """
    name: str
    key: str
    extensions: Tuple[str, ...]
    can_read: bool = True
    can_write: bool = True
    multi_layer: bool = False
    multi_file: bool = False
    archived: bool = False
    sql_pushdown: bool = True
    spatial_pushdown: bool = True
    empty_schema: bool = True
    field_types: frozenset = ALL_FIELD_TYPES
    max_field_name: Optional[int] = None
    mixed_geometry: bool = True
    sidecars: Tuple[str, ...] = ()
    lossy: Tuple[str, ...] = field(default=())

    def matches(self, path: str) -> Optional[str]:
        """Returns the longest extension of this driver that ends `path`, if any."""
        lowered = path.lower()
        hits = [ext for ext in self.extensions if lowered.endswith(ext)]
        return max(hits, key=len) if hits else None

SHAPEFILE = DriverDescriptor(
    name="ESRI Shapefile",
    key="shapefile",
    extensions=(".shp",),
    multi_file=True,
    field_types=frozenset({"int", "float", "str", "bool", "date"}),
    max_field_name=10,
    mixed_geometry=False,
    sidecars=(".shx", ".dbf", ".prj", ".cpg", ".qix"),
    lossy=(
        "field names are truncated to 10 characters",
        "datetime values cannot be stored (date only)",
        "one geometry family per layer (single and multi parts share a family)"
    )
)

ARCHIVED_SHAPEFILE = DriverDescriptor(
    name="ESRI Shapefile",
    key="shz",
    extensions=(".shz", ".shp.zip"),
    archived=True,
    field_types=frozenset({"int", "float", "str", "bool", "date"}),
    max_field_name=10,
    mixed_geometry=False,
    lossy=SHAPEFILE.lossy
)

GEOPACKAGE = DriverDescriptor(
    name="GPKG",
    key="gpkg",
    extensions=(".gpkg",),
    multi_layer=True,
)

GEOJSON = DriverDescriptor(
    name="GeoJSON",
    key="geojson",
    extensions=(".geojson", ".json"),
    # No spatial index: a spatial filter still parses the whole document
    spatial_pushdown=False,
    empty_schema=False,
    field_types=frozenset({"int", "float", "str", "bool", "date", "datetime"}),
    lossy=(
        "field definitions are not kept for zero-feature layers",
        "date and datetime values are stored as ISO 8601 strings"
    )
)

class FormatRegistry:
    """
    Read-only lookup of DriverDescriptor objects by extension or driver name.
    """
    def __init__(self, descriptors: Tuple[DriverDescriptor, ...]):
        by_name = {}
        by_ext = {}
        for desc in descriptors:
            by_name.setdefault(desc.name.lower(), desc)
            by_name[desc.key.lower()] = desc
            for ext in desc.extensions:
                if ext in by_ext:
                    raise ValueError(f"Extension '{ext}' registered twice")
                by_ext[ext] = desc

        self._descriptors = tuple(descriptors)
        self._by_name: Mapping[str, DriverDescriptor] = MappingProxyType(by_name)
        self._by_ext: Mapping[str, DriverDescriptor] = MappingProxyType(by_ext)

    def __iter__(self) -> Iterator[DriverDescriptor]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def extensions(self) -> Tuple[str, ...]:
        return tuple(sorted(self._by_ext))

    def get(self, name: str) -> DriverDescriptor:
        """Looks up a descriptor by GDAL driver name or alias (case-insensitive)."""
        desc = self._by_name.get(name.strip().lower())
        if desc is None:
            raise UnknownFormat(
                f"Unknown driver '{name}'. Known drivers: {sorted(self._by_name)}",
                driver=name
            )
        return desc

    def resolve(
        self,
        path: Optional[Union[str, Path]] = None,
        driver: Optional[str] = None
    ) -> DriverDescriptor:
        """
        Resolves exactly one descriptor for a path or an explicit driver name.

        An explicit driver always wins. Otherwise the longest registered
        extension ending the path is used, so '.shp.zip' beats '.zip'-less
        matches. Virtual path prefixes and URL query strings are ignored.

        Args:
            path: Local, remote or virtual path.
            driver: Optional GDAL driver name or alias.

        Returns:
            DriverDescriptor: The matching descriptor.

        Raises:
            UnknownFormat: If nothing matches.
        """
        if driver:
            desc = self.get(driver)
            # Same GDAL driver, but the path says which flavour (e.g. archived shapefile)
            if path is not None:
                inferred = self._match(str(path))
                if inferred is not None and inferred.name == desc.name:
                    desc = inferred
            log.debug(f"Driver '{desc.key}' selected explicitly")
            return desc

        if path is None:
            raise UnknownFormat("Either a path or an explicit driver is required")

        best = self._match(str(path))
        if best is None:
            raise UnknownFormat(
                f"Cannot infer a vector format from '{path}'. "
                f"Supported extensions: {list(self.extensions())}",
                path=str(path)
            )

        log.debug(f"Driver '{best.key}' inferred from {path}")
        return best

    def _match(self, path: str) -> Optional[DriverDescriptor]:
        name = _strip_location(path)
        best = None
        best_ext = ""
        for desc in self._descriptors:
            ext = desc.matches(name)
            if ext and len(ext) > len(best_ext):
                best, best_ext = desc, ext
        return best

def _strip_location(path: str) -> str:
    """Keeps only the final path component, dropping URL query strings and fragments."""
    for sep in ("?", "#"):
        if "://" in path and sep in path:
            path = path.split(sep, 1)[0]
    return PurePosixPath(path.replace("\\", "/")).name

REGISTRY = FormatRegistry((SHAPEFILE, ARCHIVED_SHAPEFILE, GEOPACKAGE, GEOJSON))

def resolve_driver(
    path: Optional[Union[str, Path]] = None,
    driver: Optional[str] = None
) -> DriverDescriptor:
    """Resolves a descriptor against the process-wide registry."""
    return REGISTRY.resolve(path=path, driver=driver)
