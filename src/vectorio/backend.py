# src/vectorio/backend.py

"""
This module isolates every call into the geospatial engine behind a small
backend interface.

The default PyogrioBackend delegates to GDAL through pyogrio and geopandas,
which provide the geometry engine, the SQL evaluator, the CRS machinery and
the network/archive transport. Tests substitute an in-memory backend.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import geopandas as gpd
import pyogrio
from shapely.geometry.base import BaseGeometry
from pyogrio.errors import DataLayerError, DataSourceError

from .errors import FileNotFound, LayerNotFound

log = logging.getLogger(__name__)

__all__ = [
    "VectorBackend",
    "PyogrioBackend",
    "get_backend",
    "set_backend"
]

ENGINE = "pyogrio"

class VectorBackend:
    """
    Capabilities the reader and writer depend on.

    Every method opens and closes its own handles: no state is kept between calls.
    """

    def list_layers(self, path: str) -> List[Tuple[str, Optional[str]]]:
        """Returns (layer name, geometry type) pairs in dataset order."""
        raise NotImplementedError

    def read_info(self, path: str, layer: Optional[str] = None) -> Dict[str, Any]:
        """Returns layer metadata: crs, fields, dtypes, geometry_type, features, driver."""
        raise NotImplementedError

    def read(
        self,
        path: str,
        layer: Optional[str] = None,
        columns: Optional[List[str]] = None,
        where: Optional[str] = None,
        mask: Optional[BaseGeometry] = None
    ) -> gpd.GeoDataFrame:
        """Materializes a layer, applying the column list, WHERE clause and mask when given."""
        raise NotImplementedError

    def write(
        self,
        gdf: gpd.GeoDataFrame,
        path: str,
        driver: str,
        layer: Optional[str] = None
    ):
        """Writes a GeoDataFrame as a new dataset at `path`."""
        raise NotImplementedError

class PyogrioBackend(VectorBackend):
    """GDAL/OGR through pyogrio; reads and writes go through geopandas."""

    def list_layers(self, path: str) -> List[Tuple[str, Optional[str]]]:
        try:
            layers = pyogrio.list_layers(path)
        except DataSourceError as e:
            raise FileNotFound(f"Cannot open vector dataset: {path} ({e})", path=path) from e
        return [(str(name), geom_type) for name, geom_type in layers]

    def read_info(self, path: str, layer: Optional[str] = None) -> Dict[str, Any]:
        try:
            info = pyogrio.read_info(path, layer=layer)
        except DataSourceError as e:
            raise FileNotFound(f"Cannot open vector dataset: {path} ({e})", path=path) from e
        except DataLayerError as e:
            raise LayerNotFound(f"Layer '{layer}' not found in {path}", path=path, layer=layer) from e

        return {
            "crs": info.get("crs"),
            "fields": [str(f) for f in info.get("fields", [])],
            "dtypes": [str(d) for d in info.get("dtypes", [])],
            "geometry_type": info.get("geometry_type"),
            "features": info.get("features"),
            "driver": info.get("driver"),
            "layer": layer
        }

    def read(
        self,
        path: str,
        layer: Optional[str] = None,
        columns: Optional[List[str]] = None,
        where: Optional[str] = None,
        mask: Optional[BaseGeometry] = None
    ) -> gpd.GeoDataFrame:
        kwargs = {}
        if layer is not None:
            kwargs["layer"] = layer
        if columns is not None:
            kwargs["columns"] = columns
        if where:
            kwargs["where"] = where

        log.debug(f"pyogrio read {path} layer={layer} columns={columns} where={where} mask={mask is not None}")

        try:
            return gpd.read_file(path, engine=ENGINE, mask=mask, **kwargs)
        except DataSourceError as e:
            raise FileNotFound(f"Cannot open vector dataset: {path} ({e})", path=path) from e
        except DataLayerError as e:
            raise LayerNotFound(f"Layer '{layer}' not found in {path}", path=path, layer=layer) from e

    def write(
        self,
        gdf: gpd.GeoDataFrame,
        path: str,
        driver: str,
        layer: Optional[str] = None
    ):
        kwargs = {}
        if layer is not None:
            kwargs["layer"] = layer
        gdf.to_file(path, driver=driver, engine=ENGINE, index=False, **kwargs)

_backend: VectorBackend = PyogrioBackend()

def get_backend() -> VectorBackend:
    return _backend

def set_backend(backend: VectorBackend) -> VectorBackend:
    """Replaces the process default backend; returns the previous one."""
    global _backend
    if not isinstance(backend, VectorBackend):
        raise TypeError(f"Expected VectorBackend, got {type(backend)}")
    previous, _backend = _backend, backend
    return previous
