# src/vectorio/options.py

"""
This module holds the per-call configuration objects for reading and writing.
"""

import logging
from typing import Any, Optional, Union

from shapely.geometry.base import BaseGeometry

from .layer import BoundingBox
from .query import AttributeQuery

log = logging.getLogger(__name__)

__all__ = [
    "ReadOptions",
    "WriteOptions"
]

class ReadOptions:
    """Configuration object for the layer reader.

    Args:
        layer: Layer to load. Required when a multi-layer file holds more than one layer.
        query: 'SELECT ... FROM <layer> [WHERE ...]' string or a parsed AttributeQuery.
        spatial_filter: Shapely geometry, WKT string or BoundingBox. Only features
            intersecting it are materialized.
        filter_crs: CRS of `spatial_filter`. Defaults to the BoundingBox's own CRS,
            then to the layer CRS.
    """
    def __init__(
        self,
        layer: Optional[str] = None,
        query: Optional[Union[str, AttributeQuery]] = None,
        spatial_filter: Optional[Union[BaseGeometry, str, BoundingBox]] = None,
        filter_crs: Optional[Any] = None
    ):
        self.layer = layer
        self.query = query
        self.spatial_filter = spatial_filter
        self.filter_crs = filter_crs

    @classmethod
    def coerce(cls, options: Optional["ReadOptions"] = None, **overrides) -> "ReadOptions":
        """Builds options from an existing object, a dict, or keyword arguments (which win)."""
        return _coerce(cls, options, overrides)

    def __repr__(self):
        return (f"ReadOptions(layer={self.layer!r}, query={self.query!r}, "
                f"spatial_filter={self.spatial_filter!r}, filter_crs={self.filter_crs!r})")

class WriteOptions:
    """Configuration object for the layer writer.

    Args:
        driver: Target format (GDAL name or alias). Inferred from the extension when None.
        overwrite: Replace an existing target. Default=False.
        layer: Layer name inside the target (multi-layer formats). Defaults to the file stem.
    """
    def __init__(
        self,
        driver: Optional[str] = None,
        overwrite: bool = False,
        layer: Optional[str] = None
    ):
        self.driver = driver
        self.overwrite = bool(overwrite)
        self.layer = layer

    @classmethod
    def coerce(cls, options: Optional["WriteOptions"] = None, **overrides) -> "WriteOptions":
        return _coerce(cls, options, overrides)

    def __repr__(self):
        return f"WriteOptions(driver={self.driver!r}, overwrite={self.overwrite!r}, layer={self.layer!r})"

def _coerce(cls, options, overrides):
    if options is None:
        base = {}
    elif isinstance(options, cls):
        base = dict(vars(options))
    elif isinstance(options, dict):
        base = dict(options)
    else:
        raise TypeError(f"Expected {cls.__name__} or dict, got {type(options)}")

    base.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return cls(**base)
    except TypeError as e:
        raise TypeError(f"Invalid {cls.__name__} field: {e}") from e
