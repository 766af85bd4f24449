# src/vectorio/layer.py

"""
This module defines the in-memory representation shared by every format:
a FeatureCollection wrapping a GeoDataFrame, its Feature records,
and the BoundingBox used as a spatial filter input.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Union

import geopandas as gpd
import pandas as pd
from pyproj import CRS
from shapely import wkt as shapely_wkt
from shapely.geometry import Polygon, box
from shapely.geometry.base import BaseGeometry

log = logging.getLogger(__name__)

__all__ = [
    "Feature",
    "FeatureCollection",
    "BoundingBox"
]

@dataclass(frozen=True)
class Feature:
    """
    One record of a layer.

    Args:
        geometry: Shapely geometry, or None where the format allows missing geometry.
        attributes: Field values in schema order.
    """
    geometry: Optional[BaseGeometry]
    attributes: Dict[str, Any] = field(default_factory=OrderedDict)

    @property
    def geometry_type(self) -> Optional[str]:
        return self.geometry.geom_type if self.geometry is not None else None

@dataclass(frozen=True)
class BoundingBox:
    """
    Axis-aligned rectangle used as a spatial filter. Never persisted.

    Args:
        xmin, ymin, xmax, ymax: Extent in the units of `crs`.
        crs: Anything pyproj understands ('EPSG:4326', an int code, WKT). None means
            "same as the layer".
    """
    xmin: float
    ymin: float
    xmax: float
    ymax: float
    crs: Optional[Any] = None

    def __post_init__(self):
        if self.xmin > self.xmax or self.ymin > self.ymax:
            raise ValueError(
                f"Invalid bounding box ({self.xmin}, {self.ymin}, {self.xmax}, {self.ymax}): "
                f"min values must not exceed max values"
            )

    @classmethod
    def from_wkt(cls, text: str, crs: Optional[Any] = None) -> "BoundingBox":
        geom = shapely_wkt.loads(text)
        return cls(*geom.bounds, crs=crs)

    def to_polygon(self) -> Polygon:
        return box(self.xmin, self.ymin, self.xmax, self.ymax)

    def to_wkt(self) -> str:
        return self.to_polygon().wkt

class FeatureCollection:
    """
    Ordered features sharing one attribute schema and one CRS.

    Geometry types may differ between features (GeoJSON allows it), so the
    geometry column is treated as a tagged variant rather than a typed column.
    The facade never mutates a collection after creating it: `filter` and
    `select` return new collections.
    """
    def __init__(self, data: gpd.GeoDataFrame, layer: Optional[str] = None):
        if not isinstance(data, gpd.GeoDataFrame):
            raise TypeError(f"Expected GeoDataFrame, got {type(data)}")
        self._data = data
        self.layer = layer

    @classmethod
    def empty(
        cls,
        columns: Union[List[str], Dict[str, str]] = (),
        crs: Optional[Any] = None,
        layer: Optional[str] = None
    ) -> "FeatureCollection":
        """
        Builds a zero-feature collection with a fixed schema.

        Args:
            columns: Field names, or a mapping of field name to pandas dtype.
            crs: Coordinate reference system of the (empty) geometry column.
            layer: Optional layer name.
        """
        if isinstance(columns, dict):
            frame = pd.DataFrame({name: pd.Series(dtype=dtype) for name, dtype in columns.items()})
        else:
            frame = pd.DataFrame({name: pd.Series(dtype=object) for name in columns})
        gdf = gpd.GeoDataFrame(frame, geometry=gpd.GeoSeries([], crs=crs))
        return cls(gdf, layer=layer)

    @classmethod
    def from_features(
        cls,
        features: List[Feature],
        crs: Optional[Any] = None,
        layer: Optional[str] = None
    ) -> "FeatureCollection":
        """Builds a collection from Feature records. All records must share one field set."""
        if not features:
            return cls.empty(crs=crs, layer=layer)

        names = list(features[0].attributes)
        for i, feat in enumerate(features):
            if list(feat.attributes) != names:
                raise ValueError(
                    f"Feature {i} fields {list(feat.attributes)} differ from schema {names}"
                )

        records = [dict(feat.attributes) for feat in features]
        geoms = [feat.geometry for feat in features]
        gdf = gpd.GeoDataFrame(records, columns=names, geometry=geoms, crs=crs)
        return cls(gdf, layer=layer)

    @property
    def data(self) -> gpd.GeoDataFrame:
        return self._data

    @property
    def crs(self) -> Optional[CRS]:
        return self._data.crs

    @property
    def bounds(self):
        return self._data.total_bounds

    @property
    def geometry_column(self) -> str:
        return self._data.geometry.name

    @property
    def columns(self) -> List[str]:
        """Attribute field names, geometry column excluded."""
        return [c for c in self._data.columns if c != self.geometry_column]

    @property
    def schema(self) -> "OrderedDict[str, str]":
        return OrderedDict((c, str(self._data[c].dtype)) for c in self.columns)

    @property
    def geometry_types(self) -> Set[str]:
        geoms = self._data.geometry
        return set(geoms[geoms.notna()].geom_type.unique())

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[Feature]:
        names = self.columns
        geom_col = self.geometry_column
        for _, row in self._data.iterrows():
            attrs = OrderedDict((name, _scalar(row[name])) for name in names)
            yield Feature(geometry=row[geom_col], attributes=attrs)

    def filter(self, condition: Union[pd.Series, Callable[[gpd.GeoDataFrame], pd.Series]]) -> "FeatureCollection":
        """Returns a new collection with the rows selected by a mask or a callable producing one."""
        mask = condition(self._data) if callable(condition) else condition
        return FeatureCollection(self._data[mask].copy(), layer=self.layer)

    def select(self, columns: List[str]) -> "FeatureCollection":
        """Returns a new collection restricted to `columns`; the geometry column is always kept."""
        missing = [c for c in columns if c not in self._data.columns]
        if missing:
            raise KeyError(f"Columns not found: {missing}. Available: {self.columns}")

        keep = [c for c in columns if c != self.geometry_column] + [self.geometry_column]
        return FeatureCollection(self._data[keep].copy(), layer=self.layer)

    def __repr__(self):
        return f"<FeatureCollection layer={self.layer!r} features={len(self._data)} crs={self.crs}>"

def _scalar(value: Any) -> Any:
    """Unwraps numpy scalars and maps missing values to None."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        # list-like values
        return value
    return value.item() if hasattr(value, "item") else value
