# tests/helpers.py

from collections import OrderedDict
from pathlib import Path

import geopandas as gpd

from vectorio import FeatureCollection, FileNotFound, VectorBackend, apply_query

def assert_collection_match(current: FeatureCollection, reference: FeatureCollection, check_columns: bool = True):
    """Check feature count, attribute values and geometries (topologically) match."""
    assert len(current) == len(reference), \
        f"Feature count mismatch: {len(current)} != {len(reference)}"

    if check_columns:
        assert current.columns == reference.columns, \
            f"Column mismatch: {current.columns} != {reference.columns}"

    for got, want in zip(current, reference):
        assert got.geometry.equals(want.geometry), \
            f"Geometry mismatch: {got.geometry.wkt} != {want.geometry.wkt}"
        for name in reference.columns:
            assert got.attributes[name] == want.attributes[name], \
                f"Value mismatch in '{name}': {got.attributes[name]!r} != {want.attributes[name]!r}"

def ids(collection: FeatureCollection, column: str = "crown_id") -> set:
    return set(collection.data[column].tolist())

class FakeBackend(VectorBackend):
    """
    In-memory stand-in for GDAL. Datasets are keyed by file name, each holding
    an ordered mapping of layer name to GeoDataFrame. Every read is recorded so
    tests can check what was pushed down.
    """
    def __init__(self, datasets=None):
        self.datasets = {name: OrderedDict(layers) for name, layers in (datasets or {}).items()}
        self.reads = []
        self.writes = []

    def _dataset(self, path):
        key = Path(path).name
        if key not in self.datasets:
            raise FileNotFound(f"Fake dataset not found: {path}", path=path)
        return self.datasets[key]

    def list_layers(self, path):
        return [
            (name, gdf.geom_type.iloc[0] if len(gdf) else None)
            for name, gdf in self._dataset(path).items()
        ]

    def read_info(self, path, layer=None):
        gdf = self._dataset(path)[layer]
        fields = [c for c in gdf.columns if c != gdf.geometry.name]
        return {
            "crs": gdf.crs,
            "fields": fields,
            "dtypes": [str(gdf[c].dtype) for c in fields],
            "geometry_type": None,
            "features": len(gdf),
            "driver": "Fake",
            "layer": layer
        }

    def read(self, path, layer=None, columns=None, where=None, mask=None):
        self.reads.append({"path": path, "layer": layer, "columns": columns, "where": where, "mask": mask})
        gdf = self._dataset(path)[layer].copy()
        if where:
            gdf = apply_query(gdf, f'SELECT * FROM "{layer}" WHERE {where}')
        if columns is not None:
            gdf = gdf[list(columns) + [gdf.geometry.name]]
        if mask is not None:
            gdf = gdf[gdf.intersects(mask)]
        return gdf

    def write(self, gdf, path, driver, layer=None):
        self.writes.append({"path": path, "driver": driver, "layer": layer, "features": len(gdf)})
        Path(path).write_text(driver)
        self.datasets[Path(path).name] = OrderedDict([(layer or Path(path).stem, gdf.copy())])

class FailingBackend(VectorBackend):
    """Writes a truncated file, then fails like a driver running out of disk."""

    def write(self, gdf, path, driver, layer=None):
        Path(path).write_bytes(b"\x00" * 16)
        raise RuntimeError("No space left on device")
