# tests/unit/test_layer.py

import pytest
import geopandas as gpd
from shapely.geometry import Point, box

from vectorio import BoundingBox, Feature, FeatureCollection

# --- Initialization ---

def test_init_valid(crowns_gdf):
    """Test initializing FeatureCollection with a valid GeoDataFrame."""
    fc = FeatureCollection(crowns_gdf, layer="crowns")
    assert len(fc) == 1
    assert fc.crs == crowns_gdf.crs
    assert fc.layer == "crowns"

def test_init_invalid_type():
    """Test that initializing with non-GDF raises TypeError."""
    with pytest.raises(TypeError):
        FeatureCollection("not a dataframe")

def test_empty_with_schema():
    fc = FeatureCollection.empty({"name": "object", "value": "float64"}, crs="EPSG:4326")
    assert len(fc) == 0
    assert fc.columns == ["name", "value"]
    assert fc.schema["value"] == "float64"
    assert fc.crs == "EPSG:4326"

def test_from_features():
    features = [
        Feature(Point(0, 0), {"name": "a", "rank": 1}),
        Feature(box(0, 0, 1, 1), {"name": "b", "rank": 2})
    ]
    fc = FeatureCollection.from_features(features, crs="EPSG:4326")
    assert len(fc) == 2
    assert fc.columns == ["name", "rank"]
    assert fc.geometry_types == {"Point", "Polygon"}

def test_from_features_schema_mismatch():
    features = [
        Feature(Point(0, 0), {"name": "a"}),
        Feature(Point(1, 1), {"label": "b"})
    ]
    with pytest.raises(ValueError):
        FeatureCollection.from_features(features)

# --- Properties ---

def test_properties(rich_gdf):
    fc = FeatureCollection(rich_gdf)
    assert fc.columns == ['crown_id', 'species', 'height']
    assert fc.geometry_column == 'geometry'
    assert (fc.bounds == rich_gdf.total_bounds).all()
    assert list(fc.schema) == fc.columns

def test_iteration_yields_features(rich_gdf):
    """Iterating gives Feature records with plain Python scalars; missing values become None."""
    features = list(FeatureCollection(rich_gdf))
    assert len(features) == 4
    assert features[0].attributes == {'crown_id': 1, 'species': 'Abies', 'height': 15.5}
    assert isinstance(features[0].attributes['crown_id'], int)
    assert features[3].attributes['species'] is None
    assert features[1].geometry.equals(box(20, 20, 30, 30))
    assert features[1].geometry_type == "Polygon"

def test_mixed_geometry_passthrough(mixed_gdf):
    fc = FeatureCollection(mixed_gdf)
    assert fc.geometry_types == {"Point", "Polygon"}

# --- Derived collections ---

def test_filter_returns_new(rich_gdf):
    fc = FeatureCollection(rich_gdf, layer="crowns")
    tall = fc.filter(lambda df: df['height'] > 20)
    assert len(tall) == 2
    assert len(fc) == 4
    assert tall.layer == "crowns"

def test_filter_series(rich_gdf):
    fc = FeatureCollection(rich_gdf)
    assert len(fc.filter(rich_gdf['species'] == 'Picea')) == 1

def test_select_keeps_geometry(rich_gdf):
    fc = FeatureCollection(rich_gdf)
    sel = fc.select(['species'])
    assert sel.columns == ['species']
    assert 'geometry' in sel.data.columns
    assert fc.columns == ['crown_id', 'species', 'height']

def test_select_missing(rich_gdf):
    with pytest.raises(KeyError):
        FeatureCollection(rich_gdf).select(['age'])

# --- BoundingBox ---

def test_bbox_polygon():
    bb = BoundingBox(0, 0, 10, 5, crs="EPSG:32619")
    assert bb.to_polygon().equals(box(0, 0, 10, 5))
    assert bb.to_wkt().startswith("POLYGON")

def test_bbox_from_wkt():
    bb = BoundingBox.from_wkt("POLYGON ((1 2, 3 2, 3 4, 1 4, 1 2))", crs="EPSG:4326")
    assert (bb.xmin, bb.ymin, bb.xmax, bb.ymax) == (1, 2, 3, 4)
    assert bb.crs == "EPSG:4326"

def test_bbox_invalid():
    with pytest.raises(ValueError):
        BoundingBox(10, 0, 0, 5)

def test_bbox_immutable():
    bb = BoundingBox(0, 0, 1, 1)
    with pytest.raises(Exception):
        bb.xmin = 5
