# tests/conftest.py

import pytest
import geopandas as gpd
from shapely.geometry import Point, Polygon, box

from helpers import FakeBackend

@pytest.fixture
def square_poly():
    """Returns a simple 10x10 square polygon."""
    return Polygon([(0, 0), (10, 0), (10, 10), (0, 10)])

@pytest.fixture
def crowns_gdf(square_poly):
    """Creates a basic GeoDataFrame with one crown."""
    return gpd.GeoDataFrame(
        {'crown_id': [1], 'species': ['Abies'], 'geometry': [square_poly]},
        crs="EPSG:32619"
    )

@pytest.fixture
def rich_gdf(square_poly):
    """
    Returns a GDF with several features spread along the diagonal and
    attributes to test queries and spatial filters.
    """
    return gpd.GeoDataFrame(
        {
            'crown_id': [1, 2, 3, 4],
            'species': ['Abies', 'Picea', 'Abies', None],
            'height': [15.5, 22.0, 30.1, 8.0],
            'geometry': [
                square_poly,
                box(20, 20, 30, 30),
                box(40, 40, 50, 50),
                box(60, 60, 70, 70)
            ]
        },
        crs="EPSG:32619"
    )

@pytest.fixture
def mixed_gdf():
    """Points and polygons in one layer, as GeoJSON allows."""
    return gpd.GeoDataFrame(
        {
            'name': ['well', 'field'],
            'geometry': [Point(5, 5), box(0, 0, 2, 2)]
        },
        crs="EPSG:4326"
    )

@pytest.fixture
def shapefile_path(tmp_path, rich_gdf):
    """Saves the rich GDF to a shapefile and returns the path."""
    path = tmp_path / "crowns.shp"
    rich_gdf.to_file(path, engine="pyogrio")
    return str(path)

@pytest.fixture
def geojson_path(tmp_path, rich_gdf):
    path = tmp_path / "crowns.geojson"
    rich_gdf.to_file(path, driver="GeoJSON", engine="pyogrio")
    return str(path)

@pytest.fixture
def two_layer_gpkg(tmp_path, rich_gdf, crowns_gdf):
    """GeoPackage holding a 'crowns' layer (4 features) and a 'plots' layer (1 feature)."""
    path = tmp_path / "survey.gpkg"
    rich_gdf.to_file(path, layer="crowns", driver="GPKG", engine="pyogrio")
    crowns_gdf.to_file(path, layer="plots", driver="GPKG", engine="pyogrio")
    return str(path)

@pytest.fixture
def fake_backend(rich_gdf, crowns_gdf):
    """
    In-memory backend with:
      - trees.gpkg: single 'trees' layer
      - survey.gpkg: 'crowns' and 'plots' layers
      - trees.geojson: single 'trees' layer (no spatial push-down)
    """
    return FakeBackend({
        "trees.gpkg": {"trees": rich_gdf},
        "survey.gpkg": {"crowns": rich_gdf, "plots": crowns_gdf},
        "trees.geojson": {"trees": rich_gdf}
    })
