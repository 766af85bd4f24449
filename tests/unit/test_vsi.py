# tests/unit/test_vsi.py

import pytest

from vectorio import InvalidStageOrder, Stage, compose, is_virtual, split

URL = "https://example.org/data/parcels.zip"

# --- Composition ---

def test_network_only():
    assert compose("https://example.org/a.geojson", ["network"]) == "/vsicurl/https://example.org/a.geojson"

def test_local_archive():
    assert compose("/data/parcels.zip", [Stage.ZIP], member="parcels.shp") == "/vsizip//data/parcels.zip/parcels.shp"

def test_remote_archive():
    """The network stage is applied first; the archive stage wraps it."""
    path = compose(URL, [Stage.ARCHIVE, Stage.NETWORK], member="parcels.shp")
    assert path == "/vsizip//vsicurl/https://example.org/data/parcels.zip/parcels.shp"

def test_order_is_normalized():
    """Either caller order composes the same correctly ordered string."""
    a = compose(URL, ["zip", "network"], member="parcels.shp")
    b = compose(URL, ["network", "zip"], member="parcels.shp")
    assert a == b

def test_stage_names_are_flexible():
    assert compose(URL, ["ARCHIVE", "/vsicurl/"]) == compose(URL, [Stage.ZIP, Stage.NETWORK])

def test_archive_alias():
    assert Stage.ARCHIVE is Stage.ZIP

def test_member_leading_slash():
    assert compose("/d/a.zip", ["zip"], member="/sub/a.shp") == "/vsizip//d/a.zip/sub/a.shp"

def test_no_stages_returns_base():
    assert compose("/d/a.gpkg", []) == "/d/a.gpkg"

# --- Invalid orders ---

def test_archive_without_transport_for_url():
    with pytest.raises(InvalidStageOrder) as exc:
        compose(URL, ["zip"])
    assert exc.value.path == URL

def test_network_for_local_path():
    with pytest.raises(InvalidStageOrder):
        compose("/data/parcels.zip", ["network", "zip"])

def test_repeated_stage():
    with pytest.raises(InvalidStageOrder):
        compose(URL, ["network", "zip", "archive"])

def test_two_archives():
    with pytest.raises(InvalidStageOrder):
        compose("/d/a.tar.gz", ["tar", "gzip"])

def test_member_without_archive():
    with pytest.raises(InvalidStageOrder):
        compose(URL, ["network"], member="parcels.shp")

def test_gzip_takes_no_member():
    with pytest.raises(InvalidStageOrder):
        compose("/d/a.geojson.gz", ["gzip"], member="a.geojson")

def test_empty_base():
    with pytest.raises(InvalidStageOrder):
        compose("", ["zip"])

def test_unknown_stage():
    with pytest.raises(InvalidStageOrder):
        compose(URL, ["teleport"])

# --- Parsing ---

def test_split_roundtrip():
    stages, base = split(compose(URL, ["zip", "network"]))
    assert stages == [Stage.NETWORK, Stage.ZIP]
    assert base == URL

def test_is_virtual():
    assert is_virtual("/vsizip//d/a.zip/a.shp")
    assert is_virtual("https://example.org/a.geojson")
    assert not is_virtual("/d/a.gpkg")
    assert not is_virtual("relative/a.shp")
