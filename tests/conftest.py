"""
Shared fixtures: tiny prefecture topologies, density CSVs and region frames.

Coordinates are rough lon/lat boxes near the real prefectures, small enough
to reason about by hand.
"""

import json

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import box

from jpn_density.config import RenderConfig


@pytest.fixture
def topology():
    """Plain (non-quantized) topology with Tokyo, Osaka and a two-part Hokkaido."""
    return {
        "type": "Topology",
        "objects": {
            "gadm36_JPN_1": {
                "type": "GeometryCollection",
                "geometries": [
                    {
                        "type": "Polygon",
                        "arcs": [[0, 1]],
                        "properties": {"NAME_1": "Tokyo", "GID_1": "JPN.40_1"},
                    },
                    {
                        "type": "Polygon",
                        "arcs": [[2]],
                        "properties": {"NAME_1": "Osaka", "GID_1": "JPN.32_1"},
                    },
                    {
                        "type": "MultiPolygon",
                        "arcs": [[[3]], [[4]]],
                        "properties": {"NAME_1": "Hokkaido", "GID_1": "JPN.5_1"},
                    },
                ],
            }
        },
        "arcs": [
            [[139.0, 35.0], [140.0, 35.0], [140.0, 36.0]],
            [[140.0, 36.0], [139.0, 36.0], [139.0, 35.0]],
            [[135.0, 34.0], [136.0, 34.0], [136.0, 35.0], [135.0, 35.0], [135.0, 34.0]],
            [[141.0, 42.0], [143.0, 42.0], [143.0, 44.0], [141.0, 44.0], [141.0, 42.0]],
            [[145.0, 43.0], [146.0, 43.0], [146.0, 44.0], [145.0, 43.0]],
        ],
    }


@pytest.fixture
def quantized_topology():
    """Quantized topology: delta-encoded arcs plus a scale/translate transform."""
    return {
        "type": "Topology",
        "transform": {"scale": [0.5, 0.5], "translate": [100.0, 30.0]},
        "objects": {
            "shapes": {
                "type": "GeometryCollection",
                "geometries": [
                    {"type": "Polygon", "arcs": [[0]], "properties": {"NAME_1": "Square"}},
                    {"type": "Point", "coordinates": [4, 6], "properties": {"NAME_1": "Dot"}},
                ],
            }
        },
        "arcs": [[[0, 0], [2, 0], [0, 2], [-2, 0], [0, -2]]],
    }


@pytest.fixture
def topology_file(tmp_path, topology):
    path = tmp_path / "jpntopo.json"
    path.write_text(json.dumps(topology), encoding="utf-8")
    return path


def write_csv(path, rows, encoding="utf-8"):
    lines = ["region,density"] + [f"{r},{d}" for r, d in rows]
    path.write_bytes(("\n".join(lines) + "\n").encode(encoding))
    return path


@pytest.fixture
def density_csv(tmp_path):
    return write_csv(
        tmp_path / "japanpopdensity.csv",
        [("Tokyo", "6000"), ("Osaka", "100"), ("Osaka", "300"), ("Okinawa", "630")],
    )


@pytest.fixture
def regions():
    return gpd.GeoDataFrame(
        {"NAME_1": ["Tokyo", "Osaka", "Hokkaido"]},
        geometry=[box(139, 35, 140, 36), box(135, 34, 136, 35), box(141, 42, 143, 44)],
        crs="EPSG:4326",
    )


def records_frame(rows):
    return pd.DataFrame(
        {"region": [r for r, _ in rows], "density": [float(d) for _, d in rows]}
    )


@pytest.fixture
def config(tmp_path, density_csv, topology_file):
    return RenderConfig(
        density_path=density_csv,
        geometry_path=topology_file,
        output_png=tmp_path / "out.png",
        output_html=tmp_path / "out.html",
        cache_dir=tmp_path / "cache",
    )


@pytest.fixture
def make_records():
    return records_frame


@pytest.fixture
def make_csv():
    return write_csv
