"""Shared fixtures for the green_access test suite.

Geometries are built directly in UTM zone 10N (meters) so areas and
distances in assertions can be read off the coordinates.
"""

import geopandas as gpd
import pytest
from shapely.geometry import box

from green_access.config import merge_config

UTM = "EPSG:32610"
X0, Y0 = 550_000.0, 4_180_000.0


def square(dx, dy, size):
    """Axis-aligned square offset (dx, dy) meters from the test origin."""
    return box(X0 + dx, Y0 + dy, X0 + dx + size, Y0 + dy + size)


def green_layer(*geoms, crs=UTM):
    return gpd.GeoDataFrame(
        {"name": [f"park {i}" for i in range(len(geoms))]},
        geometry=list(geoms),
        crs=crs,
    )


@pytest.fixture()
def config():
    return merge_config({"local_crs": UTM})


@pytest.fixture()
def tract():
    # 100 m x 100 m -> 10,000 m² = 0.01 km²
    return square(0, 0, 100)
