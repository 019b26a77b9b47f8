"""
Shared pytest fixtures for hazard-map tests.

These fixtures provide a small synthetic study area: a 100x100 pixel UTM
grid at 30 m with covariates whose values separate an event zone (west)
from a non-event zone (east).
"""

import numpy as np
import pandas as pd
import pytest
from rasterio.transform import from_origin

from hazard_map.io.points import make_points
from hazard_map.io.raster import Raster
from hazard_map.utils.spatial import GridSpec

CRS_UTM = "EPSG:32645"
ORIGIN_X = 500000.0
ORIGIN_Y = 3100000.0
RESOLUTION = 30.0
SIZE = 100


# =============================================================================
# Grid Fixtures
# =============================================================================

@pytest.fixture
def transform():
    """North-up 30 m transform of the synthetic study area."""
    return from_origin(ORIGIN_X, ORIGIN_Y, RESOLUTION, RESOLUTION)


@pytest.fixture
def grid(transform) -> GridSpec:
    """100x100 pixel grid covering 3 x 3 km."""
    return GridSpec(crs=CRS_UTM, transform=transform, width=SIZE, height=SIZE)


# =============================================================================
# Covariate Fixtures
# =============================================================================

@pytest.fixture
def elevation(transform) -> Raster:
    """Elevation rising from west to east with small noise."""
    rng = np.random.default_rng(0)
    east = np.tile(np.arange(SIZE, dtype=np.float32), (SIZE, 1))
    data = 1000.0 + 10.0 * east + rng.normal(0, 1, (SIZE, SIZE)).astype(np.float32)
    return Raster(name="elevation", data=data, transform=transform, crs=CRS_UTM)


@pytest.fixture
def rainfall(transform) -> Raster:
    """Three monthly rainfall slices, wetter in the west."""
    rng = np.random.default_rng(1)
    east = np.tile(np.arange(SIZE, dtype=np.float32), (SIZE, 1))
    slices = [
        200.0 - 1.5 * east + rng.normal(0, 2, (SIZE, SIZE)).astype(np.float32)
        for _ in range(3)
    ]
    return Raster(
        name="rainMean",
        data=np.stack(slices).astype(np.float32),
        transform=transform,
        crs=CRS_UTM,
        reduction="mean",
    )


@pytest.fixture
def covariates(elevation, rainfall):
    """Covariate rasters in stacking order."""
    return [elevation, rainfall]


# =============================================================================
# Point Fixtures
# =============================================================================

def _random_points(rng, n, x_range, label):
    x = ORIGIN_X + rng.uniform(*x_range, n)
    y = ORIGIN_Y - rng.uniform(150.0, 2850.0, n)
    return make_points(x, y, label=label)


@pytest.fixture
def events() -> pd.DataFrame:
    """100 event points in the western zone."""
    rng = np.random.default_rng(2)
    return _random_points(rng, 100, (150.0, 1300.0), label=1)


@pytest.fixture
def non_events() -> pd.DataFrame:
    """100 non-event points in the eastern zone."""
    rng = np.random.default_rng(3)
    return _random_points(rng, 100, (1700.0, 2850.0), label=0)


@pytest.fixture
def write_raster(tmp_path):
    """Factory writing a Raster to a GeoTIFF under tmp_path."""
    import rasterio

    def _write(raster: Raster, name: str = None):
        path = tmp_path / f"{name or raster.name}.tif"
        data = raster.data if raster.data.ndim == 3 else raster.data[np.newaxis]
        profile = {
            "driver": "GTiff",
            "height": data.shape[1],
            "width": data.shape[2],
            "count": data.shape[0],
            "dtype": data.dtype.name,
            "crs": raster.crs,
            "transform": raster.transform,
        }
        with rasterio.open(path, "w", **profile) as dst:
            dst.write(data)
        return path

    return _write


@pytest.fixture
def write_point_shapefile(tmp_path):
    """Factory writing a point frame to a shapefile under tmp_path."""
    import shapefile

    def _write(points: pd.DataFrame, name: str):
        path = tmp_path / f"{name}.shp"
        with shapefile.Writer(str(path), shapeType=shapefile.POINT) as w:
            w.field("id", "N")
            for i, (x, y) in enumerate(zip(points["x"], points["y"])):
                w.point(float(x), float(y))
                w.record(i)
        return path

    return _write
