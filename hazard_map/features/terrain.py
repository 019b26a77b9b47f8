"""
Terrain covariates derived from an elevation model.

Calculates slope angle and topographic position index (TPI) so that an
elevation raster can supply the terrain bands of the feature stack.
"""

from typing import List

import numpy as np
from affine import Affine
from scipy.ndimage import uniform_filter

from hazard_map.io.raster import Raster


def calculate_slope(elevation: np.ndarray, transform: Affine) -> np.ndarray:
    """
    Calculate slope angle from an elevation grid.

    - 0° = flat terrain
    - 90° = vertical face

    Parameters
    ----------
    elevation : np.ndarray
        (rows, cols) elevations in CRS vertical units.
    transform : Affine
        Grid transform; pixel sizes must share units with elevation.

    Returns
    -------
    slope_deg : np.ndarray
        (rows, cols) slope in degrees; NaN where elevation is NaN.
    """
    if elevation.ndim != 2:
        raise ValueError(f"elevation must be 2-D, got shape {elevation.shape}")

    cellsize_x = abs(transform.a)
    cellsize_y = abs(transform.e)

    if min(elevation.shape) < 2:
        return np.zeros(elevation.shape, dtype=np.float32)

    dz_dy, dz_dx = np.gradient(elevation.astype(np.float64), cellsize_y, cellsize_x)
    slope_deg = np.degrees(np.arctan(np.hypot(dz_dx, dz_dy)))

    return slope_deg.astype(np.float32)


def calculate_tpi(elevation: np.ndarray, window: int = 9) -> np.ndarray:
    """
    Calculate the topographic position index.

    TPI is the elevation minus the mean elevation of the surrounding
    window; positive on ridges, negative in valleys.

    Parameters
    ----------
    elevation : np.ndarray
        (rows, cols) elevations.
    window : int
        Neighborhood width in pixels.

    Returns
    -------
    tpi : np.ndarray
        (rows, cols) float32 TPI; NaN where elevation is NaN.
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")

    values = elevation.astype(np.float64)
    valid = np.isfinite(values)
    filled = np.where(valid, values, 0.0)

    total = uniform_filter(filled, size=window, mode="nearest")
    count = uniform_filter(valid.astype(np.float64), size=window, mode="nearest")
    local_mean = total / np.maximum(count, 1e-9)

    tpi = np.where(valid, values - local_mean, np.nan)
    return tpi.astype(np.float32)


def derive_terrain_covariates(dem: Raster, tpi_window: int = 9) -> List[Raster]:
    """
    Derive slope and TPI covariates from an elevation raster.

    Parameters
    ----------
    dem : Raster
        2-D elevation raster.
    tpi_window : int
        TPI neighborhood width in pixels.

    Returns
    -------
    list of Raster
        Rasters named "slope" and "tpi" on the DEM's grid.
    """
    if dem.is_time_series:
        raise ValueError("Elevation must be a single band")

    elevation = dem.masked()
    return [
        Raster(
            name="slope",
            data=calculate_slope(elevation, dem.transform),
            transform=dem.transform,
            crs=dem.crs,
            nodata=np.nan,
        ),
        Raster(
            name="tpi",
            data=calculate_tpi(elevation, window=tpi_window),
            transform=dem.transform,
            crs=dem.crs,
            nodata=np.nan,
        ),
    ]
