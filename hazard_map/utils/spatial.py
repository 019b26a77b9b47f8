"""
Grid and footprint utilities for hazard-map.

Provides the GridSpec class describing a target pixel grid and the
footprint reductions used to read raster values at point locations.
"""

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from affine import Affine
from rasterio.crs import CRS
from rasterio.transform import array_bounds, from_origin
from scipy.ndimage import maximum_filter, uniform_filter


@dataclass(frozen=True)
class GridSpec:
    """A georeferenced pixel grid.

    Parameters
    ----------
    crs : CRS
        Spatial reference of the grid.
    transform : Affine
        Pixel-to-CRS affine transform (north-up).
    width : int
        Number of columns.
    height : int
        Number of rows.
    """

    crs: CRS
    transform: Affine
    width: int
    height: int

    def __post_init__(self):
        if not isinstance(self.crs, CRS):
            object.__setattr__(self, "crs", CRS.from_user_input(self.crs))
        if self.width < 1 or self.height < 1:
            raise ValueError(
                f"Grid must have at least one pixel, got {self.height}x{self.width}"
            )

    @classmethod
    def from_bounds(
        cls,
        bounds: Tuple[float, float, float, float],
        resolution: float,
        crs,
    ) -> "GridSpec":
        """
        Build a grid covering bounds at a square pixel size.

        Parameters
        ----------
        bounds : tuple
            (left, bottom, right, top) in CRS units.
        resolution : float
            Pixel size in CRS units.
        crs : CRS or str
            Spatial reference.
        """
        left, bottom, right, top = bounds
        if right <= left or top <= bottom:
            raise ValueError(f"Invalid bounds: {bounds}")
        width = max(1, int(math.ceil((right - left) / resolution)))
        height = max(1, int(math.ceil((top - bottom) / resolution)))
        return cls(
            crs=crs,
            transform=from_origin(left, top, resolution, resolution),
            width=width,
            height=height,
        )

    @property
    def shape(self) -> Tuple[int, int]:
        """Return (rows, cols)."""
        return (self.height, self.width)

    @property
    def resolution(self) -> float:
        """Return the pixel width in CRS units."""
        return abs(self.transform.a)

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """Return (left, bottom, right, top)."""
        return array_bounds(self.height, self.width, self.transform)

    def with_resolution(self, resolution: float) -> "GridSpec":
        """Return a grid over the same bounds at another pixel size."""
        return GridSpec.from_bounds(self.bounds, resolution, self.crs)


def points_to_pixels(
    transform: Affine, x: np.ndarray, y: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert CRS coordinates to integer (row, col) pixel indices.

    Parameters
    ----------
    transform : Affine
        Raster transform.
    x, y : np.ndarray
        (N,) coordinate arrays.

    Returns
    -------
    rows, cols : np.ndarray
        (N,) int64 pixel indices; may be outside the raster.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    inverse = ~transform
    cols = inverse.a * x + inverse.b * y + inverse.c
    rows = inverse.d * x + inverse.e * y + inverse.f
    return np.floor(rows).astype(np.int64), np.floor(cols).astype(np.int64)


def inside_mask(rows: np.ndarray, cols: np.ndarray, shape: Tuple[int, int]) -> np.ndarray:
    """Return True for pixel indices inside an array of the given shape."""
    height, width = shape
    return (rows >= 0) & (rows < height) & (cols >= 0) & (cols < width)


def footprint_pixels(scale: float, transform: Affine) -> int:
    """
    Odd number of pixels spanning a footprint of `scale` CRS units (at least 1).

    An even pixel count is widened by one so the footprint stays centered
    on the point's pixel.
    """
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}")
    size = max(1, int(round(scale / abs(transform.a))))
    if size % 2 == 0:
        size += 1
    return size


def footprint_reduce(array: np.ndarray, size: int, statistic: str = "mean") -> np.ndarray:
    """
    Reduce every pixel's size x size neighborhood, ignoring NaN.

    Parameters
    ----------
    array : np.ndarray
        (rows, cols) values; NaN marks missing data.
    size : int
        Odd footprint width in pixels, centered on each pixel.
    statistic : str
        "mean" or "max".

    Returns
    -------
    np.ndarray
        (rows, cols) float64 array; NaN where the footprint has no valid data.
    """
    values = np.asarray(array, dtype=np.float64)
    if size <= 1:
        return values.copy()
    if size % 2 == 0:
        raise ValueError(f"Footprint width must be odd, got {size}")

    valid = np.isfinite(values)

    if statistic == "max":
        filled = np.where(valid, values, -np.inf)
        reduced = maximum_filter(filled, size=size, mode="constant", cval=-np.inf)
        return np.where(np.isneginf(reduced), np.nan, reduced)

    if statistic == "mean":
        filled = np.where(valid, values, 0.0)
        total = uniform_filter(filled, size=size, mode="constant", cval=0.0)
        count = uniform_filter(valid.astype(np.float64), size=size, mode="constant", cval=0.0)
        # uniform_filter leaves round-off noise where the count is zero
        has_data = count > 1e-9
        return np.where(has_data, total / np.where(has_data, count, 1.0), np.nan)

    raise ValueError(f"Unknown footprint statistic: {statistic!r}")


def sample_footprints(
    array: np.ndarray,
    transform: Affine,
    x: np.ndarray,
    y: np.ndarray,
    scale: float,
    statistic: str = "mean",
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Read a footprint statistic of a 2-D raster at point locations.

    Parameters
    ----------
    array : np.ndarray
        (rows, cols) raster values.
    transform : Affine
        Raster transform.
    x, y : np.ndarray
        (N,) point coordinates.
    scale : float
        Footprint size in CRS units.
    statistic : str
        "mean" or "max".

    Returns
    -------
    values : np.ndarray
        (N,) values; NaN for points outside the raster.
    inside : np.ndarray
        (N,) boolean mask of points inside the raster extent.
    """
    rows, cols = points_to_pixels(transform, x, y)
    inside = inside_mask(rows, cols, array.shape)

    reduced = footprint_reduce(array, footprint_pixels(scale, transform), statistic)

    values = np.full(len(rows), np.nan, dtype=np.float64)
    values[inside] = reduced[rows[inside], cols[inside]]
    return values, inside
