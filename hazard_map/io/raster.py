"""
Raster containers and GeoTIFF I/O for hazard-map.

Provides the Raster dataclass for covariate inputs, the ProbabilitySurface
produced by a trained classifier, and rasterio-based readers and writers.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
import rasterio
from affine import Affine
from rasterio.crs import CRS
from rasterio.enums import Resampling
from rasterio.warp import reproject

from hazard_map.utils.spatial import GridSpec

# Byte value marking pixels without a prediction in exported hazard rasters
BYTE_NODATA = 255


@dataclass(frozen=True)
class Raster:
    """A named, georeferenced covariate grid.

    Parameters
    ----------
    name : str
        Source name; identifies the covariate.
    data : np.ndarray
        (rows, cols) values, or (time, rows, cols) for a time series.
    transform : Affine
        Pixel-to-CRS transform.
    crs : CRS or str
        Spatial reference.
    nodata : float, optional
        Value marking missing pixels.
    reduction : str, optional
        How a time series collapses to one band ("mean", "max", ...).
    """

    name: str
    data: np.ndarray
    transform: Affine
    crs: CRS
    nodata: Optional[float] = None
    reduction: Optional[str] = None

    def __post_init__(self):
        if self.data.ndim not in (2, 3):
            raise ValueError(
                f"Raster '{self.name}' must be 2-D or 3-D, got shape {self.data.shape}"
            )
        if not isinstance(self.crs, CRS):
            object.__setattr__(self, "crs", CRS.from_user_input(self.crs))

    @property
    def is_time_series(self) -> bool:
        """Return True if the raster holds more than one time slice."""
        return self.data.ndim == 3

    @property
    def shape(self) -> Tuple[int, int]:
        """Return (rows, cols)."""
        return self.data.shape[-2:]

    @property
    def grid(self) -> GridSpec:
        """Return the raster's native grid."""
        rows, cols = self.shape
        return GridSpec(crs=self.crs, transform=self.transform, width=cols, height=rows)

    @property
    def resolution(self) -> float:
        """Return the pixel width in CRS units."""
        return abs(self.transform.a)

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """Return (left, bottom, right, top)."""
        return self.grid.bounds

    def masked(self) -> np.ndarray:
        """Return data as float32 with nodata replaced by NaN."""
        values = self.data.astype(np.float32)
        if self.nodata is not None and not np.isnan(self.nodata):
            values[self.data == self.nodata] = np.nan
        return values


@dataclass(frozen=True)
class ProbabilitySurface:
    """Predicted hazard probability on a pixel grid.

    Parameters
    ----------
    data : np.ndarray
        (rows, cols) float32 probabilities in [0, 1]; NaN where no prediction.
    grid : GridSpec
        Grid shared with the feature stack the surface was predicted from.
    """

    data: np.ndarray
    grid: GridSpec

    def __post_init__(self):
        if self.data.shape != self.grid.shape:
            raise ValueError(
                f"Surface shape {self.data.shape} does not match grid {self.grid.shape}"
            )
        valid = self.data[np.isfinite(self.data)]
        if valid.size and (valid.min() < 0.0 or valid.max() > 1.0):
            raise ValueError("Probability surface values must lie in [0, 1]")

    @property
    def transform(self) -> Affine:
        return self.grid.transform

    @property
    def crs(self) -> CRS:
        return self.grid.crs

    def clip(self, mask: np.ndarray) -> "ProbabilitySurface":
        """Return a copy with pixels outside `mask` set to NaN."""
        if mask.shape != self.data.shape:
            raise ValueError(f"Mask shape {mask.shape} does not match {self.data.shape}")
        return ProbabilitySurface(
            data=np.where(mask, self.data, np.nan).astype(np.float32),
            grid=self.grid,
        )

    def resample(self, resolution: float) -> "ProbabilitySurface":
        """Return the surface on a grid of another pixel size (nearest neighbour)."""
        if np.isclose(resolution, self.grid.resolution):
            return self
        target = self.grid.with_resolution(resolution)
        destination = np.full(target.shape, np.nan, dtype=np.float32)
        reproject(
            source=self.data.astype(np.float32),
            destination=destination,
            src_transform=self.grid.transform,
            src_crs=self.grid.crs,
            src_nodata=np.nan,
            dst_transform=target.transform,
            dst_crs=target.crs,
            dst_nodata=np.nan,
            resampling=Resampling.nearest,
        )
        return ProbabilitySurface(data=destination, grid=target)

    def to_byte(self) -> np.ndarray:
        """
        Scale probabilities to a 0-100 byte raster.

        Values are probability x 100 truncated to an integer; pixels
        without a prediction become BYTE_NODATA.
        """
        valid = np.isfinite(self.data)
        scaled = np.full(self.data.shape, BYTE_NODATA, dtype=np.uint8)
        scaled[valid] = np.trunc(self.data[valid].astype(np.float64) * 100.0).astype(np.uint8)
        return scaled


def load_raster(
    path: Union[str, Path],
    name: Optional[str] = None,
    reduction: Optional[str] = None,
) -> Raster:
    """
    Load a GeoTIFF into a Raster.

    Multi-band files are read as a time series (one band per time slice)
    when a reduction is given; otherwise only the first band is read.

    Parameters
    ----------
    path : str or Path
        Raster file path.
    name : str, optional
        Covariate name. Defaults to the file stem.
    reduction : str, optional
        Time-series reduction method.

    Returns
    -------
    Raster
        Loaded raster.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Raster not found: {path}")

    with rasterio.open(path) as src:
        if reduction is not None and src.count > 1:
            data = src.read()
        else:
            data = src.read(1)
        transform = src.transform
        crs = src.crs
        nodata = src.nodata

    return Raster(
        name=name or path.stem,
        data=data,
        transform=transform,
        crs=crs,
        nodata=nodata,
        reduction=reduction,
    )


def load_probability_surface(path: Union[str, Path]) -> ProbabilitySurface:
    """
    Load a probability GeoTIFF.

    Byte rasters (0-100 scale) are converted back to probabilities.
    """
    raster = load_raster(path)
    values = raster.masked().astype(np.float32)
    if raster.data.dtype == np.uint8:
        values = values / 100.0
    return ProbabilitySurface(data=values, grid=raster.grid)


def save_geotiff(
    path: Union[str, Path],
    array: np.ndarray,
    grid: GridSpec,
    nodata: Optional[float] = None,
) -> Path:
    """
    Write a single-band array to a GeoTIFF.

    Parameters
    ----------
    path : str or Path
        Output path; parent directories are created.
    array : np.ndarray
        (rows, cols) values.
    grid : GridSpec
        Grid of the array.
    nodata : float, optional
        Nodata value stored in the file.

    Returns
    -------
    Path
        Written path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    profile = {
        "driver": "GTiff",
        "height": grid.height,
        "width": grid.width,
        "count": 1,
        "dtype": array.dtype.name,
        "crs": grid.crs,
        "transform": grid.transform,
    }
    if nodata is not None:
        profile["nodata"] = nodata

    with rasterio.open(path, "w", **profile) as dst:
        dst.write(array, 1)

    return path
