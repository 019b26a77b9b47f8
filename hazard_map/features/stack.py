"""
Feature stack assembly for hazard-map.

Reduces time-series covariates to a single band, resamples every covariate
onto one reference grid and concatenates them into a multi-band stack.
"""

import logging
import warnings
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
from rasterio.enums import Resampling
from rasterio.warp import reproject

from hazard_map.errors import MissingCovariateError
from hazard_map.io.raster import Raster
from hazard_map.utils.spatial import GridSpec

logger = logging.getLogger(__name__)

RESAMPLING = {
    "nearest": Resampling.nearest,
    "bilinear": Resampling.bilinear,
    "cubic": Resampling.cubic,
    "average": Resampling.average,
}

REDUCERS = {
    "mean": np.nanmean,
    "max": np.nanmax,
    "min": np.nanmin,
    "median": np.nanmedian,
    "sum": np.nansum,
}


@dataclass(frozen=True)
class FeatureStack:
    """Covariates resampled onto one grid, one band per covariate.

    Parameters
    ----------
    data : np.ndarray
        (bands, rows, cols) float32 values; NaN marks missing data.
    band_names : tuple of str
        Unique band names in stacking order.
    grid : GridSpec
        Grid shared by every band.
    """

    data: np.ndarray
    band_names: Tuple[str, ...]
    grid: GridSpec

    def __post_init__(self):
        object.__setattr__(self, "band_names", tuple(self.band_names))
        if self.data.ndim != 3:
            raise ValueError(f"Stack data must be 3-D, got shape {self.data.shape}")
        if self.data.shape[0] != len(self.band_names):
            raise ValueError(
                f"Stack has {self.data.shape[0]} bands but {len(self.band_names)} names"
            )
        if len(set(self.band_names)) != len(self.band_names):
            raise ValueError(f"Band names must be unique: {self.band_names}")
        if self.data.shape[1:] != self.grid.shape:
            raise ValueError(
                f"Stack shape {self.data.shape[1:]} does not match grid {self.grid.shape}"
            )

    @property
    def n_bands(self) -> int:
        return len(self.band_names)

    @property
    def shape(self) -> Tuple[int, int]:
        """Return (rows, cols)."""
        return self.grid.shape

    def band(self, name: str) -> np.ndarray:
        """Return one band by name."""
        try:
            return self.data[self.band_names.index(name)]
        except ValueError:
            raise MissingCovariateError([name], self.band_names) from None

    def select(self, names: Sequence[str]) -> "FeatureStack":
        """Return a stack with the named bands in the given order."""
        missing = [n for n in names if n not in self.band_names]
        if missing:
            raise MissingCovariateError(missing, self.band_names)
        indices = [self.band_names.index(n) for n in names]
        return FeatureStack(data=self.data[indices], band_names=tuple(names), grid=self.grid)


def reduce_time_series(raster: Raster, method: Optional[str] = None) -> Raster:
    """
    Collapse a time-series raster to a single band.

    Parameters
    ----------
    raster : Raster
        Raster with (time, rows, cols) data. 2-D rasters are returned as is.
    method : str, optional
        Reduction name; defaults to the raster's own `reduction`.

    Returns
    -------
    Raster
        2-D raster; nodata pixels are NaN.

    Raises
    ------
    ValueError
        If no reduction is known or the method is not supported.
    """
    if not raster.is_time_series:
        return raster

    method = method or raster.reduction
    if method is None:
        raise ValueError(
            f"Covariate '{raster.name}' is a time series of {raster.data.shape[0]} "
            "slices and needs a reduction method"
        )
    if method not in REDUCERS:
        raise ValueError(f"Unknown reduction {method!r}; choose from {sorted(REDUCERS)}")

    values = raster.masked()
    # All-NaN pixels stay NaN without warning
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", category=RuntimeWarning)
        reduced = REDUCERS[method](values, axis=0)
    if method == "sum":
        reduced = np.where(np.all(np.isnan(values), axis=0), np.nan, reduced)

    return Raster(
        name=raster.name,
        data=reduced.astype(np.float32),
        transform=raster.transform,
        crs=raster.crs,
        nodata=np.nan,
        reduction=None,
    )


def align_to_grid(
    raster: Raster,
    grid: GridSpec,
    resampling: str = "bilinear",
) -> np.ndarray:
    """
    Resample a single-band raster onto a target grid.

    Parameters
    ----------
    raster : Raster
        2-D raster in any CRS.
    grid : GridSpec
        Target grid.
    resampling : str
        One of "nearest", "bilinear", "cubic", "average".

    Returns
    -------
    np.ndarray
        (rows, cols) float32 array; NaN where the source has no data.
    """
    if raster.is_time_series:
        raise ValueError(f"Covariate '{raster.name}' must be reduced before alignment")
    if resampling not in RESAMPLING:
        raise ValueError(f"Unknown resampling {resampling!r}; choose from {sorted(RESAMPLING)}")

    destination = np.full(grid.shape, np.nan, dtype=np.float32)
    reproject(
        source=raster.masked(),
        destination=destination,
        src_transform=raster.transform,
        src_crs=raster.crs,
        src_nodata=np.nan,
        dst_transform=grid.transform,
        dst_crs=grid.crs,
        dst_nodata=np.nan,
        resampling=RESAMPLING[resampling],
    )
    return destination


def build_feature_stack(
    covariates: Union[Sequence[Raster], Mapping[str, Raster]],
    grid: GridSpec,
    band_names: Optional[Sequence[str]] = None,
    rename: Optional[Mapping[str, str]] = None,
    resampling: str = "bilinear",
) -> FeatureStack:
    """
    Build a feature stack from named covariate rasters.

    Parameters
    ----------
    covariates : sequence of Raster or mapping
        Covariate sources. A mapping's keys override raster names.
    grid : GridSpec
        Reference grid every covariate is resampled onto.
    band_names : sequence of str, optional
        Declared canonical bands in stacking order. Defaults to the
        (renamed) covariate order.
    rename : mapping, optional
        Source name to canonical band name.
    resampling : str
        Resampling method used for alignment.

    Returns
    -------
    FeatureStack
        Stack with one band per declared name.

    Raises
    ------
    MissingCovariateError
        If a declared band has no matching covariate.
    ValueError
        If a time-series covariate has no reduction, or names collide.
    """
    rename = dict(rename or {})

    if isinstance(covariates, Mapping):
        named = [(key, raster) for key, raster in covariates.items()]
    else:
        named = [(raster.name, raster) for raster in covariates]

    sources: Dict[str, Raster] = {}
    for source_name, raster in named:
        canonical = rename.get(source_name, source_name)
        if canonical in sources:
            raise ValueError(f"Duplicate covariate for band '{canonical}'")
        sources[canonical] = raster

    if band_names is None:
        band_names = list(sources)
    band_names = list(band_names)
    if not band_names:
        raise ValueError("At least one band is required")
    if len(set(band_names)) != len(band_names):
        raise ValueError(f"Band names must be unique: {band_names}")

    missing = [name for name in band_names if name not in sources]
    if missing:
        raise MissingCovariateError(missing, list(sources))

    bands: List[np.ndarray] = []
    for name in band_names:
        raster = reduce_time_series(sources[name])
        bands.append(align_to_grid(raster, grid, resampling=resampling))
        logger.debug(f"Aligned covariate '{name}' onto {grid.height}x{grid.width} grid")

    unused = sorted(set(sources) - set(band_names))
    if unused:
        logger.info(f"Covariates not in declared bands were ignored: {unused}")

    return FeatureStack(
        data=np.stack(bands, axis=0).astype(np.float32),
        band_names=tuple(band_names),
        grid=grid,
    )
