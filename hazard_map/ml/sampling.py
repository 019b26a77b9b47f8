"""
Extract training tables from a feature stack at labeled point locations.
"""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from hazard_map.errors import OutsideExtentError
from hazard_map.features.stack import FeatureStack
from hazard_map.utils.spatial import (
    footprint_pixels,
    footprint_reduce,
    inside_mask,
    points_to_pixels,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SampledTable:
    """Training table with bookkeeping of dropped points.

    Attributes
    ----------
    table : pd.DataFrame
        One row per kept point: band columns in stack order, then the label.
        The index is the source point index.
    n_input : int
        Points offered to the sampler.
    n_outside : int
        Points dropped because they fall outside the stack extent.
    n_masked : int
        Points dropped because their footprint holds no valid data.
    """

    table: pd.DataFrame
    n_input: int
    n_outside: int = 0
    n_masked: int = 0

    @property
    def n_dropped(self) -> int:
        return self.n_outside + self.n_masked

    def __len__(self) -> int:
        return len(self.table)


def sample_points(
    stack: FeatureStack,
    points: pd.DataFrame,
    scale: float = 90.0,
    label_column: str = "label",
    on_outside: str = "warn",
) -> SampledTable:
    """
    Sample feature vectors and labels at point locations.

    Each band is averaged over a square footprint of `scale` CRS units
    centered on the pixel that contains the point.

    Parameters
    ----------
    stack : FeatureStack
        Covariate stack.
    points : pd.DataFrame
        Points with x, y and label columns.
    scale : float
        Footprint size in CRS units. Must match the resolution the
        classifier is later applied at; this is not checked.
    label_column : str
        Label column copied into the table.
    on_outside : str
        "warn" drops points outside the extent with a logged warning,
        "error" raises OutsideExtentError.

    Returns
    -------
    SampledTable
        Training table and dropped-point counts.

    Raises
    ------
    OutsideExtentError
        If `on_outside` is "error" and any point lies outside the stack.
    ValueError
        If required columns are missing or the policy is unknown.
    """
    if on_outside not in ("warn", "error"):
        raise ValueError(f"on_outside must be 'warn' or 'error', got {on_outside!r}")
    missing = [c for c in ("x", "y", label_column) if c not in points.columns]
    if missing:
        raise ValueError(f"Points are missing column(s) {missing}")

    rows, cols = points_to_pixels(stack.grid.transform, points["x"].values, points["y"].values)
    inside = inside_mask(rows, cols, stack.shape)
    n_outside = int((~inside).sum())

    if n_outside:
        message = f"{n_outside} of {len(points)} points fall outside the feature stack extent"
        if on_outside == "error":
            raise OutsideExtentError(message)
        logger.warning(f"{message}; dropped")

    size = footprint_pixels(scale, stack.grid.transform)
    features = np.full((int(inside.sum()), stack.n_bands), np.nan, dtype=np.float64)
    for band_idx in range(stack.n_bands):
        reduced = footprint_reduce(stack.data[band_idx], size, statistic="mean")
        features[:, band_idx] = reduced[rows[inside], cols[inside]]

    # Drop points whose footprint has no data in any band
    valid = np.all(np.isfinite(features), axis=1)
    n_masked = int((~valid).sum())
    if n_masked:
        logger.warning(f"{n_masked} points have no valid covariate data; dropped")

    kept = points[inside][valid]
    table = pd.DataFrame(features[valid], columns=list(stack.band_names), index=kept.index)
    table[label_column] = kept[label_column].astype(int).values

    logger.info(
        f"Sampled {len(table)} of {len(points)} points at scale {scale} "
        f"({size}x{size} pixel footprint)"
    )

    return SampledTable(
        table=table,
        n_input=len(points),
        n_outside=n_outside,
        n_masked=n_masked,
    )
