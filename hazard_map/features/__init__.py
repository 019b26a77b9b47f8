"""Feature stack assembly and terrain covariates."""

from hazard_map.features.stack import (
    FeatureStack,
    align_to_grid,
    build_feature_stack,
    reduce_time_series,
)
from hazard_map.features.terrain import (
    calculate_slope,
    calculate_tpi,
    derive_terrain_covariates,
)

__all__ = [
    "FeatureStack",
    "align_to_grid",
    "build_feature_stack",
    "reduce_time_series",
    "calculate_slope",
    "calculate_tpi",
    "derive_terrain_covariates",
]
