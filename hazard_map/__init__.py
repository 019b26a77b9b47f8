"""
hazard-map: Hazard probability mapping from environmental covariates.

A Python tool for predicting spatial hazard probability (e.g. landslide
susceptibility) from a stack of raster covariates with a random forest
trained on labeled event points, evaluated by a full ROC/AUC sweep.
"""

__version__ = "0.1.0"

# Import public API
from hazard_map.config import DEFAULT_BANDS, HazardConfig, load_config, save_config
from hazard_map.errors import (
    ExportFailure,
    HazardMapError,
    InsufficientEvaluationDataError,
    MissingCovariateError,
    OutsideExtentError,
)
from hazard_map.io import (
    Boundary,
    LocalExporter,
    ProbabilitySurface,
    Raster,
    load_boundary,
    load_points,
    load_raster,
    make_points,
)
from hazard_map.features import FeatureStack, build_feature_stack
from hazard_map.ml import (
    MLConfig,
    RandomForestAdapter,
    ROCResult,
    evaluate_roc,
    sample_points,
    split_samples,
)
from hazard_map.pipeline import HazardMapper, HazardResult
from hazard_map.utils import GridSpec

__all__ = [
    "__version__",
    # Config
    "DEFAULT_BANDS",
    "HazardConfig",
    "MLConfig",
    "load_config",
    "save_config",
    # Errors
    "ExportFailure",
    "HazardMapError",
    "InsufficientEvaluationDataError",
    "MissingCovariateError",
    "OutsideExtentError",
    # I/O
    "Boundary",
    "LocalExporter",
    "ProbabilitySurface",
    "Raster",
    "load_boundary",
    "load_points",
    "load_raster",
    "make_points",
    # Pipeline stages
    "GridSpec",
    "FeatureStack",
    "build_feature_stack",
    "split_samples",
    "sample_points",
    "RandomForestAdapter",
    "ROCResult",
    "evaluate_roc",
    # Pipeline
    "HazardMapper",
    "HazardResult",
]
