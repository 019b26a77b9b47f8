"""
Configuration module for hazard-map.

Contains the HazardConfig dataclass with all run parameters and the
default covariate set of the landslide hazard workflow.
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from hazard_map.ml.config import MLConfig


# Canonical covariate bands of the landslide workflow, in stacking order.
DEFAULT_BANDS: List[str] = [
    "ssm",
    "susm",
    "rainMean",
    "rainMax",
    "elevation",
    "slope",
    "alosTopographicDiversity",
    "alosMtpi",
]

RESAMPLING_METHODS = ("nearest", "bilinear", "cubic", "average")
OUTSIDE_EXTENT_POLICIES = ("warn", "error")


@dataclass
class HazardConfig:
    """Configuration for a hazard mapping run.

    Parameters
    ----------
    split_fraction : float
        Fraction of each class pool routed to training, in (0, 1).
    seed : int
        Seed for the partition tags; same seed gives the same split.
    label_column : str
        Name of the binary label column in training tables.
    bands : list of str, optional
        Declared band order. If None, the covariate order is used.
    rename : dict
        Mapping of covariate source names to canonical band names.
    resampling : str
        Resampling method used to align covariates to the stack grid.
    stack_scale : float
        Pixel size of the feature stack (CRS units).
    sampling_scale : float
        Footprint size used to extract training features.
    evaluation_scale : float
        Footprint size used to extract held-out scores for the ROC sweep.
    export_scale : float
        Pixel size of the exported hazard raster.
    roc_min : float
        Lowest cutoff of the sweep (inclusive).
    roc_max : float
        Highest cutoff of the sweep (inclusive).
    roc_steps : int
        Number of cutoffs in the sweep.
    roc_n_jobs : int
        Parallel workers for the sweep (joblib semantics).
    outside_extent : str
        "warn" to drop points outside the stack with a warning, "error" to raise.
    derive_terrain : bool
        Derive slope and TPI bands from the "elevation" covariate.
    output_dir : Path
        Default output directory.
    export_folder : str
        Sub-folder for exported artifacts.
    model : MLConfig
        Classifier hyperparameters.
    """

    # Sample splitting
    split_fraction: float = 0.7
    seed: int = 42
    label_column: str = "label"

    # Feature stack
    bands: Optional[List[str]] = None
    rename: Dict[str, str] = field(default_factory=dict)
    resampling: str = "bilinear"
    stack_scale: float = 30.0
    derive_terrain: bool = False

    # Sampling
    sampling_scale: float = 90.0
    outside_extent: str = "warn"

    # ROC sweep
    evaluation_scale: float = 100.0
    roc_min: float = 0.0
    roc_max: float = 1.0
    roc_steps: int = 1000
    roc_n_jobs: int = 1

    # Output settings
    export_scale: float = 30.0
    output_dir: Path = field(default_factory=lambda: Path("./output"))
    export_folder: str = "hazardMap"

    model: MLConfig = field(default_factory=MLConfig)

    def __post_init__(self):
        """Convert paths and validate values."""
        if isinstance(self.output_dir, str):
            self.output_dir = Path(self.output_dir)
        if isinstance(self.model, dict):
            self.model = MLConfig(**self.model)

        if not 0.0 < self.split_fraction < 1.0:
            raise ValueError(
                f"split_fraction must be in (0, 1), got {self.split_fraction}"
            )
        if self.resampling not in RESAMPLING_METHODS:
            raise ValueError(
                f"resampling must be one of {RESAMPLING_METHODS}, got {self.resampling!r}"
            )
        if self.outside_extent not in OUTSIDE_EXTENT_POLICIES:
            raise ValueError(
                f"outside_extent must be one of {OUTSIDE_EXTENT_POLICIES}, "
                f"got {self.outside_extent!r}"
            )
        if self.roc_steps < 2:
            raise ValueError(f"roc_steps must be >= 2, got {self.roc_steps}")
        if self.roc_min >= self.roc_max:
            raise ValueError(
                f"roc_min ({self.roc_min}) must be below roc_max ({self.roc_max})"
            )
        for name in ("stack_scale", "sampling_scale", "evaluation_scale", "export_scale"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")


def load_config(yaml_path: Path) -> HazardConfig:
    """
    Load configuration from YAML file.

    Parameters
    ----------
    yaml_path : Path
        Path to YAML configuration file.

    Returns
    -------
    HazardConfig
        Configuration object with values from file.

    Raises
    ------
    FileNotFoundError
        If the YAML file does not exist.
    ValueError
        If the YAML file contains invalid configuration.
    """
    yaml_path = Path(yaml_path)
    if not yaml_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

    with open(yaml_path) as f:
        data = yaml.safe_load(f)

    if data is None:
        return HazardConfig()

    try:
        return HazardConfig(**_flatten_config(data))
    except TypeError as e:
        raise ValueError(f"Invalid configuration in {yaml_path}: {e}") from e


def save_config(config: HazardConfig, yaml_path: Path) -> None:
    """
    Save configuration to YAML file.

    Parameters
    ----------
    config : HazardConfig
        Configuration object to save.
    yaml_path : Path
        Path to output YAML file.
    """
    data = _unflatten_config(config)

    yaml_path = Path(yaml_path)
    yaml_path.parent.mkdir(parents=True, exist_ok=True)
    with open(yaml_path, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)


# Keys that keep their own name inside each YAML section
_SECTION_KEYS = {
    "split": {"fraction": "split_fraction", "seed": "seed", "label_column": "label_column"},
    "features": {
        "bands": "bands",
        "rename": "rename",
        "resampling": "resampling",
        "scale": "stack_scale",
        "derive_terrain": "derive_terrain",
    },
    "sampling": {"scale": "sampling_scale", "outside_extent": "outside_extent"},
    "roc": {
        "min": "roc_min",
        "max": "roc_max",
        "steps": "roc_steps",
        "scale": "evaluation_scale",
        "n_jobs": "roc_n_jobs",
    },
    "output": {
        "output_dir": "output_dir",
        "folder": "export_folder",
        "scale": "export_scale",
    },
}


def _flatten_config(data: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten nested YAML structure to flat config dict."""
    result: Dict[str, Any] = {}

    for key, value in data.items():
        if key == "model":
            result["model"] = MLConfig(**(value or {}))
        elif key in _SECTION_KEYS and isinstance(value, dict):
            mapping = _SECTION_KEYS[key]
            for sub_key, sub_value in value.items():
                # Accept both short ("steps") and flat ("roc_steps") names
                result[mapping.get(sub_key, sub_key)] = sub_value
        else:
            result[key] = value

    return result


def _unflatten_config(config: HazardConfig) -> Dict[str, Any]:
    """Convert flat config to nested structure for YAML output."""
    nested: Dict[str, Any] = {}
    for section, mapping in _SECTION_KEYS.items():
        nested[section] = {}
        for short, flat in mapping.items():
            value = getattr(config, flat)
            if isinstance(value, Path):
                value = str(value)
            nested[section][short] = value
    nested["model"] = asdict(config.model)
    return nested
