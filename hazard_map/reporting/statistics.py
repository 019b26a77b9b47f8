"""
Statistics and diagnostics for hazard mapping results.

Builds the key/value diagnostics table, summarizes probability surfaces
and ROC evaluations, and writes JSON run reports.
"""

import json
import math
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import pandas as pd

from hazard_map.io.raster import ProbabilitySurface


def build_diagnostics_table(explanation: Dict[str, Any]) -> pd.DataFrame:
    """
    Flatten a classifier explanation into key/value rows.

    Parameters
    ----------
    explanation : dict
        Output of ``TrainedClassifier.explain()``.

    Returns
    -------
    pd.DataFrame
        Columns "key" and "value". Importances appear as
        ``variable_importance.<band>``; scalar entries keep their key.
    """
    rows = []
    for key, value in explanation.items():
        if isinstance(value, dict):
            for sub_key, sub_value in value.items():
                rows.append({"key": f"{key}.{sub_key}", "value": sub_value})
        else:
            rows.append({"key": key, "value": value})
    return pd.DataFrame(rows, columns=["key", "value"])


def calculate_surface_stats(
    surface: ProbabilitySurface,
    percentiles: tuple = (5, 25, 50, 75, 95),
) -> Dict:
    """
    Calculate summary statistics of a probability surface.

    Parameters
    ----------
    surface : ProbabilitySurface
        Predicted probabilities.
    percentiles : tuple
        Percentiles to calculate.

    Returns
    -------
    dict
        Dictionary with statistics:
        - 'count': Number of predicted pixels
        - 'nan_count': Number of pixels without prediction
        - 'mean', 'std', 'min', 'max': Basic statistics
        - 'percentiles': Dict mapping percentile to value
    """
    values = surface.data.ravel()
    valid_mask = np.isfinite(values)
    valid_values = values[valid_mask]

    stats = {
        "count": int(valid_mask.sum()),
        "nan_count": int((~valid_mask).sum()),
    }

    if len(valid_values) > 0:
        stats["mean"] = float(np.mean(valid_values))
        stats["std"] = float(np.std(valid_values))
        stats["min"] = float(np.min(valid_values))
        stats["max"] = float(np.max(valid_values))
        stats["percentiles"] = {
            p: float(np.percentile(valid_values, p)) for p in percentiles
        }
    else:
        stats["mean"] = stats["std"] = stats["min"] = stats["max"] = None
        stats["percentiles"] = {p: None for p in percentiles}

    return stats


def calculate_hazard_class_stats(surface: ProbabilitySurface, cutoff: float) -> Dict:
    """
    Count pixels classified as hazardous at a cutoff (probability >= cutoff).

    Returns
    -------
    dict
        'cutoff', 'n_hazard', 'n_safe' and 'hazard_percent'.
    """
    values = surface.data[np.isfinite(surface.data)]
    n_hazard = int((values >= cutoff).sum())
    n_total = len(values)
    return {
        "cutoff": float(cutoff),
        "n_hazard": n_hazard,
        "n_safe": n_total - n_hazard,
        "hazard_percent": round(100 * n_hazard / n_total, 2) if n_total > 0 else 0.0,
    }


def summarize_roc(roc) -> Optional[Dict]:
    """Return the scalar summary of an ROCResult, or None."""
    if roc is None:
        return None
    return roc.to_dict()


def calculate_all_statistics(result) -> Dict:
    """
    Calculate all statistics of a HazardResult.

    Parameters
    ----------
    result : HazardResult
        Completed run.

    Returns
    -------
    dict
        Run summary suitable for a JSON report.
    """
    stats: Dict[str, Any] = {
        "run_name": result.run_name,
        "split": result.split.summary(),
        "sampling": {
            "n_input": result.training.n_input,
            "n_rows": len(result.training),
            "n_outside": result.training.n_outside,
            "n_masked": result.training.n_masked,
        },
        "model": result.model.explain(),
        "surface": calculate_surface_stats(result.probability),
        "roc": summarize_roc(result.roc),
        "timing": dict(result.timing),
    }

    if result.roc is not None:
        stats["hazard_classes"] = calculate_hazard_class_stats(
            result.probability, result.roc.best_cutoff
        )
    if result.roc_error is not None:
        stats["roc_error"] = str(result.roc_error)

    return stats


def _json_safe(value):
    """Convert numpy scalars and NaN for JSON output."""
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def write_json_report(stats: Dict, path: Union[str, Path]) -> Path:
    """Write a statistics dictionary as indented JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(_json_safe(stats), f, indent=2, default=str)
    return path
