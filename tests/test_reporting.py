"""Tests for diagnostics and statistics reporting."""

import json

import numpy as np
import pytest

from hazard_map.io.raster import ProbabilitySurface
from hazard_map.reporting.statistics import (
    build_diagnostics_table,
    calculate_hazard_class_stats,
    calculate_surface_stats,
    summarize_roc,
    write_json_report,
)


def test_build_diagnostics_table():
    table = build_diagnostics_table({
        "variable_importance": {"slope": 0.6, "elevation": 0.4},
        "internal_error_estimate": 0.12,
        "number_of_trees": 10,
    })
    assert list(table.columns) == ["key", "value"]
    assert list(table["key"]) == [
        "variable_importance.slope",
        "variable_importance.elevation",
        "internal_error_estimate",
        "number_of_trees",
    ]
    assert table.loc[0, "value"] == 0.6


def test_surface_stats(grid):
    data = np.full((100, 100), 0.5, dtype=np.float32)
    data[0, :] = np.nan
    stats = calculate_surface_stats(ProbabilitySurface(data=data, grid=grid))
    assert stats["count"] == 9900
    assert stats["nan_count"] == 100
    assert stats["mean"] == pytest.approx(0.5)
    assert stats["percentiles"][50] == pytest.approx(0.5)


def test_surface_stats_all_nan(grid):
    data = np.full((100, 100), np.nan, dtype=np.float32)
    stats = calculate_surface_stats(ProbabilitySurface(data=data, grid=grid))
    assert stats["count"] == 0
    assert stats["mean"] is None


def test_hazard_class_stats(grid):
    data = np.zeros((100, 100), dtype=np.float32)
    data[:, :25] = 0.8
    stats = calculate_hazard_class_stats(ProbabilitySurface(data=data, grid=grid), 0.5)
    assert stats["n_hazard"] == 2500
    assert stats["n_safe"] == 7500
    assert stats["hazard_percent"] == 25.0


def test_summarize_roc_none():
    assert summarize_roc(None) is None


def test_write_json_report(tmp_path):
    stats = {
        "auc": np.float64(0.9),
        "oob": float("nan"),
        "counts": {1: np.int64(3)},
        "shape": (2, 3),
    }
    path = write_json_report(stats, tmp_path / "out" / "report.json")
    with open(path) as f:
        loaded = json.load(f)
    assert loaded["auc"] == 0.9
    assert loaded["oob"] is None
    assert loaded["counts"] == {"1": 3}
    assert loaded["shape"] == [2, 3]
