"""Tests for training table extraction."""

import logging

import numpy as np
import pandas as pd
import pytest

from hazard_map.errors import OutsideExtentError
from hazard_map.features.stack import FeatureStack, build_feature_stack
from hazard_map.io.points import make_points
from hazard_map.ml.sampling import sample_points

ORIGIN_X = 500000.0
ORIGIN_Y = 3100000.0


@pytest.fixture
def stack(covariates, grid):
    return build_feature_stack(covariates, grid, resampling="nearest")


@pytest.fixture
def constant_stack(grid):
    data = np.stack([np.full((100, 100), 2.0), np.full((100, 100), 5.0)]).astype(np.float32)
    return FeatureStack(data=data, band_names=("a", "b"), grid=grid)


def test_table_columns_and_index(stack, events):
    sampled = sample_points(stack, events, scale=90.0)
    assert list(sampled.table.columns) == ["elevation", "rainMean", "label"]
    pd.testing.assert_index_equal(sampled.table.index, events.index)
    assert len(sampled) == 100
    assert sampled.n_input == 100
    assert sampled.n_dropped == 0


def test_labels_copied(stack, events, non_events):
    points = pd.concat([events, non_events], ignore_index=True)
    sampled = sample_points(stack, points)
    assert sampled.table["label"].sum() == 100
    assert sampled.table["label"].dtype.kind == "i"


def test_values_reflect_covariates(stack, events, non_events):
    west = sample_points(stack, events).table
    east = sample_points(stack, non_events).table
    assert west["elevation"].mean() < east["elevation"].mean()
    assert west["rainMean"].mean() > east["rainMean"].mean()


def test_footprint_mean(constant_stack):
    points = make_points([ORIGIN_X + 1500.0], [ORIGIN_Y - 1500.0], label=1)
    sampled = sample_points(constant_stack, points, scale=150.0)
    assert sampled.table.loc[0, "a"] == pytest.approx(2.0)
    assert sampled.table.loc[0, "b"] == pytest.approx(5.0)


def test_outside_points_dropped_with_warning(constant_stack, caplog):
    points = make_points(
        [ORIGIN_X + 100.0, ORIGIN_X - 500.0], [ORIGIN_Y - 100.0, ORIGIN_Y - 100.0], label=1
    )
    with caplog.at_level(logging.WARNING, logger="hazard_map.ml.sampling"):
        sampled = sample_points(constant_stack, points)
    assert len(sampled) == 1
    assert sampled.n_outside == 1
    assert "outside" in caplog.text


def test_outside_points_error_policy(constant_stack):
    points = make_points([ORIGIN_X - 500.0], [ORIGIN_Y - 100.0], label=0)
    with pytest.raises(OutsideExtentError):
        sample_points(constant_stack, points, on_outside="error")


def test_masked_points_dropped(grid):
    data = np.full((1, 100, 100), 1.0, dtype=np.float32)
    data[0, :, :50] = np.nan
    stack = FeatureStack(data=data, band_names=("a",), grid=grid)
    points = make_points(
        [ORIGIN_X + 300.0, ORIGIN_X + 2500.0], [ORIGIN_Y - 300.0, ORIGIN_Y - 300.0], label=1
    )
    sampled = sample_points(stack, points, scale=90.0)
    assert sampled.n_masked == 1
    assert list(sampled.table.index) == [1]


def test_missing_columns(constant_stack):
    points = make_points([ORIGIN_X], [ORIGIN_Y])
    with pytest.raises(ValueError, match="missing"):
        sample_points(constant_stack, points)


def test_invalid_policy(constant_stack, events):
    with pytest.raises(ValueError):
        sample_points(constant_stack, events, on_outside="skip")
