"""Tests for hazard_map.ml.config."""

import pytest

from hazard_map.ml.config import MLConfig


class TestMLConfig:
    def test_defaults(self):
        config = MLConfig()
        assert config.n_estimators == 10
        assert config.max_depth is None
        assert config.oob_score is True
        assert config.random_state == 42

    def test_custom_values(self):
        config = MLConfig(n_estimators=200, max_depth=8, class_weight="balanced")
        assert config.n_estimators == 200
        assert config.max_depth == 8
        assert config.class_weight == "balanced"

    def test_rejects_zero_trees(self):
        with pytest.raises(ValueError):
            MLConfig(n_estimators=0)

    def test_rejects_zero_leaf_size(self):
        with pytest.raises(ValueError):
            MLConfig(min_samples_leaf=0)
