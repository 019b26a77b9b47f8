"""Tests for feature stack assembly (hazard_map/features/stack.py)."""

import numpy as np
import pytest
from rasterio.transform import from_origin

from hazard_map.errors import MissingCovariateError
from hazard_map.features.stack import (
    FeatureStack,
    align_to_grid,
    build_feature_stack,
    reduce_time_series,
)
from hazard_map.io.raster import Raster

CRS_UTM = "EPSG:32645"


def _series(values, reduction=None, nodata=None):
    data = np.asarray(values, dtype=np.float32).reshape(len(values), 1, -1)
    return Raster(
        name="series",
        data=data,
        transform=from_origin(0, 10, 1, 1),
        crs=CRS_UTM,
        nodata=nodata,
        reduction=reduction,
    )


# ---------------------------------------------------------------------------
# reduce_time_series
# ---------------------------------------------------------------------------


class TestReduceTimeSeries:
    @pytest.mark.parametrize(
        "method, expected",
        [("mean", 2.0), ("max", 4.0), ("min", 0.0), ("median", 2.0), ("sum", 6.0)],
    )
    def test_reductions(self, method, expected):
        raster = _series([[0.0], [2.0], [4.0]], reduction=method)
        reduced = reduce_time_series(raster)
        assert reduced.data.shape == (1, 1)
        assert reduced.data[0, 0] == pytest.approx(expected)
        assert not reduced.is_time_series

    def test_method_overrides_raster_reduction(self):
        raster = _series([[1.0], [5.0]], reduction="mean")
        assert reduce_time_series(raster, "max").data[0, 0] == 5.0

    def test_nodata_ignored(self):
        raster = _series([[1.0, -9999.0], [3.0, -9999.0]], reduction="sum", nodata=-9999.0)
        reduced = reduce_time_series(raster)
        assert reduced.data[0, 0] == pytest.approx(4.0)
        # All slices missing stays missing, also for sum
        assert np.isnan(reduced.data[0, 1])

    def test_missing_reduction_raises(self):
        with pytest.raises(ValueError, match="needs a reduction"):
            reduce_time_series(_series([[1.0], [2.0]]))

    def test_unknown_reduction_raises(self):
        with pytest.raises(ValueError, match="Unknown reduction"):
            reduce_time_series(_series([[1.0], [2.0]], reduction="mode"))

    def test_single_band_unchanged(self, elevation):
        assert reduce_time_series(elevation) is elevation


# ---------------------------------------------------------------------------
# align_to_grid
# ---------------------------------------------------------------------------


class TestAlignToGrid:
    def test_same_grid_preserves_values(self, elevation, grid):
        aligned = align_to_grid(elevation, grid, resampling="nearest")
        np.testing.assert_allclose(aligned, elevation.data, rtol=1e-6)

    def test_coarser_grid(self, elevation, grid):
        coarse = grid.with_resolution(90.0)
        aligned = align_to_grid(elevation, coarse, resampling="average")
        assert aligned.shape == coarse.shape
        assert aligned.dtype == np.float32
        # Elevation rises eastward at 10 m per 30 m pixel
        assert aligned[10, 20] > aligned[10, 10]

    def test_outside_source_is_nan(self, elevation):
        from hazard_map.utils.spatial import GridSpec

        target = GridSpec.from_bounds(
            (503000.0, 3097000.0, 506000.0, 3100000.0), 30.0, CRS_UTM
        )
        aligned = align_to_grid(elevation, target)
        assert np.isnan(aligned).all()

    def test_time_series_rejected(self, rainfall, grid):
        with pytest.raises(ValueError, match="must be reduced"):
            align_to_grid(rainfall, grid)

    def test_unknown_resampling(self, elevation, grid):
        with pytest.raises(ValueError, match="Unknown resampling"):
            align_to_grid(elevation, grid, resampling="lanczos")


# ---------------------------------------------------------------------------
# build_feature_stack
# ---------------------------------------------------------------------------


class TestBuildFeatureStack:
    def test_default_band_order(self, covariates, grid):
        stack = build_feature_stack(covariates, grid, resampling="nearest")
        assert stack.band_names == ("elevation", "rainMean")
        assert stack.data.shape == (2, 100, 100)
        assert stack.grid == grid

    def test_time_series_reduced(self, covariates, rainfall, grid):
        stack = build_feature_stack(covariates, grid, resampling="nearest")
        expected = rainfall.data.mean(axis=0)
        np.testing.assert_allclose(stack.band("rainMean"), expected, rtol=1e-5)

    def test_declared_order(self, covariates, grid):
        stack = build_feature_stack(covariates, grid, band_names=["rainMean", "elevation"])
        assert stack.band_names == ("rainMean", "elevation")

    def test_missing_band(self, covariates, grid):
        with pytest.raises(MissingCovariateError) as exc_info:
            build_feature_stack(covariates, grid, band_names=["elevation", "slope"])
        assert exc_info.value.missing == ["slope"]
        assert "elevation" in exc_info.value.available

    def test_rename(self, elevation, grid):
        stack = build_feature_stack(
            {"dem": elevation}, grid, band_names=["elevation"], rename={"dem": "elevation"}
        )
        assert stack.band_names == ("elevation",)

    def test_duplicate_after_rename(self, elevation, grid):
        with pytest.raises(ValueError, match="Duplicate"):
            build_feature_stack(
                {"dem": elevation, "elevation": elevation},
                grid,
                rename={"dem": "elevation"},
            )

    def test_unused_covariates_ignored(self, covariates, grid):
        stack = build_feature_stack(covariates, grid, band_names=["elevation"])
        assert stack.n_bands == 1

    def test_finer_source_resolution(self, grid):
        fine = Raster(
            name="ssm",
            data=np.full((300, 300), 0.25, dtype=np.float32),
            transform=from_origin(500000.0, 3100000.0, 10.0, 10.0),
            crs=CRS_UTM,
        )
        stack = build_feature_stack([fine], grid, resampling="average")
        assert np.nanmean(stack.band("ssm")) == pytest.approx(0.25)

    def test_empty_input(self, grid):
        with pytest.raises(ValueError):
            build_feature_stack([], grid)


# ---------------------------------------------------------------------------
# FeatureStack
# ---------------------------------------------------------------------------


class TestFeatureStack:
    def test_band_count_mismatch(self, grid):
        with pytest.raises(ValueError, match="bands"):
            FeatureStack(data=np.zeros((2, 100, 100)), band_names=("a",), grid=grid)

    def test_duplicate_names(self, grid):
        with pytest.raises(ValueError, match="unique"):
            FeatureStack(data=np.zeros((2, 100, 100)), band_names=("a", "a"), grid=grid)

    def test_shape_mismatch(self, grid):
        with pytest.raises(ValueError, match="does not match"):
            FeatureStack(data=np.zeros((1, 10, 10)), band_names=("a",), grid=grid)

    def test_select_and_band(self, grid):
        data = np.stack([np.zeros((100, 100)), np.ones((100, 100))])
        stack = FeatureStack(data=data, band_names=["a", "b"], grid=grid)
        selected = stack.select(["b"])
        assert selected.band_names == ("b",)
        assert selected.band("b").mean() == 1.0
        with pytest.raises(MissingCovariateError):
            stack.band("c")
