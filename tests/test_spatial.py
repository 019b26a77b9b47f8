"""Tests for grid and footprint utilities."""

import numpy as np
import pytest
from affine import Affine

from hazard_map.utils.spatial import (
    GridSpec,
    footprint_pixels,
    footprint_reduce,
    inside_mask,
    points_to_pixels,
    sample_footprints,
)

CRS_UTM = "EPSG:32645"
ORIGIN_X = 500000.0
ORIGIN_Y = 3100000.0


class TestGridSpec:
    def test_from_bounds(self):
        grid = GridSpec.from_bounds((0.0, 0.0, 300.0, 150.0), 30.0, CRS_UTM)
        assert grid.shape == (5, 10)
        assert grid.resolution == 30.0
        assert grid.bounds == pytest.approx((0.0, 0.0, 300.0, 150.0))

    def test_from_bounds_rounds_up(self):
        grid = GridSpec.from_bounds((0.0, 0.0, 100.0, 100.0), 30.0, CRS_UTM)
        assert grid.shape == (4, 4)

    def test_invalid_bounds(self):
        with pytest.raises(ValueError, match="Invalid bounds"):
            GridSpec.from_bounds((10.0, 0.0, 0.0, 10.0), 1.0, CRS_UTM)

    def test_crs_from_string(self, grid):
        assert grid.crs.to_epsg() == 32645

    def test_with_resolution(self, grid):
        coarse = grid.with_resolution(90.0)
        assert coarse.resolution == 90.0
        assert coarse.shape == (34, 34)

    def test_empty_grid_rejected(self, transform):
        with pytest.raises(ValueError):
            GridSpec(crs=CRS_UTM, transform=transform, width=0, height=10)


class TestPointsToPixels:
    def test_pixel_centers(self, transform):
        x = np.array([ORIGIN_X + 15.0, ORIGIN_X + 45.0])
        y = np.array([ORIGIN_Y - 15.0, ORIGIN_Y - 75.0])
        rows, cols = points_to_pixels(transform, x, y)
        np.testing.assert_array_equal(rows, [0, 2])
        np.testing.assert_array_equal(cols, [0, 1])

    def test_outside_points_negative(self, transform):
        rows, cols = points_to_pixels(
            transform, np.array([ORIGIN_X - 1.0]), np.array([ORIGIN_Y + 1.0])
        )
        assert rows[0] == -1
        assert cols[0] == -1

    def test_inside_mask(self):
        rows = np.array([0, -1, 5, 9])
        cols = np.array([0, 0, 10, 9])
        np.testing.assert_array_equal(
            inside_mask(rows, cols, (10, 10)), [True, False, False, True]
        )


class TestFootprints:
    def test_footprint_pixels(self, transform):
        assert footprint_pixels(30.0, transform) == 1
        assert footprint_pixels(90.0, transform) == 3
        assert footprint_pixels(100.0, transform) == 3
        assert footprint_pixels(5.0, transform) == 1

    def test_footprint_pixels_is_odd(self, transform):
        coarse = Affine(45.0, 0.0, ORIGIN_X, 0.0, -45.0, ORIGIN_Y)
        assert footprint_pixels(90.0, coarse) == 3
        assert footprint_pixels(60.0, transform) == 3
        assert footprint_pixels(120.0, transform) == 5

    def test_footprint_is_symmetric(self):
        west = np.zeros((9, 9))
        west[4, 3] = 1.0
        east = np.zeros((9, 9))
        east[4, 5] = 1.0
        size = footprint_pixels(90.0, Affine(45.0, 0.0, 0.0, 0.0, -45.0, 0.0))
        for statistic in ("max", "mean"):
            assert footprint_reduce(west, size, statistic)[4, 4] == pytest.approx(
                footprint_reduce(east, size, statistic)[4, 4]
            )
        assert footprint_reduce(east, size, "max")[4, 4] == 1.0

    def test_even_width_rejected(self):
        with pytest.raises(ValueError, match="odd"):
            footprint_reduce(np.zeros((5, 5)), 2, "max")

    def test_footprint_pixels_rejects_non_positive(self, transform):
        with pytest.raises(ValueError):
            footprint_pixels(0.0, transform)

    def test_mean_ignores_nan(self):
        array = np.array([
            [1.0, np.nan, 3.0],
            [1.0, 1.0, 1.0],
            [1.0, 1.0, 1.0],
        ])
        reduced = footprint_reduce(array, 3, "mean")
        assert reduced[1, 1] == pytest.approx(10.0 / 8.0)

    def test_mean_all_nan_footprint(self):
        array = np.full((5, 5), np.nan)
        array[0, 0] = 2.0
        reduced = footprint_reduce(array, 3, "mean")
        assert reduced[1, 1] == pytest.approx(2.0)
        assert np.isnan(reduced[4, 4])

    def test_max_ignores_nan(self):
        array = np.zeros((5, 5))
        array[2, 3] = 0.8
        array[2, 1] = np.nan
        reduced = footprint_reduce(array, 3, "max")
        assert reduced[2, 2] == pytest.approx(0.8)
        assert reduced[0, 0] == 0.0

    def test_size_one_is_identity(self):
        array = np.arange(9, dtype=float).reshape(3, 3)
        np.testing.assert_array_equal(footprint_reduce(array, 1), array)

    def test_unknown_statistic(self):
        with pytest.raises(ValueError, match="Unknown footprint statistic"):
            footprint_reduce(np.zeros((3, 3)), 3, "median")

    def test_sample_footprints(self, transform):
        array = np.zeros((10, 10))
        array[5, 5] = 1.0
        x = np.array([ORIGIN_X + 5.5 * 30, ORIGIN_X + 9.5 * 30, ORIGIN_X - 100.0])
        y = np.array([ORIGIN_Y - 4.5 * 30, ORIGIN_Y - 0.5 * 30, ORIGIN_Y - 15.0])
        values, inside = sample_footprints(array, transform, x, y, scale=90.0, statistic="max")
        np.testing.assert_array_equal(inside, [True, True, False])
        assert values[0] == 1.0
        assert values[1] == 0.0
        assert np.isnan(values[2])
