"""Tests for raster containers and GeoTIFF I/O."""

import numpy as np
import pytest
import rasterio

from hazard_map.io.raster import (
    BYTE_NODATA,
    ProbabilitySurface,
    Raster,
    load_probability_surface,
    load_raster,
    save_geotiff,
)


class TestRaster:
    def test_properties(self, elevation):
        assert elevation.shape == (100, 100)
        assert elevation.resolution == 30.0
        assert not elevation.is_time_series
        assert elevation.bounds == pytest.approx((500000.0, 3097000.0, 503000.0, 3100000.0))
        assert elevation.crs.to_epsg() == 32645

    def test_time_series(self, rainfall):
        assert rainfall.is_time_series
        assert rainfall.shape == (100, 100)

    def test_masked(self, transform):
        raster = Raster(
            name="ssm",
            data=np.array([[1, -1], [2, 3]], dtype=np.int16),
            transform=transform,
            crs="EPSG:32645",
            nodata=-1,
        )
        masked = raster.masked()
        assert masked.dtype == np.float32
        assert np.isnan(masked[0, 1])
        assert masked[1, 1] == 3.0

    def test_rejects_1d(self, transform):
        with pytest.raises(ValueError):
            Raster(name="bad", data=np.zeros(5), transform=transform, crs="EPSG:32645")


class TestProbabilitySurface:
    def test_rejects_out_of_range(self, grid):
        with pytest.raises(ValueError, match=r"\[0, 1\]"):
            ProbabilitySurface(data=np.full((100, 100), 1.5), grid=grid)

    def test_rejects_shape_mismatch(self, grid):
        with pytest.raises(ValueError):
            ProbabilitySurface(data=np.zeros((10, 10)), grid=grid)

    def test_to_byte(self, grid):
        data = np.full((100, 100), 0.456, dtype=np.float32)
        data[0, 0] = np.nan
        data[0, 1] = 1.0
        data[0, 2] = 0.0
        scaled = ProbabilitySurface(data=data, grid=grid).to_byte()
        assert scaled.dtype == np.uint8
        assert scaled[0, 0] == BYTE_NODATA
        assert scaled[0, 1] == 100
        assert scaled[0, 2] == 0
        assert scaled[50, 50] == 45

    def test_clip(self, grid):
        surface = ProbabilitySurface(data=np.full((100, 100), 0.5), grid=grid)
        mask = np.zeros((100, 100), dtype=bool)
        mask[10:20, 10:20] = True
        clipped = surface.clip(mask)
        assert np.isfinite(clipped.data).sum() == 100
        assert np.isnan(surface.data).sum() == 0

    def test_resample(self, grid):
        data = np.zeros((100, 100), dtype=np.float32)
        data[:, 50:] = 1.0
        coarse = ProbabilitySurface(data=data, grid=grid).resample(90.0)
        assert coarse.grid.resolution == 90.0
        assert coarse.data.shape == (34, 34)
        assert coarse.data[10, 5] == 0.0
        assert coarse.data[10, 25] == 1.0

    def test_resample_same_resolution(self, grid):
        surface = ProbabilitySurface(data=np.zeros((100, 100)), grid=grid)
        assert surface.resample(30.0) is surface


class TestGeoTiff:
    def test_save_and_load(self, elevation, grid, tmp_path):
        path = save_geotiff(tmp_path / "sub" / "dem.tif", elevation.data, grid)
        loaded = load_raster(path)
        assert loaded.name == "dem"
        np.testing.assert_array_equal(loaded.data, elevation.data)
        assert loaded.transform == grid.transform
        assert loaded.crs == grid.crs

    def test_time_series_needs_reduction(self, rainfall, write_raster):
        path = write_raster(rainfall)
        assert load_raster(path).data.ndim == 2
        series = load_raster(path, name="rain", reduction="max")
        assert series.data.shape == (3, 100, 100)
        assert series.reduction == "max"

    def test_load_byte_probability(self, grid, tmp_path):
        data = np.full((100, 100), 0.75, dtype=np.float32)
        data[0, 0] = np.nan
        surface = ProbabilitySurface(data=data, grid=grid)
        path = save_geotiff(tmp_path / "hazard.tif", surface.to_byte(), grid, nodata=BYTE_NODATA)

        with rasterio.open(path) as src:
            assert src.nodata == BYTE_NODATA

        loaded = load_probability_surface(path)
        assert loaded.data[50, 50] == pytest.approx(0.75)
        assert np.isnan(loaded.data[0, 0])

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_raster(tmp_path / "missing.tif")
