"""
Tests for NDVI, SR and FPAR.
"""

import numpy as np
import pytest
import xarray as xr

from casa.compute.fpar import add_fpar, add_indices, calculate_fpar, calculate_ndvi, calculate_sr
from casa.compute.harmonize import harmonize_sentinel2
from casa.compute.parameters import derive_parameters


class TestIndices:
    """NDVI and simple ratio."""

    def test_ndvi(self):
        assert calculate_ndvi(0.1, 0.5) == pytest.approx(0.4 / 0.6)

    def test_ndvi_zero_denominator_masked(self):
        assert np.isnan(calculate_ndvi(0.0, 0.0))

    def test_ndvi_equal_bands(self):
        assert calculate_ndvi(0.3, 0.3) == 0.0

    def test_sr(self):
        assert calculate_sr(0.6) == pytest.approx(4.0)

    def test_sr_masked_at_ndvi_one(self):
        assert np.isnan(calculate_sr(1.0))

    def test_masked_reflectance_propagates(self):
        red = xr.DataArray([0.1, np.nan], dims="x")
        nir = xr.DataArray([0.4, 0.4], dims="x")
        ndvi = calculate_ndvi(red, nir)
        assert ndvi.notnull().values.tolist() == [True, False]
        assert calculate_sr(ndvi).notnull().values.tolist() == [True, False]


class TestFPAR:
    """FPAR bounds and zero-denominator masking."""

    def test_known_value(self):
        fpar1 = (0.6 - 0.023) / (0.738 - 0.023) * 0.949 + 0.001
        fpar2 = (4.0 - 1.05) / (6.63 - 1.05) * 0.949 + 0.001
        fpar = calculate_fpar(0.6, 4.0, 0.023, 0.738, 1.05, 6.63)
        assert fpar == pytest.approx((fpar1 + fpar2) / 2)

    def test_clamped_to_bounds(self):
        rng = np.random.default_rng(42)
        ndvi = rng.uniform(-1.0, 0.99, size=1000)
        classes = rng.integers(1, 13, size=1000)
        params = derive_parameters(xr.DataArray(classes, dims="x"))
        fpar = calculate_fpar(
            ndvi,
            calculate_sr(ndvi),
            params["NDVI_min"].values,
            params["NDVI_max"].values,
            params["SR_min"].values,
            params["SR_max"].values,
        )
        assert np.isfinite(fpar).all()
        assert fpar.min() >= 0.05
        assert fpar.max() <= 0.95

    def test_extremes_clamp(self):
        assert calculate_fpar(-1.0, 0.0, 0.023, 0.738, 1.05, 6.63) == 0.05
        assert calculate_fpar(0.99, 199.0, 0.023, 0.738, 1.05, 6.63) == 0.95

    def test_zero_denominator_masked(self):
        # class 0 in "keep" mode: NDVI_min == NDVI_max == 0
        assert np.isnan(calculate_fpar(0.5, 3.0, 0.0, 0.0, 0.0, 0.0))

    def test_unmapped_class_does_not_fail(self):
        params = derive_parameters(xr.DataArray([13], dims="x"))
        fpar = calculate_fpar(
            0.6,
            4.0,
            params["NDVI_min"].values,
            params["NDVI_max"].values,
            params["SR_min"].values,
            params["SR_max"].values,
        )
        assert np.isfinite(fpar).all()


class TestAddFPAR:
    """Dataset helpers."""

    def test_adds_bands(self, make_sentinel2, landcover):
        ds = add_indices(harmonize_sentinel2(make_sentinel2(["2022-06-01", "2022-07-01"])))
        out = add_fpar(ds, derive_parameters(landcover))

        assert {"NDVI", "SR", "FPAR"} <= set(out.data_vars)
        assert out["FPAR"].dims == ("time", "y", "x")
        # class 0 pixel has equal bounds
        assert out["FPAR"].isel(y=1, x=0).isnull().all()
        valid = out["FPAR"].isel(y=0)
        assert ((valid >= 0.05) & (valid <= 0.95)).all()

    def test_parameters_on_coarser_grid(self, make_sentinel2, landcover):
        ds = add_indices(harmonize_sentinel2(make_sentinel2(["2022-06-01"])))
        coarse = landcover.isel(x=[0], y=[0])
        out = add_fpar(ds, derive_parameters(coarse))
        assert out["FPAR"].notnull().all()

    def test_landcover_without_coordinates(self, make_sentinel2, landcover):
        ds = add_indices(harmonize_sentinel2(make_sentinel2(["2022-06-01"])))
        bare = xr.DataArray([[1, 3], [0, 13]], dims=("y", "x"))
        out = add_fpar(ds, derive_parameters(bare))
        expected = add_fpar(ds, derive_parameters(landcover))
        np.testing.assert_allclose(out["FPAR"].values, expected["FPAR"].values, equal_nan=True)

    def test_landcover_without_coordinates_wrong_shape(self, make_sentinel2):
        ds = add_indices(harmonize_sentinel2(make_sentinel2(["2022-06-01"])))
        bare = xr.DataArray([[1, 3, 3]], dims=("y", "x"))
        with pytest.raises(ValueError, match="coordinates are required"):
            add_fpar(ds, derive_parameters(bare))

    def test_missing_indices(self, landcover):
        ds = xr.Dataset({"red": ("x", [0.1])})
        with pytest.raises(ValueError, match="NDVI"):
            add_fpar(ds, derive_parameters(landcover))
