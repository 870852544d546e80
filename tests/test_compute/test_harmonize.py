"""
Tests for sensor harmonization and merging.

Run with: pytest tests/test_compute/test_harmonize.py -v
"""

import numpy as np
import pytest

from casa.compute.harmonize import (
    apply_landsat_scale_factors,
    harmonize_landsat,
    harmonize_sentinel2,
    merge_collections,
)
from casa.compute.settings import STANDARD_BANDS

CLOUD = 1 << 3
SHADOW = 1 << 4


class TestLandsatScaling:
    """Collection 2 scale factors."""

    def test_optical_bands_scaled(self, make_landsat):
        ds = make_landsat(["2022-06-01"])
        ds["SR_B4"][:] = 10000.0
        scaled = apply_landsat_scale_factors(ds)
        np.testing.assert_allclose(scaled["SR_B4"].values, 10000 * 0.0000275 - 0.2)

    def test_qa_band_untouched(self, make_landsat):
        ds = make_landsat(["2022-06-01"])
        scaled = apply_landsat_scale_factors(ds)
        np.testing.assert_array_equal(scaled["QA_PIXEL"].values, ds["QA_PIXEL"].values)


class TestLandsatHarmonization:
    """Renaming and cloud masking."""

    def test_standard_schema(self, make_landsat):
        for sensor in ("L9", "L8", "L7"):
            out = harmonize_landsat(make_landsat(["2022-06-01"], sensor=sensor), sensor)
            assert list(out.data_vars) == STANDARD_BANDS
            assert list(out["sensor"].values) == [sensor]

    def test_l7_blue_is_band_1(self, make_landsat):
        out = harmonize_landsat(make_landsat(["2022-06-01"], sensor="L7", blue=0.07), "L7")
        np.testing.assert_allclose(out["blue"].values, 0.07)

    def test_clear_pixels_kept(self, make_landsat):
        out = harmonize_landsat(make_landsat(["2022-06-01"]), "L8")
        np.testing.assert_allclose(out["red"].values, 0.1)
        np.testing.assert_allclose(out["nir"].values, 0.4)

    def test_cloud_and_shadow_masked(self, make_landsat):
        qa = np.array([[21824, 21824 | CLOUD], [21824 | SHADOW, 21824]])
        out = harmonize_landsat(make_landsat(["2022-06-01"], qa=qa), "L8")
        valid = out["red"].notnull().values[0]
        np.testing.assert_array_equal(valid, [[True, False], [False, True]])

    def test_bright_blue_masked(self, make_landsat):
        blue = np.array([[0.05, 0.25], [0.19, 0.5]])
        out = harmonize_landsat(make_landsat(["2022-06-01"], blue=blue), "L8")
        valid = out["nir"].notnull().values[0]
        np.testing.assert_array_equal(valid, [[True, False], [True, False]])

    def test_fully_clouded_image_retained(self, make_landsat):
        out = harmonize_landsat(
            make_landsat(["2022-06-01", "2022-06-17"], qa=21824 | CLOUD), "L8"
        )
        assert out.sizes["time"] == 2
        assert out["red"].isnull().all()

    def test_unknown_sensor(self, make_landsat):
        with pytest.raises(ValueError, match="Unknown Landsat sensor"):
            harmonize_landsat(make_landsat(["2022-06-01"]), "L5")

    def test_missing_band(self, make_landsat):
        ds = make_landsat(["2022-06-01"]).drop_vars("SR_B5")
        with pytest.raises(ValueError, match="SR_B5"):
            harmonize_landsat(ds, "L8")


class TestSentinel2Harmonization:
    """Scaling and QA60/SCL/cloud-probability masking."""

    def test_scaled_red_nir_only(self, make_sentinel2):
        out = harmonize_sentinel2(make_sentinel2(["2022-06-01"]))
        assert list(out.data_vars) == ["red", "nir"]
        np.testing.assert_allclose(out["red"].values, 0.1)
        np.testing.assert_allclose(out["nir"].values, 0.4)
        assert list(out["sensor"].values) == ["S2"]

    def test_qa60_bits_masked(self, make_sentinel2):
        qa60 = np.array([[0, 1 << 10], [1 << 11, 0]])
        out = harmonize_sentinel2(make_sentinel2(["2022-06-01"], qa60=qa60))
        valid = out["red"].notnull().values[0]
        np.testing.assert_array_equal(valid, [[True, False], [False, True]])

    def test_cloud_probability_threshold(self, make_sentinel2):
        prob = np.array([[30, 31], [0, 100]])
        out = harmonize_sentinel2(make_sentinel2(["2022-06-01"], cloud_probability=prob))
        valid = out["red"].notnull().values[0]
        np.testing.assert_array_equal(valid, [[True, False], [True, False]])

    def test_scl_shadow_and_cirrus_masked(self, make_sentinel2):
        scl = np.array([[4, 3], [10, 5]])
        out = harmonize_sentinel2(make_sentinel2(["2022-06-01"], scl=scl))
        valid = out["red"].notnull().values[0]
        np.testing.assert_array_equal(valid, [[True, False], [False, True]])


class TestMergeCollections:
    """Time-ordered merge across sensors."""

    def test_same_date_images_all_retained(self, make_landsat, make_sentinel2):
        l7 = harmonize_landsat(make_landsat(["2022-03-01"], sensor="L7"), "L7")
        s2 = harmonize_sentinel2(make_sentinel2(["2022-03-01", "2022-02-01"]))
        merged = merge_collections([l7, s2])

        assert merged.sizes["time"] == 3
        assert list(merged.data_vars) == ["red", "nir"]
        times = merged["time"].values
        assert (times[:-1] <= times[1:]).all()
        assert list(merged["sensor"].values) == ["S2", "L7", "S2"]

    def test_merge_order_breaks_ties(self, make_landsat):
        l9 = harmonize_landsat(make_landsat(["2022-05-05"], sensor="L9"), "L9")
        l8 = harmonize_landsat(make_landsat(["2022-05-05"], sensor="L8"), "L8")
        merged = merge_collections([l9, l8])
        assert list(merged["sensor"].values) == ["L9", "L8"]

    def test_masked_images_retained(self, make_landsat, make_sentinel2):
        cloudy = harmonize_landsat(make_landsat(["2022-04-01"], qa=CLOUD), "L8")
        clear = harmonize_sentinel2(make_sentinel2(["2022-04-02"]))
        merged = merge_collections([cloudy, clear])
        assert merged.sizes["time"] == 2
        assert merged["red"].isel(time=0).isnull().all()

    def test_untagged_collections(self, make_sentinel2):
        s2 = harmonize_sentinel2(make_sentinel2(["2022-04-02"])).drop_vars("sensor")
        merged = merge_collections([s2])
        assert list(merged["sensor"].values) == ["collection_0"]

    def test_empty_input(self):
        with pytest.raises(ValueError, match="No collections"):
            merge_collections([])

    def test_grid_mismatch(self, make_landsat, make_sentinel2):
        l8 = harmonize_landsat(make_landsat(["2022-04-01"]), "L8")
        s2 = harmonize_sentinel2(make_sentinel2(["2022-04-02"]))
        s2 = s2.assign_coords(x=s2["x"] + 1.0)
        with pytest.raises(ValueError):
            merge_collections([l8, s2])
