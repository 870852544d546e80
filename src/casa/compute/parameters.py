"""
CASA parameter rasters derived from MODIS IGBP land cover.

Each parameter is a class-conditional constant substitution over the
categorical LC_Type1 raster:

- LUE: maximum light use efficiency, classes 1-17
- NDVI_min / SR_min: a single constant for every class > 0
- NDVI_max / SR_max: classes 1-12 only

Pixels whose class has no table entry keep their original class code
(``unmapped="keep"``, the published behaviour) or are masked
(``unmapped="mask"``).
"""

from __future__ import annotations

from typing import Any, Literal

import ee
import numpy as np
import xarray as xr

from .settings import (
    LANDCOVER_BAND,
    LANDCOVER_COLLECTION,
    LUE_TABLE,
    NDVI_MAX_TABLE,
    NDVI_MIN,
    SR_MAX_TABLE,
    SR_MIN,
)

Unmapped = Literal["keep", "mask"]


def _check_unmapped(unmapped: str) -> None:
    if unmapped not in ("keep", "mask"):
        raise ValueError("unmapped must be 'keep' or 'mask'")


def _substitute(landcover: Any, table: dict[int, float], unmapped: Unmapped) -> Any:
    _check_unmapped(unmapped)
    if isinstance(landcover, xr.DataArray):
        result = landcover.astype("float64")
        for cls, value in table.items():
            result = result.where(landcover != cls, value)
        if unmapped == "mask":
            result = result.where(landcover.isin(list(table)))
        return result

    codes = np.asarray(landcover, dtype="float64")
    result = codes.copy()
    for cls, value in table.items():
        result[codes == cls] = value
    if unmapped == "mask":
        result[~np.isin(codes, list(table))] = np.nan
    return result


def _constant_for_classes(landcover: Any, value: float, unmapped: Unmapped) -> Any:
    """Substitute ``value`` for every class > 0."""
    _check_unmapped(unmapped)
    if isinstance(landcover, xr.DataArray):
        result = landcover.astype("float64").where(~(landcover > 0), value)
        if unmapped == "mask":
            result = result.where(landcover > 0)
        return result

    codes = np.asarray(landcover, dtype="float64")
    result = np.where(codes > 0, value, codes)
    if unmapped == "mask":
        result = np.where(codes > 0, result, np.nan)
    return result


def generate_lue(landcover: Any, unmapped: Unmapped = "keep") -> Any:
    """Map land-cover classes to light use efficiency (gC/MJ)."""
    return _substitute(landcover, LUE_TABLE, unmapped)


def set_ndvi_min(landcover: Any, unmapped: Unmapped = "keep") -> Any:
    return _constant_for_classes(landcover, NDVI_MIN, unmapped)


def set_ndvi_max(landcover: Any, unmapped: Unmapped = "keep") -> Any:
    return _substitute(landcover, NDVI_MAX_TABLE, unmapped)


def set_sr_min(landcover: Any, unmapped: Unmapped = "keep") -> Any:
    return _constant_for_classes(landcover, SR_MIN, unmapped)


def set_sr_max(landcover: Any, unmapped: Unmapped = "keep") -> Any:
    return _substitute(landcover, SR_MAX_TABLE, unmapped)


def derive_parameters(landcover: xr.DataArray, unmapped: Unmapped = "keep") -> xr.Dataset:
    """
    Derive all five CASA parameter rasters from a land-cover raster.

    Args:
        landcover: Categorical IGBP class raster (y, x).
        unmapped: "keep" leaves classes without a table entry at their class
            code, "mask" masks them.

    Returns:
        Dataset with LUE, NDVI_min, NDVI_max, SR_min and SR_max variables.
    """
    return xr.Dataset(
        {
            "LUE": generate_lue(landcover, unmapped),
            "NDVI_min": set_ndvi_min(landcover, unmapped),
            "NDVI_max": set_ndvi_max(landcover, unmapped),
            "SR_min": set_sr_min(landcover, unmapped),
            "SR_max": set_sr_max(landcover, unmapped),
        }
    )


# ---------------------------------------------------------------------------
# Earth Engine
# ---------------------------------------------------------------------------


def _substitute_image(landcover: ee.Image, table: dict[int, float], unmapped: Unmapped) -> ee.Image:
    _check_unmapped(unmapped)
    result = landcover.toFloat()
    for cls, value in table.items():
        result = result.where(landcover.eq(cls), value)
    if unmapped == "mask":
        classes = list(table)
        result = result.updateMask(landcover.remap(classes, [1] * len(classes), 0))
    return result


def _constant_for_classes_image(landcover: ee.Image, value: float, unmapped: Unmapped) -> ee.Image:
    _check_unmapped(unmapped)
    result = landcover.toFloat().where(landcover.gt(0), value)
    if unmapped == "mask":
        result = result.updateMask(landcover.gt(0))
    return result


def generate_lue_image(landcover: ee.Image, unmapped: Unmapped = "keep") -> ee.Image:
    return _substitute_image(landcover, LUE_TABLE, unmapped).rename("LUE")


def set_ndvi_min_image(landcover: ee.Image, unmapped: Unmapped = "keep") -> ee.Image:
    return _constant_for_classes_image(landcover, NDVI_MIN, unmapped).rename("NDVI_min")


def set_ndvi_max_image(landcover: ee.Image, unmapped: Unmapped = "keep") -> ee.Image:
    return _substitute_image(landcover, NDVI_MAX_TABLE, unmapped).rename("NDVI_max")


def set_sr_min_image(landcover: ee.Image, unmapped: Unmapped = "keep") -> ee.Image:
    return _constant_for_classes_image(landcover, SR_MIN, unmapped).rename("SR_min")


def set_sr_max_image(landcover: ee.Image, unmapped: Unmapped = "keep") -> ee.Image:
    return _substitute_image(landcover, SR_MAX_TABLE, unmapped).rename("SR_max")


def derive_parameters_image(landcover: ee.Image, unmapped: Unmapped = "keep") -> ee.Image:
    """Earth Engine counterpart of :func:`derive_parameters` (one 5-band image)."""
    return ee.Image.cat(
        [
            generate_lue_image(landcover, unmapped),
            set_ndvi_min_image(landcover, unmapped),
            set_ndvi_max_image(landcover, unmapped),
            set_sr_min_image(landcover, unmapped),
            set_sr_max_image(landcover, unmapped),
        ]
    )


def get_landcover(year: int) -> ee.Image:
    """
    Load the MCD12Q1 LC_Type1 image for a year.

    Falls back to the most recent product year before ``year`` when the
    target year is not yet published.
    """
    end = ee.Date.fromYMD(year + 1, 1, 1)
    collection = (
        ee.ImageCollection(LANDCOVER_COLLECTION)
        .select(LANDCOVER_BAND)
        .filter(ee.Filter.date("2000-01-01", end))
        .sort("system:time_start", False)
    )
    return ee.Image(collection.first())
