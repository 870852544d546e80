"""
Vegetation indices and FPAR.

FPAR blends an NDVI-based and a simple-ratio-based estimate, each
normalized by the land-cover-specific bounds, and clamps the average to
[0.05, 0.95]. Zero denominators (nir + red = 0, NDVI = 1, equal bounds)
produce masked pixels rather than errors.
"""

from __future__ import annotations

from typing import Any

import ee
import numpy as np
import xarray as xr

from .._utils.arrays import match_grid, require_variables, safe_divide
from .settings import FPAR_MAX, FPAR_MIN, FPAR_OFFSET, FPAR_SCALE


def _clamp(value: Any, lower: float, upper: float) -> Any:
    if isinstance(value, xr.DataArray):
        return value.clip(lower, upper)
    out = np.clip(np.asarray(value, dtype="float64"), lower, upper)
    return out[()] if out.ndim == 0 else out


def calculate_ndvi(red: Any, nir: Any) -> Any:
    """NDVI = (nir - red) / (nir + red), masked where nir + red == 0."""
    return safe_divide(nir - red, nir + red)


def calculate_sr(ndvi: Any) -> Any:
    """Simple ratio SR = (1 + NDVI) / (1 - NDVI), masked where NDVI == 1."""
    return safe_divide(1 + ndvi, 1 - ndvi)


def _scaled_fraction(value: Any, lower: Any, upper: Any) -> Any:
    return safe_divide(value - lower, upper - lower) * FPAR_SCALE + FPAR_OFFSET


def calculate_fpar(
    ndvi: Any,
    sr: Any,
    ndvi_min: Any,
    ndvi_max: Any,
    sr_min: Any,
    sr_max: Any,
) -> Any:
    """
    Calculate FPAR from NDVI/SR and the land-cover parameter bounds.

    FPAR1 = (NDVI - NDVI_min) / (NDVI_max - NDVI_min) * 0.949 + 0.001
    FPAR2 = (SR - SR_min) / (SR_max - SR_min) * 0.949 + 0.001
    FPAR = clamp((FPAR1 + FPAR2) / 2, 0.05, 0.95)

    Returns:
        FPAR, masked wherever either normalization has a zero denominator.
    """
    fpar_ndvi = _scaled_fraction(ndvi, ndvi_min, ndvi_max)
    fpar_sr = _scaled_fraction(sr, sr_min, sr_max)
    return _clamp((fpar_ndvi + fpar_sr) / 2, FPAR_MIN, FPAR_MAX)


def add_indices(ds: xr.Dataset) -> xr.Dataset:
    """Add NDVI and SR bands to a red/nir image or collection."""
    require_variables(ds, ["red", "nir"], "reflectance image")
    ndvi = calculate_ndvi(ds["red"], ds["nir"])
    return ds.assign(NDVI=ndvi, SR=calculate_sr(ndvi))


def add_fpar(ds: xr.Dataset, parameters: xr.Dataset) -> xr.Dataset:
    """
    Add the FPAR band to an image or collection carrying NDVI and SR.

    Args:
        ds: Output of :func:`add_indices`.
        parameters: Output of ``derive_parameters``; reindexed onto the
            reflectance grid when the grids differ.
    """
    require_variables(ds, ["NDVI", "SR"], "index image")
    require_variables(parameters, ["NDVI_min", "NDVI_max", "SR_min", "SR_max"], "parameters")
    params = match_grid(parameters, ds)
    fpar = calculate_fpar(
        ds["NDVI"],
        ds["SR"],
        params["NDVI_min"],
        params["NDVI_max"],
        params["SR_min"],
        params["SR_max"],
    )
    return ds.assign(FPAR=fpar)


# ---------------------------------------------------------------------------
# Earth Engine
# ---------------------------------------------------------------------------


def _safe_divide_image(numerator: ee.Image, denominator: ee.Image) -> ee.Image:
    return numerator.divide(denominator).updateMask(denominator.neq(0))


def add_indices_image(image: ee.Image) -> ee.Image:
    """Add NDVI and SR bands, masked where their denominators are zero."""
    red = image.select("red")
    nir = image.select("nir")
    ndvi = _safe_divide_image(nir.subtract(red), nir.add(red)).rename("NDVI")
    sr = _safe_divide_image(ee.Image(1).add(ndvi), ee.Image(1).subtract(ndvi)).rename("SR")
    return image.addBands(ndvi).addBands(sr)


def add_fpar_image(image: ee.Image, parameters: ee.Image) -> ee.Image:
    """Add the FPAR band using a 5-band parameter image."""
    ndvi_min = parameters.select("NDVI_min")
    ndvi_max = parameters.select("NDVI_max")
    sr_min = parameters.select("SR_min")
    sr_max = parameters.select("SR_max")

    fpar_ndvi = (
        _safe_divide_image(image.select("NDVI").subtract(ndvi_min), ndvi_max.subtract(ndvi_min))
        .multiply(FPAR_SCALE)
        .add(FPAR_OFFSET)
    )
    fpar_sr = (
        _safe_divide_image(image.select("SR").subtract(sr_min), sr_max.subtract(sr_min))
        .multiply(FPAR_SCALE)
        .add(FPAR_OFFSET)
    )
    fpar = fpar_ndvi.add(fpar_sr).divide(2).clamp(FPAR_MIN, FPAR_MAX).rename("FPAR")
    return image.addBands(fpar)
