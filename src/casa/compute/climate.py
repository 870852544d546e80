"""
Monthly climate preprocessing and heterotrophic respiration (RH).

TerraClimate bands are converted to solar radiation in MJ/m²/month,
temperatures in °C and precipitation in mm; RH follows the Zhuang et al.
regression on monthly mean temperature and precipitation.
"""

from __future__ import annotations

from typing import Any

import ee
import numpy as np
import xarray as xr

from .._utils.arrays import require_variables
from .settings import (
    CLIMATE_BANDS,
    CLIMATE_COLLECTION,
    RH_CARBON_FRACTION,
    RH_COEFFICIENT,
    RH_DAYS_PER_MONTH,
    RH_PRECIPITATION_FACTOR,
    RH_TEMPERATURE_FACTOR,
    SRAD_SCALE,
    SRAD_TO_MJ_MONTH,
    TEMPERATURE_SCALE,
)

RH_EXPRESSION = (
    f"{RH_COEFFICIENT} * (exp({RH_TEMPERATURE_FACTOR} * T) "
    f"+ log({RH_PRECIPITATION_FACTOR} * P + 1)) * {RH_DAYS_PER_MONTH} * {RH_CARBON_FRACTION}"
)


def _masked_log(value: Any) -> Any:
    if isinstance(value, xr.DataArray):
        return np.log(value.where(value > 0))
    arr = np.asarray(value, dtype="float64")
    with np.errstate(divide="ignore", invalid="ignore"):
        out = np.log(np.where(arr > 0, arr, np.nan))
    return out[()] if out.ndim == 0 else out


def calculate_rh(tmean: Any, precipitation: Any) -> Any:
    """
    Calculate monthly heterotrophic respiration.

    RH = 0.22 * (exp(0.0913 * T) + ln(0.3145 * P + 1)) * 30 * 0.465

    Args:
        tmean: Monthly mean temperature (°C).
        precipitation: Monthly precipitation (mm).

    Returns:
        RH in gC/m²/month, same type as the inputs. Pixels where the
        logarithm is undefined are NaN.

    Example:
        >>> round(float(calculate_rh(20.0, 100.0)), 1)
        29.7
    """
    temperature_term = np.exp(RH_TEMPERATURE_FACTOR * tmean)
    precipitation_term = _masked_log(RH_PRECIPITATION_FACTOR * precipitation + 1)
    return (
        RH_COEFFICIENT
        * (temperature_term + precipitation_term)
        * RH_DAYS_PER_MONTH
        * RH_CARBON_FRACTION
    )


def preprocess_climate(ds: xr.Dataset) -> xr.Dataset:
    """Add solar_radiation, tmean and precipitation bands to raw TerraClimate data."""
    require_variables(ds, CLIMATE_BANDS, "climate image")
    tmmn = ds["tmmn"] * TEMPERATURE_SCALE
    tmmx = ds["tmmx"] * TEMPERATURE_SCALE
    return ds.assign(
        solar_radiation=ds["srad"] * SRAD_SCALE * SRAD_TO_MJ_MONTH,
        tmean=(tmmn + tmmx) / 2,
        precipitation=ds["pr"],
    )


def add_rh(ds: xr.Dataset) -> xr.Dataset:
    """Add the RH band to a preprocessed climate image or collection."""
    require_variables(ds, ["tmean", "precipitation"], "climate image")
    return ds.assign(RH=calculate_rh(ds["tmean"], ds["precipitation"]))


def preprocess_climate_image(image: ee.Image) -> ee.Image:
    """Earth Engine counterpart of :func:`preprocess_climate`."""
    srad = (
        image.select("srad")
        .multiply(SRAD_SCALE)
        .multiply(SRAD_TO_MJ_MONTH)
        .rename("solar_radiation")
    )
    tmmn = image.select("tmmn").multiply(TEMPERATURE_SCALE)
    tmmx = image.select("tmmx").multiply(TEMPERATURE_SCALE)
    tmean = tmmn.add(tmmx).divide(2).rename("tmean")
    precipitation = image.select("pr").rename("precipitation")
    return image.addBands(srad).addBands(tmean).addBands(precipitation)


def calculate_rh_image(image: ee.Image) -> ee.Image:
    """Add the RH band to a preprocessed climate image."""
    rh = image.expression(
        RH_EXPRESSION,
        {"T": image.select("tmean"), "P": image.select("precipitation")},
    ).rename("RH")
    return image.addBands(rh)


def get_climate(start: str | ee.Date, end: str | ee.Date) -> ee.ImageCollection:
    """
    Load monthly TerraClimate images with derived bands and RH.

    Args:
        start: Inclusive start date.
        end: Exclusive end date.

    Returns:
        ImageCollection with pr, tmmn, tmmx, srad, solar_radiation, tmean,
        precipitation and RH bands.
    """
    return (
        ee.ImageCollection(CLIMATE_COLLECTION)
        .filter(ee.Filter.date(start, end))
        .select(CLIMATE_BANDS)
        .map(preprocess_climate_image)
        .map(calculate_rh_image)
    )


def get_climate_for_year(year: int) -> ee.ImageCollection:
    """Load the twelve monthly climate images of a year."""
    start = ee.Date.fromYMD(year, 1, 1)
    return get_climate(start, start.advance(1, "year"))
