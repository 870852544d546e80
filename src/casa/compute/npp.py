"""
CASA NPP and net carbon emission intensity (NCEI).

This module handles:
- Temporal join of per-image reflectance with the monthly climate collection
- APAR = FPAR * solar radiation * 0.5
- NPP = APAR * LUE * Wstress * Tstress1 * Tstress2
- NCEI = NPP - RH

The stress coefficients are external inputs; their derivation is not part
of this package.
"""

from __future__ import annotations

import logging
from typing import Any

import ee
import numpy as np
import pandas as pd
import xarray as xr

from .._utils.arrays import match_grid, require_variables
from .settings import JOIN_POLICIES, PAR_FRACTION, STRESS_BANDS, JoinPolicy

logger = logging.getLogger(__name__)


def _check_join(join: str) -> None:
    if join not in JOIN_POLICIES:
        raise ValueError(f"Unknown join policy '{join}'. Available: {', '.join(JOIN_POLICIES)}")


def calculate_apar(fpar: Any, solar_radiation: Any) -> Any:
    """APAR (MJ/m²/month) from FPAR and total shortwave radiation."""
    return fpar * solar_radiation * PAR_FRACTION


def calculate_npp(
    fpar: Any,
    solar_radiation: Any,
    lue: Any,
    wstress: Any,
    tstress1: Any,
    tstress2: Any,
) -> Any:
    """
    NPP = FPAR * solar_radiation * 0.5 * LUE * Wstress * Tstress1 * Tstress2.

    Returns:
        NPP in gC/m²/month; NaN wherever any input is NaN.
    """
    return calculate_apar(fpar, solar_radiation) * lue * wstress * tstress1 * tstress2


def calculate_ncei(npp: Any, rh: Any) -> Any:
    """NCEI = NPP - RH. Positive values indicate a net carbon sink."""
    return npp - rh


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


def join_to_collection(
    collection: xr.Dataset,
    other: xr.Dataset,
    join: JoinPolicy = "month",
) -> xr.Dataset:
    """
    Align a time-varying Dataset (climate, stress) to a collection's images.

    Args:
        collection: Image collection with a ``time`` dimension.
        other: Dataset to align. Without a ``time`` dimension it is
            returned unchanged (constant over time).
        join: "month" picks the image whose calendar month encloses each
            acquisition date, "nearest" the image with the nearest
            timestamp, "mean" the temporal mean of ``other``.

    Returns:
        ``other`` indexed by the collection's ``time`` coordinate. Images
        with no matching month are all-NaN.
    """
    _check_join(join)
    if "time" not in other.dims:
        return other
    if join == "mean":
        return other.mean("time", skipna=True, keep_attrs=True)
    if "time" not in collection.dims:
        raise ValueError(f"join='{join}' requires a collection with a 'time' dimension")
    if other.sizes["time"] == 0:
        raise ValueError("Cannot join against an empty collection")

    other = other.isel(time=np.argsort(other["time"].values, kind="stable"))
    image_times = pd.DatetimeIndex(collection["time"].values)
    other_times = pd.DatetimeIndex(other["time"].values)

    if join == "month":
        months = other_times.to_period("M")
        if months.has_duplicates:
            raise ValueError("join='month' requires at most one image per calendar month")
        indexer = months.get_indexer(image_times.to_period("M"))
    else:
        indexer = other_times.get_indexer(image_times, method="nearest")

    found = indexer >= 0
    if not found.all():
        logger.warning("%d image(s) have no matching climate month", int((~found).sum()))

    joined = other.isel(time=np.where(found, indexer, 0))
    joined = joined.where(xr.DataArray(found, dims="time"))
    joined = joined.drop_vars([name for name in joined.coords if "time" in joined[name].dims])
    return joined.assign_coords(time=("time", collection["time"].values))


def add_npp(
    ds: xr.Dataset,
    climate: xr.Dataset,
    parameters: xr.Dataset,
    stress: xr.Dataset,
    join: JoinPolicy = "month",
) -> xr.Dataset:
    """
    Add APAR and NPP bands to an FPAR image or collection.

    Args:
        ds: Collection carrying FPAR.
        climate: Preprocessed climate collection with solar_radiation.
        parameters: Parameter Dataset with LUE.
        stress: Dataset with Wstress, Tstress1 and Tstress2; may carry its
            own ``time`` dimension, joined with the same policy.
        join: Temporal join policy, see :func:`join_to_collection`.

    Raises:
        ValueError: If a required band is missing.
    """
    require_variables(ds, ["FPAR"], "FPAR image")
    require_variables(climate, ["solar_radiation"], "climate")
    require_variables(parameters, ["LUE"], "parameters")
    require_variables(stress, STRESS_BANDS, "stress coefficients")

    clim = match_grid(join_to_collection(ds, climate[["solar_radiation"]], join), ds)
    coeffs = match_grid(join_to_collection(ds, stress[STRESS_BANDS], join), ds)
    lue = match_grid(parameters["LUE"], ds)

    apar = calculate_apar(ds["FPAR"], clim["solar_radiation"])
    npp = apar * lue * coeffs["Wstress"] * coeffs["Tstress1"] * coeffs["Tstress2"]
    return ds.assign(APAR=apar, NPP=npp)


def add_ncei(ds: xr.Dataset, climate: xr.Dataset, join: JoinPolicy = "month") -> xr.Dataset:
    """Add the NCEI band (NPP - RH) using the joined climate RH."""
    require_variables(ds, ["NPP"], "NPP image")
    require_variables(climate, ["RH"], "climate")
    rh = match_grid(join_to_collection(ds, climate[["RH"]], join), ds)["RH"]
    return ds.assign(NCEI=calculate_ncei(ds["NPP"], rh))


# ---------------------------------------------------------------------------
# Earth Engine
# ---------------------------------------------------------------------------


def _masked_placeholder(bands: list[str]) -> ee.Image:
    """Fully masked image with the given bands, used when no match exists."""
    return ee.Image.constant([0] * len(bands)).rename(bands).toDouble().updateMask(0)


def match_image(
    image: ee.Image,
    collection: ee.ImageCollection,
    bands: list[str],
    join: JoinPolicy = "month",
) -> ee.Image:
    """
    Select the image of ``collection`` matching ``image``'s acquisition time.

    Returns a fully masked image with ``bands`` when nothing matches.
    """
    _check_join(join)
    collection = collection.select(bands)
    if join == "mean":
        return collection.mean()

    date = image.date()
    if join == "month":
        start = ee.Date.fromYMD(date.get("year"), date.get("month"), 1)
        candidates = collection.filter(ee.Filter.date(start, start.advance(1, "month")))
    else:
        millis = date.millis()

        def _time_diff(candidate):
            diff = ee.Number(candidate.get("system:time_start")).subtract(millis).abs()
            return candidate.set("time_diff", diff)

        candidates = collection.map(_time_diff).sort("time_diff")

    return ee.Image(
        ee.Algorithms.If(
            candidates.size().gt(0),
            candidates.first(),
            _masked_placeholder(bands),
        )
    )


def _as_time_source(
    image: ee.Image, source: ee.Image | ee.ImageCollection, bands: list[str], join: JoinPolicy
) -> ee.Image:
    if isinstance(source, ee.ImageCollection):
        return match_image(image, source, bands, join)
    return ee.Image(source).select(bands)


def add_npp_image(
    image: ee.Image,
    climate: ee.ImageCollection,
    parameters: ee.Image,
    stress: ee.Image | ee.ImageCollection,
    join: JoinPolicy = "month",
) -> ee.Image:
    """Earth Engine counterpart of :func:`add_npp` for a single image."""
    clim = match_image(image, climate, ["solar_radiation"], join)
    coeffs = _as_time_source(image, stress, STRESS_BANDS, join)

    apar = (
        image.select("FPAR")
        .multiply(clim.select("solar_radiation"))
        .multiply(PAR_FRACTION)
        .rename("APAR")
    )
    npp = (
        apar.multiply(parameters.select("LUE"))
        .multiply(coeffs.select("Wstress"))
        .multiply(coeffs.select("Tstress1"))
        .multiply(coeffs.select("Tstress2"))
        .rename("NPP")
    )
    return image.addBands(apar).addBands(npp)


def add_ncei_image(
    image: ee.Image,
    climate: ee.ImageCollection,
    join: JoinPolicy = "month",
) -> ee.Image:
    """Add the NCEI band (NPP - joined RH) to an image carrying NPP."""
    rh = match_image(image, climate, ["RH"], join).select("RH")
    ncei = image.select("NPP").subtract(rh).rename("NCEI")
    return image.addBands(ncei)


def check_stress_bands_image(stress: ee.Image | ee.ImageCollection) -> None:
    """
    Raise if the stress input lacks any of Wstress, Tstress1, Tstress2.

    Costs one getInfo round-trip.
    """
    if isinstance(stress, ee.ImageCollection):
        band_names = stress.first().bandNames().getInfo()
    else:
        band_names = ee.Image(stress).bandNames().getInfo()
    missing = [band for band in STRESS_BANDS if band not in (band_names or [])]
    if missing:
        raise ValueError(f"stress coefficients are missing band(s) {missing}")
