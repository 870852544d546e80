"""
Sensor harmonization for Landsat 7/8/9 and Sentinel-2 surface reflectance.

This module handles:
- Reflectance scaling per sensor
- Cloud and cloud-shadow masking
- Renaming sensor-native bands to the standard schema
- Merging all sensors into one time-ordered red/nir collection

Each step exists for both backends: functions suffixed ``_image`` and the
``get_*`` loaders build Earth Engine graphs, the others operate on
in-memory ``xarray.Dataset`` images/collections.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

import ee
import numpy as np
import xarray as xr

from .._utils.arrays import require_variables
from .settings import (
    LANDSAT_BANDS,
    LANDSAT_BLUE_THRESHOLD,
    LANDSAT_CLOUD_BIT,
    LANDSAT_CLOUD_SHADOW_BIT,
    LANDSAT_COLLECTIONS,
    LANDSAT_MERGE_ORDER,
    LANDSAT_OFFSET,
    LANDSAT_OPTICAL_PATTERN,
    LANDSAT_SCALE,
    MERGED_BANDS,
    SENTINEL2_BANDS,
    SENTINEL2_CIRRUS_BIT,
    SENTINEL2_CLOUD_BIT,
    SENTINEL2_COLLECTION,
    SENTINEL2_MAX_CLOUD_PROBABILITY,
    SENTINEL2_OPTICAL_PATTERN,
    SENTINEL2_SCALE,
    SENTINEL2_SCL_CIRRUS,
    SENTINEL2_SCL_SHADOW,
    STANDARD_BANDS,
)

logger = logging.getLogger(__name__)


def _check_landsat_sensor(sensor: str) -> list[str]:
    if sensor not in LANDSAT_BANDS:
        available = ", ".join(LANDSAT_BANDS)
        raise ValueError(f"Unknown Landsat sensor '{sensor}'. Available: {available}")
    return LANDSAT_BANDS[sensor]


def _bitmask_clear(qa: xr.DataArray, *bits: int) -> xr.DataArray:
    """True where none of ``bits`` is set; False where qa itself is masked."""
    flags = qa.fillna(0).astype("int64")
    clear = qa.notnull()
    for bit in bits:
        clear = clear & ((flags & (1 << bit)) == 0)
    return clear


# ---------------------------------------------------------------------------
# Earth Engine
# ---------------------------------------------------------------------------


def apply_landsat_scale_factors_image(image: ee.Image) -> ee.Image:
    """Scale Landsat Collection 2 optical bands to surface reflectance."""
    optical = image.select(LANDSAT_OPTICAL_PATTERN).multiply(LANDSAT_SCALE).add(LANDSAT_OFFSET)
    return image.addBands(optical, None, True)


def mask_landsat_clouds_image(image: ee.Image) -> ee.Image:
    """
    Mask clouds and cloud shadow on a renamed Landsat image.

    A pixel is kept when QA_PIXEL bits 3 (cloud) and 4 (cloud shadow) are
    clear and the scaled blue reflectance is not above 0.2.
    """
    qa = image.select("QA_PIXEL")
    qa_mask = (
        qa.bitwiseAnd(1 << LANDSAT_CLOUD_SHADOW_BIT)
        .eq(0)
        .And(qa.bitwiseAnd(1 << LANDSAT_CLOUD_BIT).eq(0))
    )
    bright = image.select("blue").gt(LANDSAT_BLUE_THRESHOLD)
    masked = image.updateMask(qa_mask).updateMask(bright.Not()).toDouble()
    masked = ee.Image(masked.copyProperties(image))
    return masked.set("system:time_start", image.get("system:time_start"))


def mask_sentinel2_clouds_image(image: ee.Image) -> ee.Image:
    """
    Scale Sentinel-2 optical bands and mask clouds, cirrus and shadow.

    Uses the QA60 cloud/cirrus bits, the MSK_CLDPRB cloud probability and
    the SCL scene classification.
    """
    qa = image.select("QA60")
    qa_mask = (
        qa.bitwiseAnd(1 << SENTINEL2_CLOUD_BIT)
        .eq(0)
        .And(qa.bitwiseAnd(1 << SENTINEL2_CIRRUS_BIT).eq(0))
    )
    scl = image.select("SCL")
    scl_mask = (
        image.select("MSK_CLDPRB")
        .lte(SENTINEL2_MAX_CLOUD_PROBABILITY)
        .And(scl.neq(SENTINEL2_SCL_CIRRUS))
        .And(scl.neq(SENTINEL2_SCL_SHADOW))
    )
    optical = image.select(SENTINEL2_OPTICAL_PATTERN).multiply(SENTINEL2_SCALE)
    masked = image.addBands(optical, None, True).updateMask(qa_mask).updateMask(scl_mask)
    masked = ee.Image(masked.copyProperties(image))
    return masked.set("system:time_start", image.get("system:time_start"))


def _year_dates(year: int) -> tuple[ee.Date, ee.Date]:
    start = ee.Date.fromYMD(year, 1, 1)
    return start, start.advance(1, "year")


def get_landsat_collection(sensor: str, year: int, region: ee.Geometry) -> ee.ImageCollection:
    """
    Load one Landsat generation for a year, scaled, renamed and cloud-masked.

    Args:
        sensor: "L9", "L8" or "L7".
        year: Acquisition year.
        region: Spatial filter.

    Returns:
        ImageCollection with the standard band schema.
    """
    native_bands = _check_landsat_sensor(sensor)
    start, end = _year_dates(year)
    return (
        ee.ImageCollection(LANDSAT_COLLECTIONS[sensor])
        .filterBounds(region)
        .filter(ee.Filter.date(start, end))
        .map(apply_landsat_scale_factors_image)
        .select(native_bands, STANDARD_BANDS)
        .map(mask_landsat_clouds_image)
    )


def get_sentinel2_collection(year: int, region: ee.Geometry) -> ee.ImageCollection:
    """Load Sentinel-2 L2A for a year, cloud-masked, with red/nir bands."""
    start, end = _year_dates(year)
    return (
        ee.ImageCollection(SENTINEL2_COLLECTION)
        .filterBounds(region)
        .filter(ee.Filter.date(start, end))
        .map(mask_sentinel2_clouds_image)
        .select(SENTINEL2_BANDS, MERGED_BANDS)
    )


def get_surface_reflectance(year: int, region: ee.Geometry) -> ee.ImageCollection:
    """
    Build the harmonized red/nir collection for a year and region.

    Landsat 9, 8 and 7 are concatenated in that order, Sentinel-2 is
    appended and the result is sorted by acquisition time. Images sharing
    a timestamp are all kept.
    """
    landsat = None
    for sensor in LANDSAT_MERGE_ORDER:
        collection = get_landsat_collection(sensor, year, region)
        landsat = collection if landsat is None else landsat.merge(collection)

    merged = (
        ee.ImageCollection(landsat)
        .select(MERGED_BANDS)
        .merge(get_sentinel2_collection(year, region))
        .sort("system:time_start")
    )
    return merged


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


def apply_landsat_scale_factors(ds: xr.Dataset) -> xr.Dataset:
    """Scale every ``SR_B<n>`` variable; other bands are left untouched."""
    optical = [
        name for name in ds.data_vars if re.fullmatch(LANDSAT_OPTICAL_PATTERN, str(name))
    ]
    scaled = ds.copy()
    for name in optical:
        scaled[name] = ds[name] * LANDSAT_SCALE + LANDSAT_OFFSET
    return scaled


def mask_landsat_clouds(ds: xr.Dataset) -> xr.Dataset:
    """Mask clouds/shadow on a Landsat image already in the standard schema."""
    require_variables(ds, ["QA_PIXEL", "blue"], "Landsat image")
    keep = _bitmask_clear(ds["QA_PIXEL"], LANDSAT_CLOUD_SHADOW_BIT, LANDSAT_CLOUD_BIT)
    keep = keep & (ds["blue"] <= LANDSAT_BLUE_THRESHOLD)
    return ds.where(keep).astype("float64")


def mask_sentinel2_clouds(ds: xr.Dataset) -> xr.Dataset:
    """Scale Sentinel-2 ``B*`` bands and mask cloud, cirrus and shadow pixels."""
    require_variables(ds, ["QA60", "MSK_CLDPRB", "SCL"], "Sentinel-2 image")
    scaled = ds.copy()
    for name in ds.data_vars:
        if re.fullmatch(SENTINEL2_OPTICAL_PATTERN, str(name)):
            scaled[name] = ds[name] * SENTINEL2_SCALE

    keep = _bitmask_clear(ds["QA60"], SENTINEL2_CLOUD_BIT, SENTINEL2_CIRRUS_BIT)
    scl = ds["SCL"]
    keep = (
        keep
        & (ds["MSK_CLDPRB"] <= SENTINEL2_MAX_CLOUD_PROBABILITY)
        & (scl != SENTINEL2_SCL_CIRRUS)
        & (scl != SENTINEL2_SCL_SHADOW)
    )
    return scaled.where(keep)


def harmonize_landsat(ds: xr.Dataset, sensor: str) -> xr.Dataset:
    """
    Scale, rename and cloud-mask a Landsat image or collection.

    Args:
        ds: Dataset with the sensor-native Collection 2 L2 bands.
        sensor: "L9", "L8" or "L7".

    Returns:
        Dataset with the standard band schema. When ``ds`` has a ``time``
        dimension a ``sensor`` coordinate is attached along it.
    """
    native_bands = _check_landsat_sensor(sensor)
    require_variables(ds, native_bands, f"{sensor} image")

    scaled = apply_landsat_scale_factors(ds[native_bands])
    renamed = scaled.rename(dict(zip(native_bands, STANDARD_BANDS, strict=True)))
    masked = mask_landsat_clouds(renamed)
    return _tag_sensor(masked, sensor)


def harmonize_sentinel2(ds: xr.Dataset) -> xr.Dataset:
    """Scale and cloud-mask Sentinel-2, keeping only red/nir."""
    require_variables(ds, SENTINEL2_BANDS, "Sentinel-2 image")
    masked = mask_sentinel2_clouds(ds)
    renamed = masked[SENTINEL2_BANDS].rename(dict(zip(SENTINEL2_BANDS, MERGED_BANDS, strict=True)))
    return _tag_sensor(renamed, "S2")


def _tag_sensor(ds: xr.Dataset, sensor: str) -> xr.Dataset:
    if "time" not in ds.dims:
        return ds
    return ds.assign_coords(sensor=("time", np.full(ds.sizes["time"], sensor, dtype=object)))


def merge_collections(collections: Sequence[xr.Dataset]) -> xr.Dataset:
    """
    Merge harmonized collections into one time-ordered red/nir collection.

    Collections are concatenated in the given order (the precedence for
    equal timestamps) and stable-sorted by time. Duplicate timestamps are
    retained; all-masked images are retained.

    Raises:
        ValueError: If no collections are given, a collection lacks red/nir,
            or the collections are not on the same x/y grid.
    """
    if not collections:
        raise ValueError("No collections to merge")

    parts = []
    for idx, collection in enumerate(collections):
        require_variables(collection, MERGED_BANDS, f"collection {idx}")
        if "time" not in collection.dims:
            raise ValueError(f"collection {idx} has no 'time' dimension")
        part = collection[MERGED_BANDS]
        if "sensor" not in part.coords:
            part = _tag_sensor(part, f"collection_{idx}")
        parts.append(part)

    merged = xr.concat(parts, dim="time", join="exact", coords="minimal", compat="override")
    order = np.argsort(merged["time"].values, kind="stable")
    merged = merged.isel(time=order)
    logger.debug("Merged %d collections into %d images", len(parts), merged.sizes["time"])
    return merged
