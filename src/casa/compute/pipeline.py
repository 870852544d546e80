"""
End-to-end CASA NPP/NCEI pipeline.

Composes harmonization, climate preprocessing, parameter derivation, FPAR
and NPP/NCEI estimation, then reduces to annual means. ``calculate_casa``
builds an Earth Engine graph; ``calculate_casa_local`` runs the same steps
on in-memory xarray inputs.
"""

from __future__ import annotations

import logging

import ee
import xarray as xr

from .._utils.arrays import filter_collection, year_range
from .._utils.gee import normalize_region, require_non_empty, wait_for_tasks
from .climate import add_rh, get_climate_for_year, preprocess_climate
from .export import export_image, temporal_mean, temporal_mean_image
from .fpar import add_fpar, add_fpar_image, add_indices, add_indices_image
from .harmonize import get_surface_reflectance
from .npp import (
    add_ncei,
    add_ncei_image,
    add_npp,
    add_npp_image,
    check_stress_bands_image,
)
from .parameters import Unmapped, derive_parameters, derive_parameters_image, get_landcover
from .settings import (
    EXPORT_CRS,
    EXPORT_MAX_PIXELS,
    EXPORT_SCALE,
    Destination,
    JoinPolicy,
)

logger = logging.getLogger(__name__)


def calculate_casa(
    region: object,
    year: int,
    stress: ee.Image | ee.ImageCollection,
    join: JoinPolicy = "month",
    unmapped: Unmapped = "keep",
    validate: bool = True,
) -> dict[str, ee.Image | ee.ImageCollection]:
    """
    Build the CASA NPP/NCEI graph for a region and year on Earth Engine.

    Args:
        region: Study region (any input accepted by ``normalize_region``).
        year: Target year.
        stress: Image (or monthly ImageCollection) with Wstress, Tstress1
            and Tstress2 bands.
        join: Temporal join between reflectance images and monthly climate.
        unmapped: Handling of land-cover classes without parameter entries.
        validate: Check for empty input collections and missing stress
            bands (a few getInfo round-trips).

    Returns:
        Dictionary with intermediate collections/images and the annual
        ``npp_mean`` and ``ncei_mean`` images clipped to the region.

    Example:
        >>> ee.Initialize()
        >>> stress = ee.Image.constant([1, 1, 1]).rename(["Wstress", "Tstress1", "Tstress2"])
        >>> layers = calculate_casa([114.0, 30.4, 114.2, 30.6], 2022, stress)
        >>> layers["ncei_mean"].bandNames().getInfo()
        ['NCEI']
    """
    geometry = normalize_region(region)

    reflectance = get_surface_reflectance(year, geometry)
    climate = get_climate_for_year(year)
    landcover = get_landcover(year)

    if validate:
        require_non_empty(reflectance, "surface_reflectance")
        require_non_empty(climate, "climate")
        check_stress_bands_image(stress)

    parameters = derive_parameters_image(landcover, unmapped)

    def _process(image):
        image = add_indices_image(image)
        image = add_fpar_image(image, parameters)
        image = add_npp_image(image, climate, parameters, stress, join)
        return add_ncei_image(image, climate, join)

    processed = reflectance.map(_process)
    npp = processed.select("NPP")
    ncei = processed.select("NCEI")

    return {
        "surface_reflectance": reflectance,
        "climate": climate,
        "landcover": landcover,
        "parameters": parameters,
        "fpar": processed.select("FPAR"),
        "npp": npp,
        "ncei": ncei,
        "npp_mean": temporal_mean_image(npp, "NPP").clip(geometry),
        "ncei_mean": temporal_mean_image(ncei, "NCEI").clip(geometry),
    }


def export_casa(
    region: object,
    year: int,
    stress: ee.Image | ee.ImageCollection,
    join: JoinPolicy = "month",
    unmapped: Unmapped = "keep",
    destination: Destination = "drive",
    folder: str | None = None,
    asset_root: str | None = None,
    scale: float = EXPORT_SCALE,
    crs: str = EXPORT_CRS,
    max_pixels: float = EXPORT_MAX_PIXELS,
    validate: bool = True,
    wait: bool = False,
) -> dict[str, ee.batch.Task]:
    """
    Export mean annual NPP and NCEI rasters (``NPP_<year>``, ``NCEI_<year>``).

    Args:
        region: Study region.
        year: Target year.
        stress: Stress coefficient image or collection.
        join: Temporal join policy.
        unmapped: Handling of unmapped land-cover classes.
        destination: "drive" or "asset".
        folder: Drive folder for destination="drive".
        asset_root: Asset folder for destination="asset".
        scale: Output resolution in meters.
        crs: Output CRS.
        max_pixels: Pixel-count ceiling.
        validate: Run input validation and the pixel-count pre-check.
        wait: Block until both tasks finish.

    Returns:
        {"NPP": task, "NCEI": task}
    """
    if destination == "asset" and not asset_root:
        raise ValueError("asset_root is required for destination='asset'")

    geometry = normalize_region(region)
    layers = calculate_casa(geometry, year, stress, join=join, unmapped=unmapped, validate=validate)

    tasks = {}
    for band, key in (("NPP", "npp_mean"), ("NCEI", "ncei_mean")):
        description = f"{band}_{year}"
        tasks[band] = export_image(
            layers[key],
            description=description,
            region=geometry,
            scale=scale,
            crs=crs,
            max_pixels=max_pixels,
            destination=destination,
            folder=folder,
            asset_id=f"{asset_root}/{description}" if asset_root else None,
            check_pixels=validate,
        )

    if wait:
        wait_for_tasks(list(tasks.values()))

    return tasks


def calculate_casa_local(
    reflectance: xr.Dataset,
    climate: xr.Dataset,
    landcover: xr.DataArray,
    stress: xr.Dataset,
    join: JoinPolicy = "month",
    unmapped: Unmapped = "keep",
    year: int | None = None,
    bounds: tuple[float, float, float, float] | None = None,
) -> dict[str, xr.Dataset | xr.DataArray]:
    """
    Run the CASA pipeline on in-memory inputs.

    Args:
        reflectance: Harmonized red/nir collection (see ``merge_collections``).
        climate: Raw TerraClimate collection (pr, tmmn, tmmx, srad) or an
            already preprocessed one.
        landcover: IGBP class raster.
        stress: Dataset with Wstress, Tstress1 and Tstress2.
        join: Temporal join policy.
        unmapped: Handling of unmapped land-cover classes.
        year: Restrict reflectance and climate to this calendar year.
        bounds: Restrict reflectance to (xmin, ymin, xmax, ymax) in its
            own coordinates.

    Returns:
        Dictionary with the layers returned by :func:`calculate_casa`, the
        full ``processed`` collection, and annual ``npp_mean``/``ncei_mean``.

    Raises:
        ValueError: If the reflectance or climate collection is empty or a
            required band is missing.
    """
    start, end = year_range(year) if year is not None else (None, None)
    if year is not None or bounds is not None:
        reflectance = filter_collection(reflectance, start, end, bounds)
    if year is not None and "time" in climate.dims:
        climate = filter_collection(climate, start, end)

    if reflectance.sizes.get("time", 0) == 0:
        raise ValueError("Collection 'surface_reflectance' is empty")
    if climate.sizes.get("time", 1) == 0:
        raise ValueError("Collection 'climate' is empty")

    if "solar_radiation" not in climate.data_vars:
        climate = preprocess_climate(climate)
    if "RH" not in climate.data_vars:
        climate = add_rh(climate)

    parameters = derive_parameters(landcover, unmapped)

    processed = add_indices(reflectance)
    processed = add_fpar(processed, parameters)
    processed = add_npp(processed, climate, parameters, stress, join)
    processed = add_ncei(processed, climate, join)
    logger.info("Processed %d images", processed.sizes["time"])

    return {
        "climate": climate,
        "landcover": landcover,
        "parameters": parameters,
        "processed": processed,
        "fpar": processed["FPAR"],
        "npp": processed["NPP"],
        "ncei": processed["NCEI"],
        "npp_mean": temporal_mean(processed, "NPP"),
        "ncei_mean": temporal_mean(processed, "NCEI"),
    }
