"""
Temporal-mean reduction and raster export.

Earth Engine exports run as a single batch task (Drive or asset) with no
retry. In-memory rasters are written as single-band GeoTIFFs through
rioxarray.
"""

from __future__ import annotations

import logging
from pathlib import Path

import ee
import numpy as np
import rioxarray  # noqa: F401
import xarray as xr

from .._utils.gee import estimate_area_sq_km, normalize_region, wait_for_tasks
from .settings import (
    BAND_UNITS,
    EXPORT_CRS,
    EXPORT_MAX_PIXELS,
    EXPORT_SCALE,
    Destination,
)

logger = logging.getLogger(__name__)


def temporal_mean(collection: xr.Dataset | xr.DataArray, band: str | None = None) -> xr.DataArray:
    """
    Per-pixel mean over time, ignoring masked (NaN) pixels.

    A fully masked image does not contribute to the mean; pixels masked in
    every image stay masked.
    """
    da = collection[band] if band is not None else collection
    if not isinstance(da, xr.DataArray):
        raise ValueError("band is required when reducing a Dataset")
    if "time" not in da.dims:
        raise ValueError("Collection has no 'time' dimension to reduce")
    mean = da.mean("time", skipna=True, keep_attrs=True)
    return mean.rename(band) if band is not None else mean


def write_geotiff(
    data: xr.DataArray,
    path: str | Path,
    crs: str = EXPORT_CRS,
    resolution: float | None = None,
    bounds: tuple[float, float, float, float] | None = None,
    max_pixels: float = EXPORT_MAX_PIXELS,
    compression: str | None = "deflate",
) -> Path:
    """
    Write a single-band raster to GeoTIFF.

    Args:
        data: 2-D (y, x) DataArray. Without a CRS it is assumed to already
            be in ``crs``. It is resampled whenever ``resolution`` is given
            and reprojected when its CRS differs from ``crs``.
        path: Output file path; parent directories are created.
        crs: Output coordinate reference system.
        resolution: Output pixel size in ``crs`` units.
        bounds: Optional (xmin, ymin, xmax, ymax) clip box in ``crs``.
        max_pixels: Pixel-count ceiling.
        compression: GeoTIFF compression codec.

    Returns:
        Path of the written file.

    Raises:
        ValueError: If the raster is not 2-D or exceeds ``max_pixels``.
    """
    extra_dims = set(data.dims) - {"x", "y"}
    if extra_dims:
        raise ValueError(f"Expected a 2-D (y, x) raster, got extra dims {sorted(extra_dims)}")

    data = data.astype("float32")
    if data.rio.crs is None:
        data = data.rio.write_crs(crs)
    if resolution is not None or data.rio.crs.to_string() != crs:
        data = data.rio.reproject(crs, resolution=resolution, nodata=np.nan)

    if bounds is not None:
        data = data.rio.clip_box(*bounds)

    pixel_count = data.sizes["x"] * data.sizes["y"]
    if pixel_count > max_pixels:
        raise ValueError(f"Raster has {pixel_count} pixels, exceeding max_pixels={max_pixels:.0f}")

    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    name = str(data.name) if data.name is not None else "band_1"
    data = data.rio.write_nodata(np.nan, encoded=False)
    kwargs = {}
    if compression:
        kwargs["compress"] = compression
    data.rio.to_raster(
        out_path,
        tags={"BAND_1": name, "UNITS": BAND_UNITS.get(name, "")},
        **kwargs,
    )
    logger.info("Wrote %s (%d pixels)", out_path, pixel_count)
    return out_path


def export_mean_raster(
    collection: xr.Dataset,
    band: str,
    path: str | Path,
    **kwargs,
) -> Path:
    """Reduce one band of a collection to its temporal mean and write it."""
    return write_geotiff(temporal_mean(collection, band), path, **kwargs)


# ---------------------------------------------------------------------------
# Earth Engine
# ---------------------------------------------------------------------------


def temporal_mean_image(collection: ee.ImageCollection, band: str) -> ee.Image:
    """Per-pixel mean of one band; masked pixels are excluded by Earth Engine."""
    return collection.select(band).mean().rename(band)


def estimate_pixel_count(region: ee.Geometry, scale: float = EXPORT_SCALE) -> float:
    """Approximate export pixel count from the region's bounding-box area."""
    area_sq_km = estimate_area_sq_km(region)
    return (area_sq_km * 1_000_000) / float(scale * scale)


def export_image(
    image: ee.Image,
    description: str,
    region: object,
    scale: float = EXPORT_SCALE,
    crs: str = EXPORT_CRS,
    max_pixels: float = EXPORT_MAX_PIXELS,
    destination: Destination = "drive",
    folder: str | None = None,
    asset_id: str | None = None,
    file_name_prefix: str | None = None,
    check_pixels: bool = True,
    wait: bool = False,
    poll_interval: int = 30,
) -> ee.batch.Task:
    """
    Export an image once to Google Drive or an Earth Engine asset.

    Args:
        image: Image to export.
        description: Task description (also the default file name).
        region: Export region (any input accepted by ``normalize_region``).
        scale: Output resolution in meters.
        crs: Output coordinate reference system.
        max_pixels: Pixel-count ceiling passed to Earth Engine.
        destination: "drive" or "asset".
        folder: Drive folder (destination="drive").
        asset_id: Target asset ID (required for destination="asset").
        file_name_prefix: Drive file name prefix; defaults to ``description``.
        check_pixels: Estimate the pixel count before submitting and fail
            fast when it exceeds ``max_pixels`` (one getInfo round-trip).
        wait: Block until the task finishes.
        poll_interval: Seconds between status checks when waiting.

    Returns:
        The started export task.

    Raises:
        ValueError: For an unknown destination, a missing asset_id, or an
            estimated pixel count above ``max_pixels``.
        RuntimeError: If the task cannot be started or ends FAILED/CANCELLED.
    """
    geometry = normalize_region(region)

    if destination not in ("drive", "asset"):
        raise ValueError("destination must be 'drive' or 'asset'")
    if destination == "asset" and not asset_id:
        raise ValueError("asset_id is required for destination='asset'")

    if check_pixels:
        pixel_count = estimate_pixel_count(geometry, scale)
        if pixel_count > max_pixels:
            raise ValueError(
                f"Export '{description}' needs ~{pixel_count:.3g} pixels, "
                f"exceeding max_pixels={max_pixels:.3g}"
            )

    if destination == "drive":
        task = ee.batch.Export.image.toDrive(
            image=image,
            description=description,
            folder=folder,
            fileNamePrefix=file_name_prefix or description,
            region=geometry,
            scale=scale,
            crs=crs,
            maxPixels=max_pixels,
        )
    else:
        task = ee.batch.Export.image.toAsset(
            image=image,
            description=description,
            assetId=asset_id,
            region=geometry,
            scale=scale,
            crs=crs,
            maxPixels=max_pixels,
        )

    try:
        task.start()
    except ee.EEException as e:
        raise RuntimeError(f"Failed to start export '{description}': {e}") from e

    logger.info("Started export %s (%s)", description, destination)

    if wait:
        wait_for_tasks([task], poll_interval=poll_interval)

    return task
