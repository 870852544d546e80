"""
Internal GEE utility functions.
"""

from __future__ import annotations

import logging
import time
from typing import Any, cast

import ee

logger = logging.getLogger(__name__)

ACTIVE_STATES = ("UNSUBMITTED", "READY", "RUNNING", "CANCEL_REQUESTED")
FAILED_STATES = ("FAILED", "CANCELLED")


def _is_bbox(value: object) -> bool:
    if not isinstance(value, list | tuple) or len(value) != 4:
        return False
    return all(isinstance(v, int | float) for v in value)


def _normalize_geometry(geometry: ee.Geometry, max_error: float = 1) -> ee.Geometry:
    """Ensure geometry uses EPSG:4326 when a projection is defined."""
    crs = geometry.projection().crs()
    normalized = ee.Algorithms.If(
        ee.String(crs).compareTo("EPSG:4326").neq(0),
        geometry.transform("EPSG:4326", max_error),
        geometry,
    )
    return ee.Geometry(normalized)


def normalize_region(value: object, max_error: float = 1) -> ee.Geometry:
    """
    Normalize a study-region input to an EPSG:4326 ee.Geometry.

    Accepts ee.Geometry, ee.Feature, ee.FeatureCollection, a bbox tuple
    (xmin, ymin, xmax, ymax) or any object exposing __geo_interface__
    (shapely geometries, GeoPandas objects).
    """
    if isinstance(value, ee.Geometry):
        return _normalize_geometry(value, max_error)
    if isinstance(value, ee.Feature | ee.FeatureCollection):
        return _normalize_geometry(value.geometry(), max_error)
    if _is_bbox(value):
        return _normalize_geometry(ee.Geometry.Rectangle(list(value)), max_error)  # type: ignore[arg-type]
    if hasattr(value, "__geo_interface__"):
        geo = cast(dict[Any, Any], value.__geo_interface__)  # type: ignore[attr-defined]
        if geo.get("type") == "FeatureCollection":
            return _normalize_geometry(ee.FeatureCollection(geo).geometry(), max_error)
        if geo.get("type") == "Feature":
            return _normalize_geometry(ee.Feature(geo).geometry(), max_error)
        return _normalize_geometry(ee.Geometry(geo), max_error)
    raise ValueError(
        "Unsupported region input. Provide ee.Geometry, ee.Feature, "
        "ee.FeatureCollection, a shapely geometry, a GeoPandas object, or a bbox."
    )


def estimate_area_sq_km(geometry: ee.Geometry, max_error: float = 1) -> float:
    """Estimate region area using bounds to keep server-side geometry simple."""
    bounds = geometry.bounds(max_error)
    area_m2 = bounds.area(max_error)
    return float(ee.Number(area_m2).divide(1_000_000).getInfo())


def require_non_empty(collection: ee.ImageCollection, name: str) -> int:
    """
    Raise if an ImageCollection resolves to zero images.

    Costs one getInfo round-trip.

    Returns:
        Number of images in the collection.
    """
    size = int(collection.size().getInfo())
    if size == 0:
        raise ValueError(f"Collection '{name}' is empty for the requested date range and region")
    logger.info("Collection %s: %d images", name, size)
    return size


def wait_for_tasks(tasks: list[ee.batch.Task], poll_interval: int = 30) -> list[dict]:
    """
    Wait for Earth Engine export tasks to complete.

    Args:
        tasks: Started export tasks to monitor.
        poll_interval: Seconds between status checks.

    Returns:
        Final status dictionaries, one per task.

    Raises:
        RuntimeError: If any task ends FAILED or CANCELLED.
    """
    while True:
        statuses = [task.status() for task in tasks]
        active = sum(1 for s in statuses if s["state"] in ACTIVE_STATES)
        completed = sum(1 for s in statuses if s["state"] == "COMPLETED")
        failed = [s for s in statuses if s["state"] in FAILED_STATES]

        logger.info(
            "Tasks: %d total, %d active, %d completed, %d failed",
            len(tasks),
            active,
            completed,
            len(failed),
        )

        if active == 0:
            if failed:
                details = "; ".join(
                    f"{s.get('description', s.get('id'))}: {s.get('error_message', s['state'])}"
                    for s in failed
                )
                logger.warning("%d tasks failed", len(failed))
                raise RuntimeError(f"{len(failed)} export task(s) failed: {details}")
            logger.info("All tasks completed successfully")
            return statuses

        time.sleep(poll_interval)
