"""
Internal helpers for the in-memory (xarray/numpy) backend.

NaN is the validity mask: any arithmetic on a masked operand stays masked.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import numpy as np
import pandas as pd
import xarray as xr


def require_variables(ds: xr.Dataset, names: Iterable[str], what: str = "image") -> None:
    """Raise ValueError naming every band missing from a Dataset."""
    missing = [name for name in names if name not in ds.data_vars]
    if missing:
        available = ", ".join(sorted(str(v) for v in ds.data_vars))
        raise ValueError(f"{what} is missing band(s) {missing}. Available: {available}")


def safe_divide(numerator: Any, denominator: Any) -> Any:
    """Divide, masking pixels where the denominator is zero."""
    if isinstance(numerator, xr.DataArray | xr.Dataset) or isinstance(
        denominator, xr.DataArray | xr.Dataset
    ):
        with np.errstate(divide="ignore", invalid="ignore"):
            ratio = numerator / denominator
        return ratio.where(denominator != 0)

    num = np.asarray(numerator, dtype="float64")
    den = np.asarray(denominator, dtype="float64")
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = np.where(den != 0, num / den, np.nan)
    return ratio[()] if ratio.ndim == 0 else ratio


def match_grid(da: xr.DataArray | xr.Dataset, like: xr.DataArray | xr.Dataset):
    """
    Nearest-neighbour reindex onto ``like``'s x/y grid when the grids differ.

    Rasters without x/y coordinates are aligned by position, which requires
    matching shapes.
    """
    if not {"x", "y"} <= set(da.dims) or not {"x", "y"} <= set(like.dims):
        return da
    indexed = all(dim in obj.indexes for obj in (da, like) for dim in ("x", "y"))
    if not indexed:
        if da.sizes["x"] == like.sizes["x"] and da.sizes["y"] == like.sizes["y"]:
            if "x" in like.indexes and "y" in like.indexes:
                return da.assign_coords(x=like["x"].values, y=like["y"].values)
            return da
        raise ValueError(
            "x/y coordinates are required to align rasters of different shapes: "
            f"got {da.sizes['y']}x{da.sizes['x']} and {like.sizes['y']}x{like.sizes['x']}"
        )
    if da.indexes["x"].equals(like.indexes["x"]) and da.indexes["y"].equals(like.indexes["y"]):
        return da
    return da.reindex(x=like["x"], y=like["y"], method="nearest")


def filter_collection(
    ds: xr.Dataset,
    start: str | pd.Timestamp | None = None,
    end: str | pd.Timestamp | None = None,
    bounds: tuple[float, float, float, float] | None = None,
) -> xr.Dataset:
    """
    Filter a collection to [start, end) and optionally to an x/y bounding box.

    Args:
        ds: Collection Dataset with a ``time`` dimension.
        start: Inclusive start date; None leaves the start open.
        end: Exclusive end date; None leaves the end open.
        bounds: Optional (xmin, ymin, xmax, ymax) in the Dataset's coordinates.
    """
    if start is not None or end is not None:
        times = pd.DatetimeIndex(ds["time"].values)
        keep = np.ones(len(times), dtype=bool)
        if start is not None:
            keep &= times >= pd.Timestamp(start)
        if end is not None:
            keep &= times < pd.Timestamp(end)
        ds = ds.isel(time=np.flatnonzero(keep))

    if bounds is not None:
        xmin, ymin, xmax, ymax = bounds
        x = ds["x"].values
        y = ds["y"].values
        ds = ds.isel(
            x=np.flatnonzero((x >= xmin) & (x <= xmax)),
            y=np.flatnonzero((y >= ymin) & (y <= ymax)),
        )
    return ds


def year_range(year: int) -> tuple[pd.Timestamp, pd.Timestamp]:
    """Return [Jan 1 year, Jan 1 year+1)."""
    start = pd.Timestamp(year=year, month=1, day=1)
    return start, start + pd.DateOffset(years=1)
