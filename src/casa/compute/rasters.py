"""
GeoTIFF loading for the in-memory backend.

Builds image collections (Datasets with a ``time`` dimension) from per-date
multi-band GeoTIFFs, optionally Dask-chunked for out-of-core processing.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path

import numpy as np
import pandas as pd
import rioxarray
import xarray as xr


def open_geotiff_image(
    path: str | Path,
    band_names: Sequence[str],
    chunks: int | dict | None = None,
) -> xr.Dataset:
    """
    Open a multi-band GeoTIFF as a Dataset with one variable per band.

    Nodata pixels become NaN.

    Raises:
        ValueError: If the file band count does not match ``band_names``.
    """
    da = rioxarray.open_rasterio(path, masked=True, chunks=chunks)
    if da.sizes["band"] != len(band_names):
        raise ValueError(
            f"{path} has {da.sizes['band']} band(s), expected {len(band_names)}: {list(band_names)}"
        )
    da = da.assign_coords(band=list(band_names))
    return da.to_dataset(dim="band")


def open_geotiff_collection(
    files: Mapping[str | pd.Timestamp, str | Path],
    band_names: Sequence[str],
    chunks: int | dict | None = None,
) -> xr.Dataset:
    """
    Open per-date GeoTIFFs as one time-ordered collection.

    Args:
        files: Acquisition date -> GeoTIFF path. All files must share a grid.
        band_names: Band names in file order.
        chunks: Dask chunk sizes for x/y; None loads eagerly.

    Returns:
        Dataset with a ``time`` dimension sorted ascending.
    """
    if not files:
        raise ValueError("No files provided")

    times = pd.DatetimeIndex([pd.Timestamp(t) for t in files])
    images = [open_geotiff_image(path, band_names, chunks=chunks) for path in files.values()]
    collection = xr.concat(images, dim=pd.Index(times, name="time"), join="exact")
    order = np.argsort(collection["time"].values, kind="stable")
    return collection.isel(time=order)
