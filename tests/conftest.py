"""
Shared fixtures for CASA tests.

In-memory backend tests run offline on small synthetic xarray datasets.
Earth Engine tests request the ``ee_session`` fixture and are skipped when
no credentials are available:
    ee.Authenticate()  # one-time setup
    pytest tests/
"""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest
import xarray as xr

from casa.compute.settings import LANDSAT_OFFSET, LANDSAT_SCALE

# 2 x 2 grid in EPSG:4326 degrees
GRID_X = np.array([114.00025, 114.00075])
GRID_Y = np.array([30.00075, 30.00025])


@pytest.fixture(scope="session")
def ee_session():
    """Initialize Earth Engine once per session, or skip."""
    ee = pytest.importorskip("ee")
    try:
        ee.Initialize(opt_url="https://earthengine-highvolume.googleapis.com")
    except Exception:
        try:
            ee.Initialize()
        except Exception as exc:
            pytest.skip(f"Earth Engine not available: {exc}")
    return ee


def _field(values, n_times: int) -> np.ndarray:
    """Broadcast a scalar or 2x2 array to (time, y, x)."""
    arr = np.broadcast_to(np.asarray(values, dtype="float64"), (2, 2))
    return np.repeat(arr[np.newaxis], n_times, axis=0)


def to_landsat_dn(reflectance):
    """Invert the Collection 2 scaling to get digital numbers."""
    return (np.asarray(reflectance, dtype="float64") - LANDSAT_OFFSET) / LANDSAT_SCALE


@pytest.fixture
def make_landsat():
    """Factory for raw Landsat collections (sensor-native bands, DN values)."""

    def _make(
        times: list[str],
        sensor: str = "L8",
        qa=21824,
        blue=0.05,
        green=0.08,
        red=0.1,
        nir=0.4,
    ) -> xr.Dataset:
        n = len(times)
        bands = {
            "L9": ["SR_B2", "SR_B3", "SR_B4", "SR_B5", "SR_B6", "SR_B7"],
            "L8": ["SR_B2", "SR_B3", "SR_B4", "SR_B5", "SR_B6", "SR_B7"],
            "L7": ["SR_B1", "SR_B2", "SR_B3", "SR_B4", "SR_B5", "SR_B7"],
        }[sensor]
        values = [blue, green, red, nir, 0.2, 0.15]
        data = {
            name: (("time", "y", "x"), _field(to_landsat_dn(value), n))
            for name, value in zip(bands, values, strict=True)
        }
        data["QA_PIXEL"] = (("time", "y", "x"), _field(qa, n).astype("int64"))
        return xr.Dataset(
            data,
            coords={"time": pd.DatetimeIndex(times), "y": GRID_Y, "x": GRID_X},
        )

    return _make


@pytest.fixture
def make_sentinel2():
    """Factory for raw Sentinel-2 L2A collections."""

    def _make(
        times: list[str],
        red=1000,
        nir=4000,
        qa60=0,
        cloud_probability=0,
        scl=4,
    ) -> xr.Dataset:
        n = len(times)
        data = {
            "B2": (("time", "y", "x"), _field(500, n)),
            "B4": (("time", "y", "x"), _field(red, n)),
            "B8": (("time", "y", "x"), _field(nir, n)),
            "QA60": (("time", "y", "x"), _field(qa60, n).astype("int64")),
            "MSK_CLDPRB": (("time", "y", "x"), _field(cloud_probability, n)),
            "SCL": (("time", "y", "x"), _field(scl, n)),
        }
        return xr.Dataset(
            data,
            coords={"time": pd.DatetimeIndex(times), "y": GRID_Y, "x": GRID_X},
        )

    return _make


@pytest.fixture
def monthly_climate() -> xr.Dataset:
    """Raw TerraClimate-like collection for 2022 (time only, no grid)."""
    times = pd.date_range("2022-01-01", periods=12, freq="MS")
    return xr.Dataset(
        {
            "pr": ("time", np.full(12, 100.0)),
            "tmmn": ("time", np.full(12, 100.0)),
            "tmmx": ("time", np.full(12, 300.0)),
            "srad": ("time", np.arange(1, 13) * 1000.0),
        },
        coords={"time": times},
    )


@pytest.fixture
def landcover() -> xr.DataArray:
    """IGBP classes: evergreen needleleaf, deciduous broadleaf, none, urban."""
    return xr.DataArray(
        np.array([[1, 3], [0, 13]]),
        dims=("y", "x"),
        coords={"y": GRID_Y, "x": GRID_X},
        name="LC_Type1",
    )


@pytest.fixture
def unit_stress() -> xr.Dataset:
    """Stress coefficients of 1 everywhere."""
    ones = np.ones((2, 2))
    return xr.Dataset(
        {
            "Wstress": (("y", "x"), ones),
            "Tstress1": (("y", "x"), ones),
            "Tstress2": (("y", "x"), ones),
        },
        coords={"y": GRID_Y, "x": GRID_X},
    )


# Small Earth Engine geometries to keep GEE calls fast


@pytest.fixture
def study_point(ee_session):
    """A point in the Wuhan metropolitan area."""
    return ee_session.Geometry.Point([114.1, 30.5])


@pytest.fixture
def study_area(ee_session):
    """A small rectangle around ``study_point`` (~2km x 2km)."""
    return ee_session.Geometry.Rectangle([114.09, 30.49, 114.11, 30.51])
