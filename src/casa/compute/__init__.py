"""
CASA NPP/NCEI computation.

Every step has an Earth Engine form (``*_image`` functions and ``get_*``
loaders) and an in-memory xarray form.

Example:
    >>> import ee
    >>> from casa.compute import calculate_casa
    >>>
    >>> ee.Initialize()
    >>> stress = ee.Image.constant([1, 1, 1]).rename(["Wstress", "Tstress1", "Tstress2"])
    >>> layers = calculate_casa([114.0, 30.4, 114.2, 30.6], 2022, stress)
    >>> npp = layers["npp_mean"]
"""

from .climate import add_rh, calculate_rh, get_climate, preprocess_climate
from .export import export_image, temporal_mean, temporal_mean_image, write_geotiff
from .fpar import add_fpar, add_indices, calculate_fpar, calculate_ndvi, calculate_sr
from .harmonize import (
    get_surface_reflectance,
    harmonize_landsat,
    harmonize_sentinel2,
    merge_collections,
)
from .npp import add_ncei, add_npp, calculate_ncei, calculate_npp, join_to_collection
from .parameters import derive_parameters, derive_parameters_image, generate_lue, get_landcover
from .pipeline import calculate_casa, calculate_casa_local, export_casa
from .rasters import open_geotiff_collection, open_geotiff_image

__all__ = [
    # Pipeline
    "calculate_casa",
    "calculate_casa_local",
    "export_casa",
    # Harmonization
    "get_surface_reflectance",
    "harmonize_landsat",
    "harmonize_sentinel2",
    "merge_collections",
    # Climate
    "get_climate",
    "preprocess_climate",
    "add_rh",
    "calculate_rh",
    # Parameters
    "get_landcover",
    "derive_parameters",
    "derive_parameters_image",
    "generate_lue",
    # Indices and FPAR
    "calculate_ndvi",
    "calculate_sr",
    "calculate_fpar",
    "add_indices",
    "add_fpar",
    # NPP / NCEI
    "calculate_npp",
    "calculate_ncei",
    "join_to_collection",
    "add_npp",
    "add_ncei",
    # Export
    "temporal_mean",
    "temporal_mean_image",
    "write_geotiff",
    "export_image",
    # GeoTIFF input
    "open_geotiff_image",
    "open_geotiff_collection",
]
