"""
CASA carbon sink estimation

A Python package for estimating Net Primary Productivity (NPP) with the
CASA light-use-efficiency model and Net Carbon Emission Intensity
(NCEI = NPP - heterotrophic respiration) from harmonized Landsat and
Sentinel-2 reflectance, TerraClimate climate and MODIS land cover.

Submodules:
    - casa.compute: Pipeline steps for Earth Engine and in-memory xarray data
    - casa.config: Deployment settings from config.yaml

Quick Start:
    >>> import ee
    >>> from casa.compute import export_casa
    >>>
    >>> ee.Initialize()
    >>> stress = ee.Image("projects/my-project/assets/casa/stress_2022")
    >>> tasks = export_casa([114.0, 30.4, 114.2, 30.6], 2022, stress)
"""

try:
    from ._version import __version__
except ImportError:
    __version__ = "0.0.0.dev0"

__all__ = ["__version__"]
