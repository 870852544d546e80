"""
Settings for CASA NPP/NCEI computation.

Contains collection IDs, band schemas, sensor scale factors, cloud-mask
thresholds, land-cover lookup tables and export defaults.
"""

from typing import Literal

# ---------------------------------------------------------------------------
# Source collections
# ---------------------------------------------------------------------------

LANDSAT9_COLLECTION = "LANDSAT/LC09/C02/T1_L2"
LANDSAT8_COLLECTION = "LANDSAT/LC08/C02/T1_L2"
LANDSAT7_COLLECTION = "LANDSAT/LE07/C02/T1_L2"
SENTINEL2_COLLECTION = "COPERNICUS/S2_SR_HARMONIZED"
CLIMATE_COLLECTION = "IDAHO_EPSCOR/TERRACLIMATE"
LANDCOVER_COLLECTION = "MODIS/061/MCD12Q1"
LANDCOVER_BAND = "LC_Type1"

# ---------------------------------------------------------------------------
# Band schemas
# ---------------------------------------------------------------------------

STANDARD_BANDS = ["blue", "green", "red", "nir", "swir1", "swir2", "QA_PIXEL"]
MERGED_BANDS = ["red", "nir"]

LANDSAT_BANDS = {
    "L9": ["SR_B2", "SR_B3", "SR_B4", "SR_B5", "SR_B6", "SR_B7", "QA_PIXEL"],
    "L8": ["SR_B2", "SR_B3", "SR_B4", "SR_B5", "SR_B6", "SR_B7", "QA_PIXEL"],
    "L7": ["SR_B1", "SR_B2", "SR_B3", "SR_B4", "SR_B5", "SR_B7", "QA_PIXEL"],
}
LANDSAT_COLLECTIONS = {
    "L9": LANDSAT9_COLLECTION,
    "L8": LANDSAT8_COLLECTION,
    "L7": LANDSAT7_COLLECTION,
}
# Merge precedence: earlier sensors come first for equal timestamps
LANDSAT_MERGE_ORDER = ["L9", "L8", "L7"]

SENTINEL2_BANDS = ["B4", "B8"]

# ---------------------------------------------------------------------------
# Scaling and cloud masking
# ---------------------------------------------------------------------------

LANDSAT_SCALE = 0.0000275
LANDSAT_OFFSET = -0.2
LANDSAT_OPTICAL_PATTERN = "SR_B."
LANDSAT_CLOUD_SHADOW_BIT = 4
LANDSAT_CLOUD_BIT = 3
# Scaled blue reflectance above this is treated as bright cloud
LANDSAT_BLUE_THRESHOLD = 0.2

SENTINEL2_SCALE = 0.0001
SENTINEL2_OPTICAL_PATTERN = "B.*"
SENTINEL2_CLOUD_BIT = 10
SENTINEL2_CIRRUS_BIT = 11
SENTINEL2_MAX_CLOUD_PROBABILITY = 30
SENTINEL2_SCL_SHADOW = 3
SENTINEL2_SCL_CIRRUS = 10

# ---------------------------------------------------------------------------
# Climate
# ---------------------------------------------------------------------------

CLIMATE_BANDS = ["pr", "tmmn", "tmmx", "srad"]
SRAD_SCALE = 0.1
# W/m2 -> MJ/m2 over a 30-day month
SRAD_TO_MJ_MONTH = 2.592
TEMPERATURE_SCALE = 0.1

# Heterotrophic respiration regression (Zhuang et al.)
RH_COEFFICIENT = 0.22
RH_TEMPERATURE_FACTOR = 0.0913
RH_PRECIPITATION_FACTOR = 0.3145
RH_DAYS_PER_MONTH = 30
RH_CARBON_FRACTION = 0.465

# ---------------------------------------------------------------------------
# CASA parameters (MODIS IGBP LC_Type1 classes)
# ---------------------------------------------------------------------------

LUE_TABLE = {
    1: 0.389,
    2: 0.985,
    3: 0.485,
    4: 0.692,
    5: 0.728,
    6: 0.429,
    7: 0.429,
    8: 0.542,
    9: 0.542,
    10: 0.542,
    11: 0.542,
    12: 0.542,
    13: 0.196,
    14: 0.542,
    15: 0.542,
    16: 0.217,
    17: 0.296,
}

# NDVI/SR upper bounds are only published for classes 1-12
NDVI_MAX_TABLE = {
    1: 0.647,
    2: 0.676,
    3: 0.738,
    4: 0.747,
    5: 0.702,
    6: 0.636,
    7: 0.634,
    8: 0.634,
    9: 0.634,
    10: 0.634,
    11: 0.634,
    12: 0.634,
}
SR_MAX_TABLE = {
    1: 4.67,
    2: 5.17,
    3: 6.63,
    4: 6.91,
    5: 5.845,
    6: 4.49,
    7: 4.46,
    8: 4.46,
    9: 4.46,
    10: 4.46,
    11: 4.46,
    12: 4.46,
}
NDVI_MIN = 0.023
SR_MIN = 1.05

PARAMETER_BANDS = ["LUE", "NDVI_min", "NDVI_max", "SR_min", "SR_max"]

# ---------------------------------------------------------------------------
# FPAR / NPP
# ---------------------------------------------------------------------------

FPAR_SCALE = 0.949
FPAR_OFFSET = 0.001
FPAR_MIN = 0.05
FPAR_MAX = 0.95
# Fraction of PAR in total shortwave radiation
PAR_FRACTION = 0.5

STRESS_BANDS = ["Wstress", "Tstress1", "Tstress2"]

JoinPolicy = Literal["month", "nearest", "mean"]
JOIN_POLICIES = ("month", "nearest", "mean")

# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

EXPORT_SCALE = 30
EXPORT_CRS = "EPSG:4326"
EXPORT_MAX_PIXELS = 1e13

Destination = Literal["drive", "asset"]

# Units written to exported GeoTIFF tags
BAND_UNITS = {
    "NPP": "g C / m² / month",
    "NCEI": "g C / m² / month",
    "RH": "g C / m² / month",
    "FPAR": "unitless",
}
