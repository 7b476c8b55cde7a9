# Default parameters of the slope-stability susceptibility model

MODEL_VERSION = "licoma-ahp-1"

# AHP weights, must sum to 1
DEFAULT_WEIGHTS = {
    "slope": 0.35,
    "deformation": 0.25,
    "curvature": 0.20,
    "moisture": 0.10,
    "position": 0.10,
}
WEIGHT_NAMES = tuple(DEFAULT_WEIGHTS.keys())
WEIGHT_SUM_TOLERANCE = 1e-6

# Reference ranges (lower, upper) used to map raw indicators onto [0, 1]
DEFAULT_ANCHORS = {
    "slope": (0.0, 50.0),  # degrees
    "deformation": (0.0, 0.3),  # VV backscatter std-dev
    "curvature": (0.0, 0.2),
    "moisture": (-0.3, 1.0),  # NDWI + 0.3 over a 1.3 span
    "relief": (0.0, 50.0),  # |TPI| at the generic radius
    "relief_adjusted": (0.0, 40.0),  # |TPI| at the susceptibility radius
}

# Lower bounds of classes 2..5, a boundary belongs to the higher class
CLASS_BREAKS = (0.2, 0.4, 0.6, 0.8)

RISK_LABELS = ["Very Low", "Low", "Medium", "High", "Very High"]
RISK_PALETTE = ["#1a9641", "#a6d96a", "#ffffbf", "#fdae61", "#d7191c"]
RISK_GUIDANCE = [
    "Suitable for construction without restrictions",
    "Suitable for construction without restrictions",
    "Requires basic geotechnical studies",
    "Requires moderate retaining works",
    "Avoid construction or design major works",
]

# Sentinel-1 GRD filters
RADAR_START_DATE = "2020-01-01"
RADAR_END_DATE = "2024-01-01"
RADAR_INSTRUMENT_MODE = "IW"
RADAR_POLARIZATION = "VV"

# Sentinel-2 SR filters
OPTICAL_START_DATE = "2023-01-01"
OPTICAL_END_DATE = "2023-12-31"
OPTICAL_MAX_CLOUD_PERCENT = 20.0

# Canonical band ids for Sentinel-2 band names
BAND_ALIASES = {
    "B2": "blue",
    "B3": "green",
    "B4": "red",
    "B8": "nir",
    "B11": "swir1",
    "B12": "swir2",
}

# TPI neighbourhood radii in metres
TPI_RADIUS_M = 100.0
TPI_ADJUSTED_RADIUS_M = 40.0

STEEP_SLOPE_THRESHOLD_DEG = 30.0
SLOPE_PERCENTILES = (5, 25, 50, 75, 95)

SQ_M_PER_HECTARE = 10000.0
