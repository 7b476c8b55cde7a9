"""Multicriteria raster susceptibility engine.

This package computes a composite geotechnical-risk surface for a drainage
basin from ready-to-use raster grids.

The workflow:
1. Derive slope, aspect and curvature from the elevation grid
2. Reduce the radar stack to a backscatter std-dev (deformation proxy) and the
   optical stack to a median composite (NDWI, NDVI)
3. Compute topographic position (TPI) at two neighbourhood radii
4. Normalize each indicator onto [0, 1] with fixed reference anchors
5. Combine them with the AHP weight set into a susceptibility index
6. Classify the index into five risk tiers
7. Summarize elevation, slope and class areas over the study region
"""

from susceptibility.config import ModelConfiguration, WeightSet, default_configuration
from susceptibility.errors import (
    InsufficientSourceData,
    InvalidConfiguration,
    InvalidWeightSet,
    MisalignedGrids,
    SusceptibilityError,
)
from susceptibility.grid import RasterGrid
from susceptibility.pipeline import (
    SusceptibilityInputs,
    SusceptibilityResult,
    run_susceptibility_model,
)

__all__ = [
    "ModelConfiguration",
    "WeightSet",
    "default_configuration",
    "InsufficientSourceData",
    "InvalidConfiguration",
    "InvalidWeightSet",
    "MisalignedGrids",
    "SusceptibilityError",
    "RasterGrid",
    "SusceptibilityInputs",
    "SusceptibilityResult",
    "run_susceptibility_model",
]

__version__ = "1.0.0"
