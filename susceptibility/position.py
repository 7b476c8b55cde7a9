"""Topographic Position Index (TPI) from circular neighbourhood means."""

import math
from typing import Dict

import numpy as np
from scipy import ndimage

from susceptibility.config import ModelConfiguration
from susceptibility.grid import RasterGrid
from utilities.logger import setup_logger

logger = setup_logger(__name__)


def radius_in_cells(radius_m: float, resolution: float) -> int:
    return int(math.floor(radius_m / resolution))


def circular_kernel(radius_m: float, resolution: float) -> np.ndarray:
    """Disc of cells whose centre lies within ``radius_m`` of the centre cell."""
    r = radius_in_cells(radius_m, resolution)
    offsets = np.arange(-r, r + 1)
    dy, dx = np.meshgrid(offsets, offsets, indexing="ij")
    return (dx * dx + dy * dy) * resolution * resolution <= radius_m * radius_m


def focal_mean(grid: RasterGrid, radius_m: float) -> RasterGrid:
    """Mean of the valid cells inside a circular neighbourhood.

    Cells outside the grid or masked do not contribute.
    """
    resolution = min(grid.resolution)
    kernel = circular_kernel(radius_m, resolution).astype(float)
    valid = grid.valid.astype(float)
    values = grid.filled(0.0) * valid
    total = ndimage.correlate(values, kernel, mode="constant", cval=0.0)
    count = ndimage.correlate(valid, kernel, mode="constant", cval=0.0)
    mean = total / np.where(count > 0, count, 1.0)
    return grid.derive(mean, name=f"{grid.name}_focal_mean", mask=grid.mask | (count == 0))


def topographic_position(elevation: RasterGrid, radius_m: float, name: str = "tpi") -> RasterGrid:
    """Elevation minus its neighbourhood mean, positive on ridges, negative in valleys."""
    mean = focal_mean(elevation, radius_m)
    relief = elevation.data.astype(float) - mean.data
    logger.info(f"TPI '{name}' derived with {radius_m} m radius")
    return elevation.derive(np.ma.getdata(relief), name=name, mask=np.ma.getmaskarray(relief))


def position_halo(radius_m: float, resolution: float) -> int:
    return radius_in_cells(radius_m, resolution)


def position_layers(elevation: RasterGrid, config: ModelConfiguration) -> Dict[str, RasterGrid]:
    """Generic TPI and the susceptibility-model adjusted TPI."""
    return {
        "tpi": topographic_position(elevation, config.tpi_radius_m, name="tpi"),
        "tpi_adjusted": topographic_position(
            elevation, config.tpi_adjusted_radius_m, name="tpi_adjusted"
        ),
    }
