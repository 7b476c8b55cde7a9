"""Terrain derivatives from an elevation grid: slope, aspect and curvature.

Conventions
- Slope: degrees, range [0, 90], Horn 8-neighbour gradient estimator.
- Aspect: degrees, range [0, 360), clockwise from north, downslope direction.
- Curvature: unsigned magnitude ``|d2z/dx2 + d2z/dy2|`` from two passes of the
  Sobel kernels. The sign of bending is discarded.

Rows increase southward (north-up grids). All outputs are masked on the
one-cell rim of the grid and wherever a cell of the 3x3 elevation
neighbourhood is masked.
"""

from typing import Dict

import numpy as np
from scipy import ndimage

from susceptibility.grid import RasterGrid
from utilities.logger import setup_logger

logger = setup_logger(__name__)

SOBEL_X = np.array([[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]], dtype=float)
SOBEL_Y = np.array([[-1, -2, -1], [0, 0, 0], [1, 2, 1]], dtype=float)

# Rows/cols of neighbour data an operator needs around each output cell
SLOPE_HALO = 1
ASPECT_HALO = 1
CURVATURE_HALO = 3


def edge_rim(shape, width: int = 1) -> np.ndarray:
    rim = np.zeros(shape, dtype=bool)
    if width <= 0:
        return rim
    rim[:width, :] = True
    rim[-width:, :] = True
    rim[:, :width] = True
    rim[:, -width:] = True
    return rim


def neighbourhood_mask(elevation: RasterGrid, width: int = 1) -> np.ndarray:
    """Cells whose (2*width+1)² neighbourhood is incomplete or leaves the grid."""
    mask = elevation.mask
    if mask.any():
        structure = np.ones((2 * width + 1, 2 * width + 1), dtype=bool)
        mask = ndimage.binary_dilation(mask, structure=structure)
    return mask | edge_rim(elevation.shape, width)


def _correlate(values: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    return ndimage.correlate(values, kernel, mode="nearest")


def _gradients(elevation: RasterGrid):
    """Horn gradients (dz/dx east, dz/dy north) in elevation units per metre."""
    x_res, y_res = elevation.resolution
    z = elevation.filled(0.0)
    dz_dx = _correlate(z, SOBEL_X) / (8.0 * x_res)
    # SOBEL_Y gives south minus north because rows increase southward
    dz_dy = -_correlate(z, SOBEL_Y) / (8.0 * y_res)
    return dz_dx, dz_dy


def slope(elevation: RasterGrid) -> RasterGrid:
    dz_dx, dz_dy = _gradients(elevation)
    slope_deg = np.degrees(np.arctan(np.hypot(dz_dx, dz_dy)))
    mask = neighbourhood_mask(elevation)
    logger.info(f"Slope derived on {elevation.shape} grid, {int((~mask).sum())} valid cells")
    return elevation.derive(np.clip(slope_deg, 0.0, 90.0), name="slope", mask=mask)


def aspect(elevation: RasterGrid) -> RasterGrid:
    """Downslope azimuth, masked on flat cells (slope exactly zero)."""
    dz_dx, dz_dy = _gradients(elevation)
    aspect_deg = np.degrees(np.arctan2(-dz_dx, -dz_dy)) % 360.0
    flat = (dz_dx == 0) & (dz_dy == 0)
    mask = neighbourhood_mask(elevation) | flat
    return elevation.derive(aspect_deg, name="aspect", mask=mask)


def _fill_from_nearest(values: np.ndarray, invalid: np.ndarray) -> np.ndarray:
    indices = ndimage.distance_transform_edt(
        invalid, return_distances=False, return_indices=True
    )
    return values[tuple(indices)]


def curvature(elevation: RasterGrid) -> RasterGrid:
    """Absolute value of the summed second derivatives along x and y.

    The first-derivative fields are extended across their own invalid rim by
    nearest-valid replication before the second pass, so a planar surface
    yields exactly zero on every unmasked cell. Cells on the second ring
    from the grid edge stay unmasked but are approximate: their second
    derivative reads replicated first derivatives, which understates bending
    (a bowl reads 192 there against 256 in the interior).
    """
    mask = neighbourhood_mask(elevation)
    if mask.all():
        return elevation.derive(np.zeros(elevation.shape), name="curvature", mask=mask)

    z = elevation.filled(0.0)
    dz_dx = _fill_from_nearest(_correlate(z, SOBEL_X), mask)
    dz_dy = _fill_from_nearest(_correlate(z, SOBEL_Y), mask)
    d2z_dx2 = _correlate(dz_dx, SOBEL_X)
    d2z_dy2 = _correlate(dz_dy, SOBEL_Y)

    # absolute value of the sum, not the sum of absolute values
    magnitude = np.abs(d2z_dx2 + d2z_dy2)
    logger.info(f"Curvature derived on {elevation.shape} grid")
    return elevation.derive(magnitude, name="curvature", mask=mask)


def terrain_derivatives(elevation: RasterGrid) -> Dict[str, RasterGrid]:
    return {
        "slope": slope(elevation),
        "aspect": aspect(elevation),
        "curvature": curvature(elevation),
    }
