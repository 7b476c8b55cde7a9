"""Single-band raster grid with an explicit per-cell validity mask."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from rasterio.transform import Affine, from_origin
from rasterio.windows import Window
from rasterio.windows import transform as window_transform

from susceptibility.errors import MisalignedGrids

TRANSFORM_TOLERANCE = 1e-9


@dataclass(frozen=True, eq=False)
class RasterGrid:
    """Immutable 2-D grid of samples.

    ``data`` is a masked array; a True mask bit marks a cell without a valid
    observation. Every transform returns a new grid.
    """

    data: np.ma.MaskedArray
    transform: Affine
    crs: Optional[str] = None
    name: str = "band"

    def __post_init__(self):
        values = np.array(np.ma.getdata(self.data), copy=True)
        if values.ndim != 2:
            raise ValueError(f"RasterGrid expects a 2-D array, got shape {values.shape}")
        mask = np.array(np.ma.getmaskarray(self.data), dtype=bool, copy=True)
        values.flags.writeable = False
        mask.flags.writeable = False
        object.__setattr__(self, "data", np.ma.MaskedArray(values, mask=mask, copy=False))

    @classmethod
    def from_array(
        cls,
        values,
        transform: Affine,
        crs: Optional[str] = None,
        name: str = "band",
        nodata: Optional[float] = None,
        mask=None,
    ) -> "RasterGrid":
        """Wrap a plain array; non-finite cells and ``nodata`` become masked."""
        values = np.asarray(values, dtype=float)
        invalid = ~np.isfinite(values)
        if nodata is not None:
            invalid |= values == nodata
        if mask is not None:
            invalid |= np.asarray(mask, dtype=bool)
        filled = np.where(invalid, 0.0, values)
        return cls(np.ma.MaskedArray(filled, mask=invalid), transform, crs, name)

    @classmethod
    def from_origin(
        cls,
        values,
        west: float,
        north: float,
        resolution: float,
        crs: Optional[str] = None,
        name: str = "band",
        nodata: Optional[float] = None,
    ) -> "RasterGrid":
        transform = from_origin(west, north, resolution, resolution)
        return cls.from_array(values, transform, crs=crs, name=name, nodata=nodata)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.data.shape

    @property
    def resolution(self) -> Tuple[float, float]:
        return abs(self.transform.a), abs(self.transform.e)

    @property
    def cell_area(self) -> float:
        """Area of one cell in CRS units squared (m² for projected grids)."""
        x_res, y_res = self.resolution
        return x_res * y_res

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        rows, cols = self.shape
        left, top = self.transform * (0, 0)
        right, bottom = self.transform * (cols, rows)
        return min(left, right), min(top, bottom), max(left, right), max(top, bottom)

    @property
    def mask(self) -> np.ndarray:
        return self.data.mask

    @property
    def valid(self) -> np.ndarray:
        return ~self.data.mask

    def values(self) -> np.ndarray:
        """Valid samples as a flat float array."""
        return self.data.compressed().astype(float)

    def filled(self, fill_value: float = np.nan) -> np.ndarray:
        return self.data.astype(float).filled(fill_value)

    def derive(self, values, name: Optional[str] = None, mask=None) -> "RasterGrid":
        """New grid on the same extent/resolution/CRS."""
        if mask is None:
            values = np.ma.array(values, copy=False)
        else:
            values = np.ma.MaskedArray(np.ma.getdata(values), mask=mask)
        if values.shape != self.shape:
            raise MisalignedGrids(f"Derived shape {values.shape} differs from {self.shape}")
        return RasterGrid(values, self.transform, self.crs, name or self.name)

    def window(self, rows: slice, cols: slice) -> "RasterGrid":
        row_start, row_stop, _ = rows.indices(self.shape[0])
        col_start, col_stop, _ = cols.indices(self.shape[1])
        win = Window(col_start, row_start, col_stop - col_start, row_stop - row_start)
        return RasterGrid(
            self.data[row_start:row_stop, col_start:col_stop],
            window_transform(win, self.transform),
            self.crs,
            self.name,
        )

    def is_aligned_with(self, other: "RasterGrid") -> bool:
        return (
            self.shape == other.shape
            and self.crs == other.crs
            and np.allclose(
                tuple(self.transform)[:6], tuple(other.transform)[:6], rtol=0.0, atol=TRANSFORM_TOLERANCE
            )
        )


def check_aligned(*grids: RasterGrid) -> None:
    """Raise MisalignedGrids unless every grid shares extent, resolution and CRS."""
    if not grids:
        return
    reference = grids[0]
    for grid in grids[1:]:
        if not reference.is_aligned_with(grid):
            raise MisalignedGrids(
                f"Grid '{grid.name}' {grid.shape} @ {grid.resolution} ({grid.crs}) "
                f"is not aligned with '{reference.name}' {reference.shape} "
                f"@ {reference.resolution} ({reference.crs})"
            )


def combined_mask(*grids: RasterGrid) -> np.ndarray:
    """Mask union: a cell invalid in any grid is invalid in the result."""
    check_aligned(*grids)
    mask = np.zeros(grids[0].shape, dtype=bool)
    for grid in grids:
        mask |= grid.mask
    return mask
