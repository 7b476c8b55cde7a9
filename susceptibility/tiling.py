"""Spatial tiling of grid operations and associative partial reductions.

Neighbourhood operators run on tiles padded with a halo of real neighbour
data, then only the tile core is stitched back, so tiled and single-tile
results agree, including the masked rim of the full grid. Reductions merge
per-tile partials with associative, commutative rules.
"""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Tuple

import numpy as np

from susceptibility.grid import RasterGrid
from utilities.logger import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class Tile:
    rows: slice  # core window in grid coordinates
    cols: slice
    padded_rows: slice
    padded_cols: slice

    @property
    def core_in_padded(self) -> Tuple[slice, slice]:
        r0 = self.rows.start - self.padded_rows.start
        c0 = self.cols.start - self.padded_cols.start
        return (
            slice(r0, r0 + self.rows.stop - self.rows.start),
            slice(c0, c0 + self.cols.stop - self.cols.start),
        )


def iter_tiles(shape: Tuple[int, int], tile_shape: Tuple[int, int], halo: int = 0) -> Iterator[Tile]:
    n_rows, n_cols = shape
    tile_rows, tile_cols = tile_shape
    if tile_rows <= 0 or tile_cols <= 0:
        raise ValueError(f"Tile shape must be positive, got {tile_shape}")
    for r in range(0, n_rows, tile_rows):
        for c in range(0, n_cols, tile_cols):
            r1 = min(r + tile_rows, n_rows)
            c1 = min(c + tile_cols, n_cols)
            yield Tile(
                rows=slice(r, r1),
                cols=slice(c, c1),
                padded_rows=slice(max(r - halo, 0), min(r1 + halo, n_rows)),
                padded_cols=slice(max(c - halo, 0), min(c1 + halo, n_cols)),
            )


def apply_tiled(
    operation: Callable[[RasterGrid], RasterGrid],
    grid: RasterGrid,
    tile_shape: Optional[Tuple[int, int]],
    halo: int,
    max_workers: Optional[int] = None,
) -> RasterGrid:
    """Run a grid-to-grid operation tile by tile and stitch the cores."""
    if tile_shape is None:
        return operation(grid)

    tiles = list(iter_tiles(grid.shape, tile_shape, halo))
    if len(tiles) == 1:
        return operation(grid)

    def run(tile: Tile):
        result = operation(grid.window(tile.padded_rows, tile.padded_cols))
        core_rows, core_cols = tile.core_in_padded
        return tile, result.data[core_rows, core_cols], result.name

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        results = list(executor.map(run, tiles))

    first = results[0][1]
    values = np.zeros(grid.shape, dtype=first.dtype)
    mask = np.ones(grid.shape, dtype=bool)
    for tile, data, _ in results:
        values[tile.rows, tile.cols] = np.ma.getdata(data)
        mask[tile.rows, tile.cols] = np.ma.getmaskarray(data)
    logger.debug(f"Stitched {len(tiles)} tiles of {tile_shape} (halo {halo}) into {grid.shape}")
    return grid.derive(values, name=results[0][2], mask=mask)


@dataclass(frozen=True)
class RunningMoments:
    """Partial count/sum/min/max/mean/M2 that merges associatively."""

    count: int = 0
    total: float = 0.0
    minimum: float = math.inf
    maximum: float = -math.inf
    mean: float = 0.0
    m2: float = 0.0

    @classmethod
    def from_values(cls, values: np.ndarray) -> "RunningMoments":
        values = np.asarray(values, dtype=float).ravel()
        if values.size == 0:
            return cls()
        mean = float(values.mean())
        return cls(
            count=int(values.size),
            total=float(values.sum()),
            minimum=float(values.min()),
            maximum=float(values.max()),
            mean=mean,
            m2=float(((values - mean) ** 2).sum()),
        )

    def merge(self, other: "RunningMoments") -> "RunningMoments":
        if other.count == 0:
            return self
        if self.count == 0:
            return other
        count = self.count + other.count
        delta = other.mean - self.mean
        return RunningMoments(
            count=count,
            total=self.total + other.total,
            minimum=min(self.minimum, other.minimum),
            maximum=max(self.maximum, other.maximum),
            mean=self.mean + delta * other.count / count,
            m2=self.m2 + other.m2 + delta * delta * self.count * other.count / count,
        )

    @property
    def variance(self) -> float:
        """Population variance of the merged samples."""
        return self.m2 / self.count if self.count else math.nan

    @property
    def std(self) -> float:
        return math.sqrt(self.variance) if self.count else math.nan


def tiled_moments(
    values: np.ndarray,
    selection: np.ndarray,
    tile_shape: Optional[Tuple[int, int]] = None,
) -> RunningMoments:
    """Moments of ``values[selection]`` merged from per-tile partials."""
    if tile_shape is None:
        return RunningMoments.from_values(values[selection])
    moments = RunningMoments()
    for tile in iter_tiles(values.shape, tile_shape):
        part = values[tile.rows, tile.cols][selection[tile.rows, tile.cols]]
        moments = moments.merge(RunningMoments.from_values(part))
    return moments


def tiled_values(
    values: np.ndarray,
    selection: np.ndarray,
    tile_shape: Optional[Tuple[int, int]] = None,
) -> np.ndarray:
    """Full merge of the selected raw values, used for exact percentiles."""
    if tile_shape is None:
        return np.asarray(values[selection], dtype=float)
    parts: List[np.ndarray] = [
        values[tile.rows, tile.cols][selection[tile.rows, tile.cols]]
        for tile in iter_tiles(values.shape, tile_shape)
    ]
    return np.concatenate(parts).astype(float) if parts else np.empty(0)
