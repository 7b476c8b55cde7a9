"""Temporal aggregation of radar and optical acquisition stacks."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Sequence, Tuple

import numpy as np

from susceptibility.config import DateLike, OpticalFilter, RadarFilter, parse_date
from susceptibility.constants import BAND_ALIASES
from susceptibility.errors import InsufficientSourceData
from susceptibility.grid import RasterGrid, check_aligned
from utilities.logger import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class RadarAcquisition:
    """One single-band radar grid (e.g. Sentinel-1 VV backscatter)."""

    date: date
    grid: RasterGrid
    instrument_mode: str
    polarizations: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "date", parse_date(self.date))
        object.__setattr__(self, "polarizations", tuple(self.polarizations))


@dataclass(frozen=True)
class OpticalAcquisition:
    """One multi-band optical scene split into single-band grids."""

    date: date
    bands: Dict[str, RasterGrid] = field(default_factory=dict)
    cloud_percent: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "date", parse_date(self.date))
        object.__setattr__(
            self,
            "bands",
            {canonical_band(name): grid for name, grid in self.bands.items()},
        )

    def band(self, name: str) -> RasterGrid:
        return self.bands[canonical_band(name)]


def canonical_band(name: str) -> str:
    return BAND_ALIASES.get(name, name).lower()


def _in_window(when: date, start: DateLike, end: DateLike) -> bool:
    return parse_date(start) <= when < parse_date(end)


def filter_radar(
    stack: Sequence[RadarAcquisition], radar_filter: RadarFilter
) -> List[RadarAcquisition]:
    """Keep acquisitions in [start, end) with the required mode and polarization."""
    selected = [
        acq
        for acq in stack
        if _in_window(acq.date, radar_filter.start, radar_filter.end)
        and acq.instrument_mode == radar_filter.instrument_mode
        and radar_filter.polarization in acq.polarizations
    ]
    logger.debug(
        f"Radar filter {radar_filter.instrument_mode}/{radar_filter.polarization} "
        f"{radar_filter.start}..{radar_filter.end}: {len(selected)} of {len(stack)} kept"
    )
    return selected


def filter_optical(
    stack: Sequence[OpticalAcquisition], optical_filter: OpticalFilter
) -> List[OpticalAcquisition]:
    """Keep scenes in [start, end) with cloud cover strictly below the threshold."""
    selected = [
        acq
        for acq in stack
        if _in_window(acq.date, optical_filter.start, optical_filter.end)
        and acq.cloud_percent < optical_filter.max_cloud_percent
    ]
    logger.debug(
        f"Optical filter cloud<{optical_filter.max_cloud_percent} "
        f"{optical_filter.start}..{optical_filter.end}: {len(selected)} of {len(stack)} kept"
    )
    return selected


def _stack(grids: Sequence[RasterGrid]) -> np.ma.MaskedArray:
    check_aligned(*grids)
    return np.ma.stack([g.data.astype(float) for g in grids])


def temporal_stddev(grids: Sequence[RasterGrid], name: str = "stddev") -> RasterGrid:
    """Per-cell population standard deviation over the time axis.

    A cell with fewer than two valid observations is masked, never zero.
    """
    if not grids:
        raise InsufficientSourceData(name, 0, 2)
    cube = _stack(grids)
    valid = ~np.ma.getmaskarray(cube)
    count = valid.sum(axis=0)
    values = np.where(valid, cube.data, 0.0)
    safe_count = np.maximum(count, 1)
    mean = values.sum(axis=0) / safe_count
    squares = np.where(valid, (cube.data - mean) ** 2, 0.0).sum(axis=0)
    variance = squares / safe_count
    return grids[0].derive(np.sqrt(variance), name=name, mask=count < 2)


def temporal_median(grids: Sequence[RasterGrid], name: str = "median") -> RasterGrid:
    """Per-cell median over the valid observations of each cell."""
    if not grids:
        raise InsufficientSourceData(name, 0, 1)
    cube = _stack(grids)
    median = np.ma.median(cube, axis=0)
    count = (~np.ma.getmaskarray(cube)).sum(axis=0)
    return grids[0].derive(np.ma.getdata(median), name=name, mask=count == 0)


def deformation_proxy(
    stack: Sequence[RadarAcquisition], radar_filter: RadarFilter
) -> RasterGrid:
    """Temporal std-dev of the filtered backscatter stack.

    Raises InsufficientSourceData when no acquisition passes the filters; a
    single acquisition yields a fully masked grid.
    """
    selected = filter_radar(stack, radar_filter)
    if not selected:
        raise InsufficientSourceData("deformation", 0, 2)
    if len(selected) < 2:
        logger.warning("Only one radar acquisition passed the filters, deformation layer is fully masked")
    return temporal_stddev([acq.grid for acq in selected], name="deformation")


def optical_composite(
    stack: Sequence[OpticalAcquisition], optical_filter: OpticalFilter
) -> Dict[str, RasterGrid]:
    """Per-band median composite of the filtered optical stack."""
    selected = filter_optical(stack, optical_filter)
    if not selected:
        raise InsufficientSourceData("optical_composite", 0, 1)
    band_names = set(selected[0].bands)
    for acq in selected[1:]:
        band_names &= set(acq.bands)
    composite = {
        band: temporal_median([acq.bands[band] for acq in selected], name=band)
        for band in sorted(band_names)
    }
    logger.info(f"Optical composite built from {len(selected)} scene(s), bands {sorted(band_names)}")
    return composite


def normalized_difference(a: RasterGrid, b: RasterGrid, name: str = "nd") -> RasterGrid:
    """(A - B) / (A + B), masked where A + B = 0 or either input is masked."""
    check_aligned(a, b)
    av = a.data.astype(float)
    bv = b.data.astype(float)
    total = np.ma.getdata(av + bv)
    zero = total == 0
    ratio = np.ma.getdata(av - bv) / np.where(zero, 1.0, total)
    mask = a.mask | b.mask | zero
    return a.derive(ratio, name=name, mask=mask)


def moisture_index(composite: Dict[str, RasterGrid]) -> RasterGrid:
    """NDWI from the green / near-infrared pair."""
    return normalized_difference(composite["green"], composite["nir"], name="ndwi")


def vegetation_index(composite: Dict[str, RasterGrid]) -> RasterGrid:
    """NDVI from the near-infrared / red pair."""
    return normalized_difference(composite["nir"], composite["red"], name="ndvi")
