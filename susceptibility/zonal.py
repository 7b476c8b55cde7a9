"""Zonal statistics over a study region.

A masked reduction over zero contributing cells (e.g. a class absent from
the region) returns an ``EmptyZonalReduction`` marker instead of a number.
Absence of a class means zero area, not unknown area, so the marker is
converted by ``coerce_to_zero`` before any sum or percentage is taken.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from susceptibility.classification import HIGH_RISK_CLASSES, RiskClass
from susceptibility.config import ModelConfiguration
from susceptibility.constants import SQ_M_PER_HECTARE
from susceptibility.grid import RasterGrid, check_aligned
from susceptibility.region import StudyRegion
from susceptibility.tiling import tiled_moments, tiled_values
from utilities.logger import setup_logger

logger = setup_logger(__name__)


class EmptyZonalReduction:
    """Result of a reduction with no contributing cells."""

    __slots__ = ("label",)

    def __init__(self, label: str = ""):
        self.label = label

    def __bool__(self):
        return False

    def __eq__(self, other):
        return isinstance(other, EmptyZonalReduction)

    def __hash__(self):
        return hash(EmptyZonalReduction)

    def __repr__(self):
        return f"EmptyZonalReduction({self.label!r})"


Reduction = Union[float, EmptyZonalReduction]


def coerce_to_zero(result: Reduction, label: Optional[str] = None) -> float:
    if isinstance(result, EmptyZonalReduction):
        logger.debug(f"Empty zonal reduction '{label or result.label}' coerced to 0")
        return 0.0
    return float(result)


def selection(
    grid: RasterGrid,
    region: StudyRegion,
    predicate: Optional[Callable[[np.ndarray], np.ndarray]] = None,
) -> np.ndarray:
    """Valid cells inside the region, optionally narrowed by a value predicate."""
    selected = grid.valid & region.mask_for(grid)
    if predicate is not None:
        selected &= np.asarray(predicate(grid.filled(np.nan)), dtype=bool)
    return selected


def masked_sum(values: np.ndarray, selected: np.ndarray, label: str = "sum") -> Reduction:
    if not selected.any():
        return EmptyZonalReduction(label)
    return float(values[selected].sum())


def area_where(
    grid: RasterGrid,
    region: StudyRegion,
    predicate: Optional[Callable[[np.ndarray], np.ndarray]] = None,
    label: str = "area",
) -> Reduction:
    """Area in hectares of the selected cells."""
    cell_ha = np.full(grid.shape, grid.cell_area / SQ_M_PER_HECTARE)
    return masked_sum(cell_ha, selection(grid, region, predicate), label)


@dataclass(frozen=True)
class GridStatistics:
    count: int
    minimum: Reduction
    maximum: Reduction
    mean: Reduction
    std: Reduction
    percentiles: Dict[str, Reduction] = field(default_factory=dict)


def describe(
    grid: RasterGrid,
    region: StudyRegion,
    percentiles: Sequence[float] = (),
    tile_shape: Optional[Tuple[int, int]] = None,
) -> GridStatistics:
    """Min, max, mean, population std and percentiles of the valid cells in the region."""
    selected = selection(grid, region)
    values = grid.filled(np.nan)
    moments = tiled_moments(values, selected, tile_shape)
    keys = [f"p{p:g}" for p in percentiles]
    if moments.count == 0:
        empty = EmptyZonalReduction(grid.name)
        logger.warning(f"No valid '{grid.name}' cells inside region {region.name}")
        return GridStatistics(0, empty, empty, empty, empty, {k: empty for k in keys})

    pct = {}
    if keys:
        merged = tiled_values(values, selected, tile_shape)
        pct = dict(zip(keys, (float(v) for v in np.percentile(merged, list(percentiles)))))
    return GridStatistics(
        count=moments.count,
        minimum=moments.minimum,
        maximum=moments.maximum,
        mean=moments.mean,
        std=moments.std,
        percentiles=pct,
    )


def area_by_class(classes: RasterGrid, region: StudyRegion) -> Dict[RiskClass, float]:
    """Hectares per risk class, absent classes coerced to zero."""
    areas = {}
    for risk_class in RiskClass:
        area = area_where(
            classes,
            region,
            lambda v, code=risk_class.value: v == code,
            label=f"{risk_class.key}_area_ha",
        )
        areas[risk_class] = coerce_to_zero(area)
    return areas


def histogram(
    grid: RasterGrid,
    region: StudyRegion,
    bucket_width: float,
) -> pd.DataFrame:
    """Cell counts per fixed-width bucket of the valid cells in the region."""
    values = grid.filled(np.nan)[selection(grid, region)]
    columns = ["bucket_start", "bucket_end", "count"]
    if values.size == 0:
        return pd.DataFrame(columns=columns)
    # round before flooring so values on a bucket edge land in the upper bucket
    buckets = np.floor(np.round(values / bucket_width, 9)).astype(np.int64)
    first = int(buckets.min())
    counts = np.bincount(buckets - first)
    edges = (first + np.arange(counts.size + 1)) * bucket_width
    return pd.DataFrame(
        {"bucket_start": edges[:-1], "bucket_end": edges[1:], "count": counts},
        columns=columns,
    )


def _percentage(part: float, whole: float) -> float:
    return part / whole * 100.0 if whole > 0 else 0.0


@dataclass(frozen=True)
class ZonalSummary:
    """Flat, immutable summary of one model run over one region."""

    total_area_ha: float
    valid_area_ha: float
    class_area_ha: Dict[RiskClass, float]
    high_risk_area_ha: float
    high_risk_percent: float
    elevation_min: Reduction
    elevation_max: Reduction
    elevation_mean: Reduction
    elevation_std: Reduction
    slope_mean: Reduction
    slope_percentiles: Dict[str, Reduction]
    steep_slope_threshold_deg: float
    steep_slope_area_ha: float
    steep_slope_percent: float
    model_version: str

    def as_record(self) -> Dict[str, object]:
        """Named numeric fields for tabular export; empty reductions become None."""

        def number(value):
            return None if isinstance(value, EmptyZonalReduction) else value

        record = {
            "total_area_ha": self.total_area_ha,
            "valid_area_ha": self.valid_area_ha,
            "elevation_min": number(self.elevation_min),
            "elevation_max": number(self.elevation_max),
            "elevation_mean": number(self.elevation_mean),
            "elevation_std": number(self.elevation_std),
            "mean_slope_deg": number(self.slope_mean),
        }
        for key, value in self.slope_percentiles.items():
            record[f"slope_{key}"] = number(value)
        for risk_class, area in self.class_area_ha.items():
            record[f"{risk_class.key}_area_ha"] = area
        record.update(
            {
                "high_risk_area_ha": self.high_risk_area_ha,
                "high_risk_percent": self.high_risk_percent,
                "steep_slope_threshold_deg": self.steep_slope_threshold_deg,
                "steep_slope_area_ha": self.steep_slope_area_ha,
                "steep_slope_percent": self.steep_slope_percent,
                "model_version": self.model_version,
            }
        )
        return record

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([self.as_record()])


def high_risk_share(class_area_ha: Dict[RiskClass, float], total_area_ha: float) -> Tuple[float, float]:
    """Combined High + Very High area and its percentage of the total area."""
    area = sum(class_area_ha.get(c, 0.0) for c in HIGH_RISK_CLASSES)
    return area, _percentage(area, total_area_ha)


def summarize(
    elevation: RasterGrid,
    slope: RasterGrid,
    classes: RasterGrid,
    region: StudyRegion,
    config: ModelConfiguration,
    tile_shape: Optional[Tuple[int, int]] = None,
) -> ZonalSummary:
    check_aligned(elevation, slope, classes)
    total_area_ha = region.area_ha

    elevation_stats = describe(elevation, region, tile_shape=tile_shape)
    slope_stats = describe(slope, region, config.slope_percentiles, tile_shape=tile_shape)

    class_area_ha = area_by_class(classes, region)
    valid_area_ha = coerce_to_zero(area_where(classes, region, label="valid_area_ha"))
    high_area, high_percent = high_risk_share(class_area_ha, total_area_ha)

    threshold = config.steep_slope_threshold_deg
    steep_area = coerce_to_zero(
        area_where(slope, region, lambda v: v > threshold, label="steep_slope_area_ha")
    )

    summary = ZonalSummary(
        total_area_ha=total_area_ha,
        valid_area_ha=valid_area_ha,
        class_area_ha=class_area_ha,
        high_risk_area_ha=high_area,
        high_risk_percent=high_percent,
        elevation_min=elevation_stats.minimum,
        elevation_max=elevation_stats.maximum,
        elevation_mean=elevation_stats.mean,
        elevation_std=elevation_stats.std,
        slope_mean=slope_stats.mean,
        slope_percentiles=slope_stats.percentiles,
        steep_slope_threshold_deg=threshold,
        steep_slope_area_ha=steep_area,
        steep_slope_percent=_percentage(steep_area, total_area_ha),
        model_version=config.version,
    )
    logger.info(
        f"Region {region.name}: {total_area_ha:.1f} ha, high risk {high_area:.1f} ha "
        f"({high_percent:.1f} %), slope > {threshold:g} deg {steep_area:.1f} ha"
    )
    return summary
