"""Immutable model configuration for the susceptibility engine.

Weights, normalization anchors, class breaks and acquisition filters are
collected in a single frozen ``ModelConfiguration`` that is passed to every
module call, so several configurations (sensitivity analysis, regional
recalibration) can run side by side.
"""

from __future__ import annotations

import dataclasses
import json
import math
import os
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, Optional, Tuple, Union

import dateutil.parser

from susceptibility import constants
from susceptibility.errors import InvalidConfiguration, InvalidWeightSet
from utilities.logger import setup_logger

logger = setup_logger(__name__)

DateLike = Union[str, date, datetime]


def parse_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return dateutil.parser.parse(value).date()


@dataclass(frozen=True)
class WeightSet:
    """AHP weights for the five susceptibility criteria."""

    slope: float
    deformation: float
    curvature: float
    moisture: float
    position: float

    def __post_init__(self):
        values = self.as_dict()
        non_finite = [k for k, v in values.items() if not math.isfinite(v)]
        if non_finite:
            logger.error(f"Weight set rejected, non-finite weights: {non_finite}")
            raise InvalidWeightSet(f"Non-finite weights: {', '.join(non_finite)}")
        negative = [k for k, v in values.items() if v < 0]
        if negative:
            logger.error(f"Weight set rejected, negative weights: {negative}")
            raise InvalidWeightSet(f"Negative weights: {', '.join(negative)}")
        total = sum(values.values())
        if abs(total - 1.0) > constants.WEIGHT_SUM_TOLERANCE:
            logger.error(f"Weight set rejected, weights sum to {total}")
            raise InvalidWeightSet(f"Weights must sum to 1.0, got {total:.6f}")

    @classmethod
    def from_dict(cls, weights: Dict[str, float]) -> "WeightSet":
        missing = [k for k in constants.WEIGHT_NAMES if k not in weights]
        unknown = [k for k in weights if k not in constants.WEIGHT_NAMES]
        if missing or unknown:
            raise InvalidWeightSet(f"Missing weights: {missing}, unknown weights: {unknown}")
        return cls(**{k: float(weights[k]) for k in constants.WEIGHT_NAMES})

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in constants.WEIGHT_NAMES}

    def subset(self, names: Iterable[str]) -> Dict[str, float]:
        """Weights of the given criteria rescaled to sum to 1."""
        kept = {name: getattr(self, name) for name in names}
        total = sum(kept.values())
        if total <= 0:
            raise InvalidWeightSet("No positive weight left after excluding layers")
        return {name: w / total for name, w in kept.items()}


@dataclass(frozen=True)
class Anchor:
    lower: float
    upper: float

    def __post_init__(self):
        if not self.upper > self.lower:
            raise InvalidConfiguration(
                f"Anchor upper bound {self.upper} must exceed lower bound {self.lower}"
            )


@dataclass(frozen=True)
class LayerAnchors:
    """Fixed reference ranges, one per raw indicator."""

    slope: Anchor
    deformation: Anchor
    curvature: Anchor
    moisture: Anchor
    relief: Anchor
    relief_adjusted: Anchor

    @classmethod
    def from_dict(cls, anchors: Dict[str, Tuple[float, float]]) -> "LayerAnchors":
        fields = [f.name for f in dataclasses.fields(cls)]
        unknown = [k for k in anchors if k not in fields]
        if unknown:
            raise InvalidConfiguration(f"Unknown anchors: {unknown}")
        merged = dict(constants.DEFAULT_ANCHORS)
        merged.update(anchors)
        return cls(**{name: Anchor(*map(float, merged[name])) for name in fields})

    def get(self, name: str) -> Anchor:
        return getattr(self, name)

    def as_dict(self) -> Dict[str, Tuple[float, float]]:
        return {
            f.name: (getattr(self, f.name).lower, getattr(self, f.name).upper)
            for f in dataclasses.fields(self)
        }


@dataclass(frozen=True)
class RadarFilter:
    start: date
    end: date
    instrument_mode: str = constants.RADAR_INSTRUMENT_MODE
    polarization: str = constants.RADAR_POLARIZATION

    def __post_init__(self):
        _parse_window(self)
        _check_window(self.start, self.end)


@dataclass(frozen=True)
class OpticalFilter:
    start: date
    end: date
    max_cloud_percent: float = constants.OPTICAL_MAX_CLOUD_PERCENT

    def __post_init__(self):
        _parse_window(self)
        _check_window(self.start, self.end)
        if not 0 <= self.max_cloud_percent <= 100:
            raise InvalidConfiguration(
                f"max_cloud_percent must be within 0..100, got {self.max_cloud_percent}"
            )


def _parse_window(date_filter):
    object.__setattr__(date_filter, "start", parse_date(date_filter.start))
    object.__setattr__(date_filter, "end", parse_date(date_filter.end))


def _check_window(start: date, end: date):
    if end <= start:
        raise InvalidConfiguration(f"Date window end {end} is not after start {start}")


def _default_weights() -> WeightSet:
    return WeightSet.from_dict(constants.DEFAULT_WEIGHTS)


def _default_anchors() -> LayerAnchors:
    return LayerAnchors.from_dict({})


def _default_radar() -> RadarFilter:
    return RadarFilter(
        start=parse_date(constants.RADAR_START_DATE),
        end=parse_date(constants.RADAR_END_DATE),
    )


def _default_optical() -> OpticalFilter:
    return OpticalFilter(
        start=parse_date(constants.OPTICAL_START_DATE),
        end=parse_date(constants.OPTICAL_END_DATE),
    )


@dataclass(frozen=True)
class ModelConfiguration:
    weights: WeightSet = field(default_factory=_default_weights)
    anchors: LayerAnchors = field(default_factory=_default_anchors)
    class_breaks: Tuple[float, ...] = constants.CLASS_BREAKS
    radar: RadarFilter = field(default_factory=_default_radar)
    optical: OpticalFilter = field(default_factory=_default_optical)
    tpi_radius_m: float = constants.TPI_RADIUS_M
    tpi_adjusted_radius_m: float = constants.TPI_ADJUSTED_RADIUS_M
    steep_slope_threshold_deg: float = constants.STEEP_SLOPE_THRESHOLD_DEG
    slope_percentiles: Tuple[float, ...] = constants.SLOPE_PERCENTILES
    version: str = constants.MODEL_VERSION

    def __post_init__(self):
        breaks = tuple(float(b) for b in self.class_breaks)
        if len(breaks) != len(constants.RISK_LABELS) - 1:
            raise InvalidConfiguration(
                f"Expected {len(constants.RISK_LABELS) - 1} class breaks, got {len(breaks)}"
            )
        if any(b >= a for b, a in zip(breaks, breaks[1:])) or breaks[0] <= 0 or breaks[-1] >= 1:
            raise InvalidConfiguration(f"Class breaks must increase strictly within (0, 1): {breaks}")
        if self.tpi_radius_m <= 0 or self.tpi_adjusted_radius_m <= 0:
            raise InvalidConfiguration("TPI radii must be positive")
        if any(not 0 <= p <= 100 for p in self.slope_percentiles):
            raise InvalidConfiguration(f"Percentiles must be within 0..100: {self.slope_percentiles}")
        object.__setattr__(self, "class_breaks", breaks)
        object.__setattr__(self, "slope_percentiles", tuple(self.slope_percentiles))

    def replace(self, **changes) -> "ModelConfiguration":
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Dict) -> "ModelConfiguration":
        """Build a configuration from a plain dict, missing keys take defaults."""
        base = cls()
        kwargs = {}
        if "weights" in data:
            kwargs["weights"] = WeightSet.from_dict(data["weights"])
        if "anchors" in data:
            kwargs["anchors"] = LayerAnchors.from_dict(data["anchors"])
        if "class_breaks" in data:
            kwargs["class_breaks"] = tuple(data["class_breaks"])
        if "radar" in data:
            radar = data["radar"]
            kwargs["radar"] = RadarFilter(
                start=parse_date(radar.get("start", base.radar.start)),
                end=parse_date(radar.get("end", base.radar.end)),
                instrument_mode=radar.get("instrument_mode", base.radar.instrument_mode),
                polarization=radar.get("polarization", base.radar.polarization),
            )
        if "optical" in data:
            optical = data["optical"]
            kwargs["optical"] = OpticalFilter(
                start=parse_date(optical.get("start", base.optical.start)),
                end=parse_date(optical.get("end", base.optical.end)),
                max_cloud_percent=float(
                    optical.get("max_cloud_percent", base.optical.max_cloud_percent)
                ),
            )
        for key in (
            "tpi_radius_m",
            "tpi_adjusted_radius_m",
            "steep_slope_threshold_deg",
        ):
            if key in data:
                kwargs[key] = float(data[key])
        if "slope_percentiles" in data:
            kwargs["slope_percentiles"] = tuple(data["slope_percentiles"])
        if "version" in data:
            kwargs["version"] = str(data["version"])
        return base.replace(**kwargs)

    def to_dict(self) -> Dict:
        return {
            "weights": self.weights.as_dict(),
            "anchors": {k: list(v) for k, v in self.anchors.as_dict().items()},
            "class_breaks": list(self.class_breaks),
            "radar": {
                "start": self.radar.start.isoformat(),
                "end": self.radar.end.isoformat(),
                "instrument_mode": self.radar.instrument_mode,
                "polarization": self.radar.polarization,
            },
            "optical": {
                "start": self.optical.start.isoformat(),
                "end": self.optical.end.isoformat(),
                "max_cloud_percent": self.optical.max_cloud_percent,
            },
            "tpi_radius_m": self.tpi_radius_m,
            "tpi_adjusted_radius_m": self.tpi_adjusted_radius_m,
            "steep_slope_threshold_deg": self.steep_slope_threshold_deg,
            "slope_percentiles": list(self.slope_percentiles),
            "version": self.version,
        }


def load_model_configuration(path: str) -> ModelConfiguration:
    """Load a JSON configuration file layered over the defaults."""
    with open(path, "r") as fh:
        data = json.load(fh)
    config = ModelConfiguration.from_dict(data)
    logger.info(f"Loaded model configuration {config.version} from {path}")
    return config


def default_configuration(path: Optional[str] = None) -> ModelConfiguration:
    """Return the configuration named by ``SUSCEPTIBILITY_CONFIG`` or the defaults."""
    path = path or os.environ.get("SUSCEPTIBILITY_CONFIG")
    if path:
        return load_model_configuration(path)
    return ModelConfiguration()
