"""End-to-end susceptibility model run.

raw grids -> derivatives/aggregates -> normalized layers -> composite index
-> classification -> zonal statistics. No step mutates an upstream grid.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from susceptibility import position, terrain
from susceptibility.classification import classify
from susceptibility.composite import composite_index
from susceptibility.config import ModelConfiguration
from susceptibility.errors import InsufficientSourceData, InvalidConfiguration
from susceptibility.grid import RasterGrid, check_aligned
from susceptibility.normalization import normalize_layers
from susceptibility.region import StudyRegion
from susceptibility.temporal import (
    OpticalAcquisition,
    RadarAcquisition,
    deformation_proxy,
    filter_radar,
    moisture_index,
    optical_composite,
    vegetation_index,
)
from susceptibility.tiling import apply_tiled
from susceptibility.zonal import ZonalSummary, summarize
from utilities.logger import setup_logger

logger = setup_logger(__name__)

ABORT = "abort"
EXCLUDE = "exclude"
MISSING_LAYER_POLICIES = (ABORT, EXCLUDE)

# weighted criterion -> raw layer it is normalized from
CRITERION_SOURCES = {
    "slope": "slope",
    "deformation": "deformation",
    "curvature": "curvature",
    "moisture": "ndwi",
    "position": "tpi_adjusted",
}


@dataclass(frozen=True)
class SusceptibilityInputs:
    elevation: RasterGrid
    region: StudyRegion
    radar_stack: Sequence[RadarAcquisition] = ()
    optical_stack: Sequence[OpticalAcquisition] = ()


@dataclass(frozen=True)
class LayerStatus:
    layer: str
    ok: bool
    error: Optional[InsufficientSourceData] = None


@dataclass(frozen=True)
class SusceptibilityResult:
    raw: Dict[str, RasterGrid]
    normalized: Dict[str, RasterGrid]
    index: RasterGrid
    classes: RasterGrid
    summary: ZonalSummary
    weights: Dict[str, float]
    excluded: Tuple[str, ...] = ()
    status: Tuple[LayerStatus, ...] = field(default_factory=tuple)


def check_input_alignment(inputs: SusceptibilityInputs) -> None:
    """Every radar and optical grid must share the elevation grid's extent."""
    grids = [inputs.elevation]
    grids.extend(acq.grid for acq in inputs.radar_stack)
    for acq in inputs.optical_stack:
        grids.extend(acq.bands.values())
    check_aligned(*grids)
    inputs.region.mask_for(inputs.elevation)


def derive_layers(
    inputs: SusceptibilityInputs,
    config: ModelConfiguration,
    tile_shape: Optional[Tuple[int, int]] = None,
    max_workers: Optional[int] = None,
) -> Tuple[Dict[str, RasterGrid], List[LayerStatus]]:
    """Raw indicator grids plus a per-layer status for the temporal layers."""
    elevation = inputs.elevation
    resolution = min(elevation.resolution)
    raw = {
        "slope": apply_tiled(terrain.slope, elevation, tile_shape, terrain.SLOPE_HALO, max_workers),
        "aspect": apply_tiled(terrain.aspect, elevation, tile_shape, terrain.ASPECT_HALO, max_workers),
        "curvature": apply_tiled(
            terrain.curvature, elevation, tile_shape, terrain.CURVATURE_HALO, max_workers
        ),
    }
    for name, radius in (
        ("tpi", config.tpi_radius_m),
        ("tpi_adjusted", config.tpi_adjusted_radius_m),
    ):
        raw[name] = apply_tiled(
            lambda grid, r=radius, n=name: position.topographic_position(grid, r, name=n),
            elevation,
            tile_shape,
            position.position_halo(radius, resolution),
            max_workers,
        )

    status = []
    try:
        selected = filter_radar(inputs.radar_stack, config.radar)
        if len(selected) < 2:
            raise InsufficientSourceData("deformation", len(selected), 2)
        raw["deformation"] = deformation_proxy(selected, config.radar)
        status.append(LayerStatus("deformation", True))
    except InsufficientSourceData as exc:
        logger.warning(str(exc))
        status.append(LayerStatus("deformation", False, exc))

    try:
        composite = optical_composite(inputs.optical_stack, config.optical)
        raw["ndwi"] = moisture_index(composite)
        if "red" in composite:
            raw["ndvi"] = vegetation_index(composite)
        status.append(LayerStatus("ndwi", True))
    except InsufficientSourceData as exc:
        logger.warning(str(exc))
        status.append(LayerStatus("ndwi", False, exc))

    return raw, status


def run_susceptibility_model(
    inputs: SusceptibilityInputs,
    config: ModelConfiguration,
    *,
    missing_layer_policy: str,
    tile_shape: Optional[Tuple[int, int]] = None,
    max_workers: Optional[int] = None,
) -> SusceptibilityResult:
    """Run the full model over one region.

    ``missing_layer_policy`` must be given: "abort" re-raises the first
    InsufficientSourceData, "exclude" drops the affected criterion and
    rescales the remaining weights to sum to 1.
    """
    if missing_layer_policy not in MISSING_LAYER_POLICIES:
        raise InvalidConfiguration(
            f"missing_layer_policy must be one of {MISSING_LAYER_POLICIES}, got {missing_layer_policy!r}"
        )
    check_input_alignment(inputs)
    logger.info(f"Running susceptibility model {config.version} over {inputs.region.name}")

    raw, status = derive_layers(inputs, config, tile_shape, max_workers)
    failed = [s for s in status if not s.ok]
    if failed and missing_layer_policy == ABORT:
        raise failed[0].error

    excluded = tuple(
        criterion
        for criterion, source in CRITERION_SOURCES.items()
        if source not in raw
    )
    if excluded:
        weights = config.weights.subset(c for c in CRITERION_SOURCES if c not in excluded)
        logger.warning(
            f"Partial composite without {list(excluded)}, weights rescaled to "
            + ", ".join(f"{k}={v:.3f}" for k, v in weights.items())
        )
    else:
        weights = config.weights.as_dict()

    normalized = normalize_layers(raw, config.anchors)
    region = inputs.region
    index = region.clip(composite_index(normalized, weights))
    classes = classify(index, config.class_breaks)
    summary = summarize(
        inputs.elevation,
        raw["slope"],
        classes,
        region,
        config,
        tile_shape=tile_shape,
    )
    return SusceptibilityResult(
        raw=raw,
        normalized=normalized,
        index=index,
        classes=classes,
        summary=summary,
        weights=weights,
        excluded=excluded,
        status=tuple(status),
    )
