"""Weighted linear combination of normalized layers."""

from typing import Mapping

import numpy as np

from susceptibility.errors import InvalidConfiguration
from susceptibility.grid import RasterGrid, check_aligned
from utilities.logger import setup_logger

logger = setup_logger(__name__)


def composite_index(
    normalized: Mapping[str, RasterGrid], weights: Mapping[str, float]
) -> RasterGrid:
    """Sum of weight * normalized layer over every weighted criterion.

    A cell masked in any contributing layer is masked in the index. The sum is
    clipped to [0, 1] to absorb floating point rounding of the weights.
    """
    missing = [name for name in weights if name not in normalized]
    if missing:
        raise InvalidConfiguration(f"No normalized layer for weighted criteria: {missing}")
    if not weights:
        raise InvalidConfiguration("Composite index needs at least one weighted layer")

    layers = [normalized[name] for name in weights]
    check_aligned(*layers)

    total = np.zeros(layers[0].shape, dtype=float)
    mask = np.zeros(layers[0].shape, dtype=bool)
    for name, layer in zip(weights, layers):
        total += weights[name] * layer.filled(0.0)
        mask |= layer.mask

    logger.info(
        "Composite index from "
        + ", ".join(f"{name}={w:.3f}" for name, w in weights.items())
    )
    return layers[0].derive(np.clip(total, 0.0, 1.0), name="susceptibility", mask=mask)
