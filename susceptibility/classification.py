"""Classification of the susceptibility index into five ordered risk tiers."""

from enum import IntEnum
from typing import List, Sequence, Tuple

import numpy as np

from susceptibility.constants import CLASS_BREAKS, RISK_GUIDANCE, RISK_LABELS, RISK_PALETTE
from susceptibility.grid import RasterGrid


class RiskClass(IntEnum):
    VERY_LOW = 1
    LOW = 2
    MEDIUM = 3
    HIGH = 4
    VERY_HIGH = 5

    @property
    def label(self) -> str:
        return RISK_LABELS[self.value - 1]

    @property
    def color(self) -> str:
        return RISK_PALETTE[self.value - 1]

    @property
    def guidance(self) -> str:
        return RISK_GUIDANCE[self.value - 1]

    @property
    def key(self) -> str:
        return self.name.lower()


HIGH_RISK_CLASSES = (RiskClass.HIGH, RiskClass.VERY_HIGH)


def classify_value(value: float, breaks: Sequence[float] = CLASS_BREAKS) -> RiskClass:
    """Class of a single index value; a boundary belongs to the higher class."""
    return RiskClass(int(np.searchsorted(breaks, value, side="right")) + 1)


def classify(index: RasterGrid, breaks: Sequence[float] = CLASS_BREAKS) -> RasterGrid:
    """Map the continuous index onto class codes 1..5.

    index < b1 -> 1, b1 <= index < b2 -> 2, ... index >= b4 -> 5.
    Masked index cells stay masked.
    """
    codes = np.digitize(index.filled(0.0), np.asarray(breaks, dtype=float), right=False) + 1
    return index.derive(codes.astype(np.uint8), name="risk_class", mask=index.mask)


def legend() -> List[Tuple[int, str, str]]:
    return [(cls.value, cls.label, cls.color) for cls in RiskClass]
