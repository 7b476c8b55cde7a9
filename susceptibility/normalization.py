"""Linear clamp normalization of raw indicators onto [0, 1].

Anchors are fixed physical reference ranges from the model configuration,
not the sample's own min/max. Values outside the range saturate.
"""

from typing import Dict

import numpy as np

from susceptibility.config import Anchor, LayerAnchors
from susceptibility.grid import RasterGrid


def clamp_normalize(grid: RasterGrid, anchor: Anchor, name: str = None) -> RasterGrid:
    scaled = (grid.data.astype(float) - anchor.lower) / (anchor.upper - anchor.lower)
    return grid.derive(
        np.clip(np.ma.getdata(scaled), 0.0, 1.0),
        name=name or f"{grid.name}_norm",
        mask=grid.mask,
    )


def magnitude(grid: RasterGrid) -> RasterGrid:
    return grid.derive(np.abs(np.ma.getdata(grid.data).astype(float)), mask=grid.mask)


def normalize_layers(raw: Dict[str, RasterGrid], anchors: LayerAnchors) -> Dict[str, RasterGrid]:
    """Normalize the raw layers present in ``raw``.

    Keys of the result are the weight names (slope, deformation, curvature,
    moisture, position) plus the unweighted ``relief`` layer.
    """
    sources = {
        "slope": ("slope", anchors.slope, False),
        "deformation": ("deformation", anchors.deformation, False),
        "curvature": ("curvature", anchors.curvature, False),
        "moisture": ("ndwi", anchors.moisture, False),
        "position": ("tpi_adjusted", anchors.relief_adjusted, True),
        "relief": ("tpi", anchors.relief, True),
    }
    normalized = {}
    for name, (source, anchor, absolute) in sources.items():
        if source not in raw:
            continue
        layer = magnitude(raw[source]) if absolute else raw[source]
        normalized[name] = clamp_normalize(layer, anchor, name=f"{name}_norm")
    return normalized
