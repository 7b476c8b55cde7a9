"""Study region geometry used for clipping and as the zonal reduction domain."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import geopandas as gpd
import numpy as np
from rasterio.features import geometry_mask
from shapely.geometry import mapping
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from susceptibility.constants import SQ_M_PER_HECTARE
from susceptibility.errors import MisalignedGrids
from susceptibility.grid import RasterGrid
from utilities.logger import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class StudyRegion:
    """Polygon (or multipolygon) area of interest in a projected CRS."""

    geometry: BaseGeometry
    crs: Optional[str] = None
    name: str = "study_region"

    def __post_init__(self):
        if self.geometry.is_empty:
            raise ValueError("Study region geometry is empty")
        if not self.geometry.is_valid:
            object.__setattr__(self, "geometry", self.geometry.buffer(0))

    @classmethod
    def from_geojson(cls, path: str, name: Optional[str] = None) -> "StudyRegion":
        """Load a region file, dissolving every feature into one geometry."""
        gdf = gpd.read_file(path)
        geometry = unary_union(list(gdf.geometry.make_valid()))
        crs = gdf.crs.to_string() if gdf.crs is not None else None
        logger.info(f"Loaded study region from {path}: {len(gdf)} feature(s), CRS {crs}")
        return cls(geometry, crs, name or "study_region")

    @property
    def area_m2(self) -> float:
        return float(self.geometry.area)

    @property
    def area_ha(self) -> float:
        return self.area_m2 / SQ_M_PER_HECTARE

    def mask_for(self, grid: RasterGrid) -> np.ndarray:
        """Boolean array, True for cells whose centre falls inside the region."""
        if self.crs is not None and grid.crs is not None and self.crs != grid.crs:
            raise MisalignedGrids(f"Region CRS {self.crs} differs from grid CRS {grid.crs}")
        return geometry_mask(
            [mapping(self.geometry)],
            out_shape=grid.shape,
            transform=grid.transform,
            invert=True,
        )

    def clip(self, grid: RasterGrid) -> RasterGrid:
        """Mask every cell outside the region."""
        return grid.derive(grid.data, mask=grid.mask | ~self.mask_for(grid))
