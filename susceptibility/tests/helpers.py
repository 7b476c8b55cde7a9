"""Grid builders shared by the test modules."""

import numpy as np
from shapely.geometry import box

from susceptibility.grid import RasterGrid
from susceptibility.region import StudyRegion
from susceptibility.temporal import OpticalAcquisition, RadarAcquisition

CRS = "EPSG:32719"
RESOLUTION = 30.0


def make_grid(values, resolution=RESOLUTION, west=0.0, north=None, crs=CRS, name="band"):
    values = np.asarray(values, dtype=float)
    if north is None:
        north = values.shape[0] * resolution
    return RasterGrid.from_origin(values, west, north, resolution, crs=crs, name=name)


def region_for(grid, name="test_region"):
    return StudyRegion(box(*grid.bounds), crs=grid.crs, name=name)


def hills(rows=24, cols=24, seed=7):
    """Smooth synthetic terrain with ridges and valleys."""
    rng = np.random.default_rng(seed)
    r, c = np.mgrid[0:rows, 0:cols].astype(float)
    z = 1500.0 + 40.0 * np.sin(r / 3.0) + 25.0 * np.cos(c / 4.0) + 3.0 * r
    return z + rng.normal(0.0, 0.5, size=z.shape)


def radar_stack(shape, dates=("2021-02-01", "2021-06-01", "2022-01-15"), seed=3):
    rng = np.random.default_rng(seed)
    return [
        RadarAcquisition(
            date=d,
            grid=make_grid(rng.normal(-10.0, 0.2, size=shape), name="VV"),
            instrument_mode="IW",
            polarizations=("VV", "VH"),
        )
        for d in dates
    ]


def optical_stack(shape, dates=("2023-03-01", "2023-07-01"), seed=5):
    rng = np.random.default_rng(seed)
    stack = []
    for d in dates:
        bands = {
            "B3": make_grid(rng.uniform(0.05, 0.15, size=shape), name="B3"),
            "B4": make_grid(rng.uniform(0.05, 0.15, size=shape), name="B4"),
            "B8": make_grid(rng.uniform(0.25, 0.45, size=shape), name="B8"),
        }
        stack.append(OpticalAcquisition(date=d, bands=bands, cloud_percent=5.0))
    return stack
