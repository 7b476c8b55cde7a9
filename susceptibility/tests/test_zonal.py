"""Tests for zonal reductions and the region summary."""

import os
import tempfile
import unittest

import geopandas as gpd
import numpy as np
from shapely.geometry import box

from susceptibility.classification import RiskClass, classify
from susceptibility.config import ModelConfiguration
from susceptibility.errors import MisalignedGrids
from susceptibility.region import StudyRegion
from susceptibility.tests.helpers import make_grid, region_for
from susceptibility.zonal import (
    EmptyZonalReduction,
    area_by_class,
    area_where,
    coerce_to_zero,
    describe,
    high_risk_share,
    histogram,
    summarize,
)


class TestEmptyZonalReduction(unittest.TestCase):
    def test_marker_behaviour(self):
        empty = EmptyZonalReduction("x")
        self.assertFalse(empty)
        self.assertEqual(empty, EmptyZonalReduction("y"))
        self.assertNotEqual(empty, 0.0)

    def test_coerce_to_zero(self):
        self.assertEqual(coerce_to_zero(EmptyZonalReduction("x")), 0.0)
        self.assertEqual(coerce_to_zero(12.5), 12.5)

    def test_absent_class_is_zero_area(self):
        grid = make_grid(np.full((4, 4), 1.0), resolution=100.0)
        region = region_for(grid)
        self.assertIsInstance(
            area_where(grid, region, lambda v: v == 5), EmptyZonalReduction
        )
        areas = area_by_class(grid, region)
        self.assertEqual(areas[RiskClass.VERY_HIGH], 0.0)
        self.assertEqual(areas[RiskClass.VERY_LOW], 16.0)


class TestDescribe(unittest.TestCase):
    def test_statistics(self):
        values = np.arange(1.0, 17.0).reshape(4, 4)
        grid = make_grid(values)
        stats = describe(grid, region_for(grid), percentiles=(5, 50, 95))
        self.assertEqual(stats.count, 16)
        self.assertEqual(stats.minimum, 1.0)
        self.assertEqual(stats.maximum, 16.0)
        self.assertAlmostEqual(stats.mean, 8.5)
        self.assertAlmostEqual(stats.std, np.std(values))
        self.assertEqual(set(stats.percentiles), {"p5", "p50", "p95"})
        self.assertAlmostEqual(stats.percentiles["p50"], np.percentile(values, 50))

    def test_tiled_matches_single_pass(self):
        rng = np.random.default_rng(2)
        grid = make_grid(rng.normal(100.0, 15.0, size=(23, 17)))
        region = region_for(grid)
        single = describe(grid, region, percentiles=(5, 25, 50, 75, 95))
        tiled = describe(grid, region, percentiles=(5, 25, 50, 75, 95), tile_shape=(5, 6))
        self.assertEqual(single.count, tiled.count)
        self.assertEqual(single.minimum, tiled.minimum)
        self.assertEqual(single.maximum, tiled.maximum)
        self.assertAlmostEqual(single.mean, tiled.mean)
        self.assertAlmostEqual(single.std, tiled.std)
        for key in single.percentiles:
            self.assertAlmostEqual(single.percentiles[key], tiled.percentiles[key])

    def test_no_valid_cells(self):
        grid = make_grid(np.full((3, 3), np.nan))
        stats = describe(grid, region_for(grid), percentiles=(50,))
        self.assertEqual(stats.count, 0)
        self.assertIsInstance(stats.mean, EmptyZonalReduction)
        self.assertIsInstance(stats.percentiles["p50"], EmptyZonalReduction)

    def test_region_restricts_cells(self):
        grid = make_grid(np.arange(16.0).reshape(4, 4), resolution=10.0)
        # top-left 2x2 block: cell centres at x 5, 15 and y 35, 25
        region = StudyRegion(box(0.0, 20.0, 20.0, 40.0), crs=grid.crs)
        stats = describe(grid, region)
        self.assertEqual(stats.count, 4)
        self.assertAlmostEqual(stats.mean, (0.0 + 1.0 + 4.0 + 5.0) / 4)

    def test_region_crs_mismatch(self):
        grid = make_grid(np.zeros((2, 2)))
        region = StudyRegion(box(*grid.bounds), crs="EPSG:4326")
        with self.assertRaises(MisalignedGrids):
            describe(grid, region)


class TestStudyRegion(unittest.TestCase):
    def test_from_geojson_dissolves_features(self):
        frame = gpd.GeoDataFrame(
            {"name": ["a", "b"]},
            geometry=[box(0.0, 0.0, 100.0, 100.0), box(100.0, 0.0, 200.0, 100.0)],
            crs="EPSG:32719",
        )
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "region.geojson")
            frame.to_file(path, driver="GeoJSON")
            region = StudyRegion.from_geojson(path, name="basin")
        self.assertEqual(region.name, "basin")
        self.assertAlmostEqual(region.area_ha, 2.0)
        self.assertEqual(region.crs, "EPSG:32719")

    def test_clip_masks_outside_cells(self):
        grid = make_grid(np.ones((4, 4)), resolution=10.0)
        region = StudyRegion(box(0.0, 0.0, 20.0, 40.0), crs=grid.crs)
        clipped = region.clip(grid)
        self.assertEqual(int(clipped.valid.sum()), 8)
        self.assertTrue(clipped.mask[:, 2:].all())


class TestHistogram(unittest.TestCase):
    def test_counts(self):
        grid = make_grid([[0.01, 0.04, 0.06], [0.11, np.nan, 0.12]])
        frame = histogram(grid, region_for(grid), 0.05)
        self.assertEqual(list(frame.columns), ["bucket_start", "bucket_end", "count"])
        self.assertEqual(int(frame["count"].sum()), 5)
        self.assertEqual(int(frame["count"].iloc[0]), 2)

    def test_value_on_bucket_edge_goes_to_upper_bucket(self):
        grid = make_grid([[0.05, 0.10, 0.149, 0.15]])
        frame = histogram(grid, region_for(grid), 0.05)
        np.testing.assert_allclose(frame["bucket_start"], [0.05, 0.10, 0.15])
        self.assertEqual(frame["count"].tolist(), [1, 2, 1])

    def test_empty(self):
        grid = make_grid(np.full((2, 2), np.nan))
        self.assertTrue(histogram(grid, region_for(grid), 0.05).empty)


class TestSummary(unittest.TestCase):
    def setUp(self):
        # 100 m cells are 1 ha each, 20 x 50 cells = 1000 ha
        index = np.full((20, 50), 0.1)
        index[0:2, :] = 0.7  # 100 cells of class High
        index[2, :] = 0.9  # 50 cells of class Very High
        self.classes = classify(make_grid(index, resolution=100.0))
        self.elevation = make_grid(np.full((20, 50), 2000.0), resolution=100.0)
        slope = np.full((20, 50), 10.0)
        slope[10:15, :] = 35.0
        self.slope = make_grid(slope, resolution=100.0)
        self.region = region_for(self.elevation)
        self.config = ModelConfiguration()

    def test_high_risk_percentage(self):
        summary = summarize(self.elevation, self.slope, self.classes, self.region, self.config)
        self.assertAlmostEqual(summary.total_area_ha, 1000.0)
        self.assertAlmostEqual(summary.high_risk_area_ha, 150.0)
        self.assertAlmostEqual(summary.high_risk_percent, 15.0)
        self.assertAlmostEqual(summary.steep_slope_area_ha, 250.0)
        self.assertAlmostEqual(summary.steep_slope_percent, 25.0)

    def test_partition_is_complete(self):
        summary = summarize(self.elevation, self.slope, self.classes, self.region, self.config)
        self.assertAlmostEqual(sum(summary.class_area_ha.values()), summary.valid_area_ha)
        self.assertEqual(summary.class_area_ha[RiskClass.LOW], 0.0)
        self.assertEqual(summary.class_area_ha[RiskClass.MEDIUM], 0.0)
        self.assertAlmostEqual(summary.class_area_ha[RiskClass.VERY_LOW], 850.0)

    def test_record_and_frame(self):
        summary = summarize(self.elevation, self.slope, self.classes, self.region, self.config)
        record = summary.as_record()
        self.assertEqual(record["elevation_mean"], 2000.0)
        self.assertEqual(record["elevation_std"], 0.0)
        self.assertIn("slope_p95", record)
        self.assertEqual(record["very_high_area_ha"], 50.0)
        self.assertEqual(record["model_version"], self.config.version)
        frame = summary.to_frame()
        self.assertEqual(len(frame), 1)
        self.assertAlmostEqual(frame["high_risk_percent"].iloc[0], 15.0)

    def test_high_risk_share_helper(self):
        area, percent = high_risk_share({RiskClass.HIGH: 30.0, RiskClass.VERY_HIGH: 20.0}, 200.0)
        self.assertEqual(area, 50.0)
        self.assertEqual(percent, 25.0)
        self.assertEqual(high_risk_share({}, 0.0), (0.0, 0.0))

    def test_misaligned_inputs(self):
        slope = make_grid(np.zeros((20, 50)), resolution=30.0)
        with self.assertRaises(MisalignedGrids):
            summarize(self.elevation, slope, self.classes, self.region, self.config)


if __name__ == "__main__":
    unittest.main()
