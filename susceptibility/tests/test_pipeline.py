"""End-to-end tests for a susceptibility model run."""

import unittest

import numpy as np

from susceptibility import (
    InsufficientSourceData,
    InvalidConfiguration,
    MisalignedGrids,
    ModelConfiguration,
    SusceptibilityInputs,
    run_susceptibility_model,
)
from susceptibility.config import WeightSet
from susceptibility.pipeline import ABORT, EXCLUDE
from susceptibility.report import validate_summary
from susceptibility.tests.helpers import (
    hills,
    make_grid,
    optical_stack,
    radar_stack,
    region_for,
)


class TestRunSusceptibilityModel(unittest.TestCase):
    def setUp(self):
        self.config = ModelConfiguration()
        self.dem = make_grid(hills(), name="elevation")
        self.region = region_for(self.dem)

    def full_inputs(self):
        return SusceptibilityInputs(
            elevation=self.dem,
            region=self.region,
            radar_stack=radar_stack(self.dem.shape),
            optical_stack=optical_stack(self.dem.shape),
        )

    def test_full_run(self):
        result = run_susceptibility_model(self.full_inputs(), self.config, missing_layer_policy=ABORT)
        self.assertEqual(result.excluded, ())
        self.assertTrue(all(s.ok for s in result.status))
        self.assertEqual(
            set(result.normalized),
            {"slope", "deformation", "curvature", "moisture", "position", "relief"},
        )
        self.assertIn("ndvi", result.raw)
        self.assertIn("aspect", result.raw)

        values = result.index.values()
        self.assertTrue(values.size > 0)
        self.assertTrue(np.all((values >= 0.0) & (values <= 1.0)))
        codes = result.classes.values()
        self.assertTrue(set(codes.astype(int).tolist()) <= {1, 2, 3, 4, 5})
        np.testing.assert_array_equal(result.classes.mask, result.index.mask)

        self.assertTrue(validate_summary(result.summary)["valid"])
        self.assertAlmostEqual(result.summary.total_area_ha, 24 * 24 * 900 / 10000.0)

    def test_flat_terrain_index_is_zero(self):
        dem = make_grid(np.full((3, 3), 500.0))
        inputs = SusceptibilityInputs(elevation=dem, region=region_for(dem))
        result = run_susceptibility_model(inputs, self.config, missing_layer_policy=EXCLUDE)
        self.assertFalse(result.index.mask[1, 1])
        self.assertEqual(result.index.data[1, 1], 0.0)
        self.assertEqual(int(result.classes.data[1, 1]), 1)
        self.assertEqual(int(result.index.valid.sum()), 1)

    def test_abort_without_radar(self):
        inputs = SusceptibilityInputs(
            elevation=self.dem,
            region=self.region,
            optical_stack=optical_stack(self.dem.shape),
        )
        with self.assertRaises(InsufficientSourceData) as ctx:
            run_susceptibility_model(inputs, self.config, missing_layer_policy=ABORT)
        self.assertEqual(ctx.exception.layer, "deformation")

    def test_single_radar_acquisition_is_insufficient(self):
        inputs = SusceptibilityInputs(
            elevation=self.dem,
            region=self.region,
            radar_stack=radar_stack(self.dem.shape, dates=("2021-02-01",)),
            optical_stack=optical_stack(self.dem.shape),
        )
        with self.assertRaises(InsufficientSourceData) as ctx:
            run_susceptibility_model(inputs, self.config, missing_layer_policy=ABORT)
        self.assertEqual(ctx.exception.found, 1)

    def test_exclude_rescales_weights(self):
        inputs = SusceptibilityInputs(elevation=self.dem, region=self.region)
        result = run_susceptibility_model(inputs, self.config, missing_layer_policy=EXCLUDE)
        self.assertEqual(result.excluded, ("deformation", "moisture"))
        self.assertEqual(set(result.weights), {"slope", "curvature", "position"})
        self.assertAlmostEqual(sum(result.weights.values()), 1.0)
        self.assertAlmostEqual(result.weights["slope"], 0.35 / 0.65)
        self.assertEqual([s.layer for s in result.status if not s.ok], ["deformation", "ndwi"])

    def test_policy_is_required_and_validated(self):
        with self.assertRaises(TypeError):
            run_susceptibility_model(self.full_inputs(), self.config)
        with self.assertRaises(InvalidConfiguration):
            run_susceptibility_model(self.full_inputs(), self.config, missing_layer_policy="ignore")

    def test_misaligned_radar_grid(self):
        inputs = SusceptibilityInputs(
            elevation=self.dem,
            region=self.region,
            radar_stack=radar_stack((10, 10)),
        )
        with self.assertRaises(MisalignedGrids):
            run_susceptibility_model(inputs, self.config, missing_layer_policy=EXCLUDE)

    def test_tiled_run_matches_single_tile(self):
        single = run_susceptibility_model(self.full_inputs(), self.config, missing_layer_policy=ABORT)
        tiled = run_susceptibility_model(
            self.full_inputs(),
            self.config,
            missing_layer_policy=ABORT,
            tile_shape=(7, 10),
            max_workers=2,
        )
        np.testing.assert_array_equal(tiled.index.mask, single.index.mask)
        np.testing.assert_allclose(tiled.index.values(), single.index.values(), atol=1e-9)
        np.testing.assert_array_equal(tiled.classes.filled(0), single.classes.filled(0))
        self.assertAlmostEqual(tiled.summary.high_risk_percent, single.summary.high_risk_percent)
        self.assertAlmostEqual(tiled.summary.slope_mean, single.summary.slope_mean)

    def test_weights_change_index(self):
        slope_only = self.config.replace(
            weights=WeightSet(slope=1.0, deformation=0.0, curvature=0.0, moisture=0.0, position=0.0)
        )
        result = run_susceptibility_model(
            self.full_inputs(), slope_only, missing_layer_policy=ABORT
        )
        expected = np.clip(result.raw["slope"].values() / 50.0, 0.0, 1.0)
        np.testing.assert_allclose(result.index.values(), expected)

    def test_inputs_not_mutated(self):
        before = self.dem.filled(np.nan).copy()
        run_susceptibility_model(self.full_inputs(), self.config, missing_layer_policy=ABORT)
        np.testing.assert_array_equal(self.dem.filled(np.nan), before)


if __name__ == "__main__":
    unittest.main()
