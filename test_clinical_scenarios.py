import unittest
import math

from controller import HomeostaticController
from scenarios import SCENARIO_LIBRARY
from safety import SafetySupervisor
from models import ControllerConfig, PlasmaConcentrations
from constants import ScenarioType, SETPOINTS

class TestClinicalScenarios(unittest.TestCase):
    """
    Runs the preset starting states through the full multi-day loop.
    Run with: python -m unittest test_clinical_scenarios.py
    """

    def run_scenario(self, scenario_type, num_days=None):
        scenario = SCENARIO_LIBRARY.get(scenario_type)
        days = scenario.num_days if num_days is None else num_days
        return HomeostaticController.run(scenario.initial_plasma, days, ControllerConfig())

    def assert_all_finite(self, history):
        values = history.plasma_na + history.plasma_k + history.plasma_hco3 + history.gfr_ml_min
        self.assertTrue(all(math.isfinite(v) for v in values), "Non-finite value in history")

    def test_01_mild_renal_insufficiency(self):
        """[CONTROL] 20 days: K+ falls out of hyperkalemia, HCO3- climbs out of acidosis."""
        print("\nTEST 1: Mild Renal Insufficiency (20 days)")
        history = self.run_scenario(ScenarioType.MILD_RENAL_INSUFFICIENCY)

        self.assertEqual(len(history.plasma_k), 21)
        self.assertEqual(len(history.plasma_hco3), 21)
        self.assertEqual(len(history.reab_k), 20)
        self.assertEqual(len(history.gfr_ml_min), 20)
        self.assert_all_finite(history)

        k, hco3 = history.plasma_k, history.plasma_hco3
        print(f"K+:    {k[0]:.2f} -> {k[1]:.2f} -> ... -> {k[-1]:.2f}")
        print(f"HCO3-: {hco3[0]:.1f} -> {hco3[1]:.1f} -> ... -> {hco3[-1]:.1f}")

        # Day 1 already moves the right way
        self.assertLess(k[1], 5.5)
        self.assertGreater(hco3[1], 20.0)
        self.assertLess(history.reab_k[0], 0.0)

        # The proportional loop overshoots on the way (K+ dips below 4.0 around day 4)
        # but has settled by day 20
        self.assertLess(min(k), SETPOINTS.K)
        self.assertLessEqual(abs(k[-1] - SETPOINTS.K), 0.1)
        self.assertLessEqual(abs(hco3[-1] - SETPOINTS.HCO3), 0.5)

        for gfr in history.gfr_ml_min:
            self.assertGreaterEqual(gfr, 90.0)
            self.assertLessEqual(gfr, 120.0)

        self.assertEqual(history.guarded_days, [])

    def test_02_healthy_state_is_stationary(self):
        """[CONTROL] Setpoint plasma must stay at setpoint (only glucose saturates)."""
        print("\nTEST 2: Healthy Steady State")
        history = self.run_scenario(ScenarioType.HEALTHY)
        self.assertEqual(history.num_days, 5)
        for day in history.days:
            self.assertAlmostEqual(history.plasma_na[day], SETPOINTS.NA, places=6)
            self.assertAlmostEqual(history.plasma_k[day], SETPOINTS.K, places=6)
            self.assertAlmostEqual(history.plasma_hco3[day], SETPOINTS.HCO3, places=6)
        for gfr in history.gfr_ml_min:
            self.assertAlmostEqual(gfr, 105.0, places=6)

    def test_03_hypokalemic_alkalosis(self):
        """[CONTROL] K+ retained, HCO3- excreted."""
        print("\nTEST 3: Hypokalemic Alkalosis")
        history = self.run_scenario(ScenarioType.HYPOKALEMIA_ALKALOSIS)
        self.assert_all_finite(history)
        self.assertGreater(history.plasma_k[1], 3.2)
        self.assertLess(history.plasma_hco3[1], 29.0)
        self.assertGreater(history.reab_k[0], 0.0439)

    def test_04_sodium_disorders(self):
        """[CONTROL] Hyper- and hyponatremia both move toward 140 on day 1."""
        print("\nTEST 4: Sodium Disorders")
        hyper = self.run_scenario(ScenarioType.HYPERNATREMIA, num_days=1)
        hypo = self.run_scenario(ScenarioType.HYPONATREMIA, num_days=1)
        print(f"Hypernatremia: 148.0 -> {hyper.plasma_na[1]:.2f} | Hyponatremia: 130.0 -> {hypo.plasma_na[1]:.2f}")
        self.assertLess(hyper.plasma_na[1], 148.0)
        self.assertGreater(hypo.plasma_na[1], 130.0)
        self.assertAlmostEqual(hyper.reab_na[0], 0.04)
        self.assertAlmostEqual(hypo.reab_h2o[0], 0.065)

    def test_05_all_presets_run_cleanly(self):
        for scenario_type in ScenarioType:
            history = self.run_scenario(scenario_type)
            self.assert_all_finite(history)
            self.assertEqual(len(history.plasma_na), history.num_days + 1)

class TestScenarioLibrary(unittest.TestCase):

    def test_01_lookup_and_fallback(self):
        scenario = SCENARIO_LIBRARY.get(ScenarioType.MILD_RENAL_INSUFFICIENCY)
        self.assertEqual(scenario.num_days, 20)
        self.assertEqual(scenario.initial_plasma.k, 5.5)
        self.assertEqual(SCENARIO_LIBRARY.get(None).label, "Healthy State")

    def test_02_describe(self):
        described = SCENARIO_LIBRARY.describe()
        self.assertEqual(len(described), len(ScenarioType))
        keys = {d["key"] for d in described}
        self.assertIn("mild_renal_insufficiency", keys)

class TestSafetySupervisor(unittest.TestCase):

    def test_01_range_flags(self):
        alerts = SafetySupervisor.check_plasma(na=150.0, k=6.0, hco3=20.0)
        self.assertTrue(alerts.risk_hypernatremia)
        self.assertTrue(alerts.risk_hyperkalemia)
        self.assertTrue(alerts.risk_acidosis)
        self.assertFalse(alerts.risk_alkalosis)
        self.assertEqual(len(alerts.messages), 3)

    def test_02_normal_state_is_quiet(self):
        alerts = SafetySupervisor.check_plasma(na=140.0, k=4.25, hco3=24.0)
        self.assertEqual(alerts.messages, [])

    def test_03_non_finite_state(self):
        alerts = SafetySupervisor.check_plasma(na=float('nan'), k=4.0, hco3=24.0)
        self.assertTrue(alerts.non_finite_warning)

    def test_04_guarded_run_is_reported(self):
        plasma = PlasmaConcentrations(na=0.0, k=4.25, hco3=24.0, urea=4.75, cl=0.0, glucose=5.0)
        history = HomeostaticController.run(plasma, 1)
        alerts = SafetySupervisor.check_history(history)
        self.assertTrue(alerts.tgf_degenerate_warning)
        self.assertTrue(alerts.risk_hyponatremia)

    def test_05_floored_run_is_reported(self):
        scenario = SCENARIO_LIBRARY.get(ScenarioType.MILD_RENAL_INSUFFICIENCY)
        history = HomeostaticController.run(scenario.initial_plasma, 20, ControllerConfig(learning_rate_k=1.0))
        alerts = SafetySupervisor.check_history(history)
        self.assertTrue(alerts.plasma_floor_warning)
        self.assertTrue(any("floor" in m for m in alerts.messages))

if __name__ == '__main__':
    unittest.main()
