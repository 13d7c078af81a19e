import unittest
import math
import numpy as np

from nephron_engine import NephronTransportEngine
from models import PlasmaConcentrations, ReabsorptionRates, InvalidInputError, DataTypeError
from constants import Species, Segment, RATE_LIBRARY
from debug_calibration import format_stream_table, format_concentration_table

class TestNephronTransportEngine(unittest.TestCase):

    def setUp(self):
        """Healthy plasma at the reference GFR (105 mL/min on the engine scale)."""
        self.plasma = PlasmaConcentrations.healthy()
        self.gfr = 105 / 60
        self.rates = ReabsorptionRates.baseline()
        self.result = NephronTransportEngine.simulate(self.plasma, self.gfr, self.rates)

    def test_01_filtration_unit_conversion(self):
        """Stream 1 total = solutes * GFR / 1000 + water (1000 * GFR / 18)"""
        print("\nTEST 1: Filtration Unit Conversion")
        expected = (140 + 4.25 + 24 + 4.75 + 101 + 5.0) * self.gfr / 1000 + (1000 * self.gfr) / 18
        actual = self.result.streams[0, 0]
        print(f"Expected: {expected:.10f} | Actual: {actual:.10f}")
        self.assertAlmostEqual(actual, expected, places=12)

        self.assertAlmostEqual(self.result.streams[0, 1 + Species.NA], 140 * self.gfr / 1000, places=14)
        self.assertAlmostEqual(self.result.streams[0, 1 + Species.WATER], 1000 * self.gfr / 18, places=12)

    def test_02_table_shapes(self):
        self.assertEqual(self.result.streams.shape, (7, 8))
        self.assertEqual(self.result.concentrations.shape, (7, 6))

    def test_03_conservation_every_row(self):
        """Physics Check: total must equal the species sum in every stream."""
        print("\nTEST 3: Row Conservation")
        for i, row in enumerate(self.result.streams):
            species_sum = np.sum(row[1:])
            self.assertTrue(
                math.isclose(row[0], species_sum, rel_tol=1e-9, abs_tol=1e-15),
                f"Stream {i + 1}: total {row[0]} != sum {species_sum}"
            )
            self.assertAlmostEqual(self.result.stream(i).total, species_sum, places=12)

    def test_04_monotonic_depletion(self):
        """Reabsorption in [0,1] never creates solute."""
        flows = self.result.species_flows
        for i in range(6):
            self.assertTrue(np.all(flows[i + 1] <= flows[i]), f"Segment {i + 1} created solute")

    def test_05_negative_rate_is_secretion(self):
        """A negative collecting-duct K+ rate must increase K+ flow across that segment."""
        table = RATE_LIBRARY.baseline()
        table[Segment.CORTICAL_DUCT, Species.K] = -0.5
        result = NephronTransportEngine.simulate(self.plasma, self.gfr, ReabsorptionRates(table))

        k_in = result.streams[Segment.CORTICAL_DUCT, 1 + Species.K]
        k_out = result.streams[Segment.CORTICAL_DUCT + 1, 1 + Species.K]
        print(f"\nTEST 5: Secretion | K in {k_in:.6f} -> K out {k_out:.6f}")
        self.assertAlmostEqual(k_out, k_in * 1.5, places=12)
        self.assertGreater(k_out, k_in)

        reabsorbed = NephronTransportEngine.reabsorbed_flows(result)
        self.assertLess(reabsorbed[Segment.CORTICAL_DUCT, Species.K], 0.0)

    def test_06_segments_fold_in_order(self):
        """Each stream is the previous stream times the segment's remaining fraction."""
        remaining = self.rates.remaining()
        flows = self.result.species_flows
        for segment in Segment:
            np.testing.assert_allclose(flows[segment + 1], flows[segment] * remaining[segment], rtol=1e-12)

    def test_07_dry_stream_concentrations_stay_finite(self):
        """If a segment removes all water, the epsilon keeps concentrations finite."""
        table = RATE_LIBRARY.baseline()
        table[Segment.PCT, Species.WATER] = 1.0
        result = NephronTransportEngine.simulate(self.plasma, self.gfr, ReabsorptionRates(table))

        self.assertEqual(result.streams[1, 1 + Species.WATER], 0.0)
        self.assertTrue(np.all(np.isfinite(result.concentrations)))
        self.assertTrue(np.all(result.concentrations >= 0.0))

    def test_08_zero_gfr_is_degenerate_not_rejected(self):
        result = NephronTransportEngine.simulate(self.plasma, 0.0, self.rates)
        self.assertTrue(np.all(result.streams == 0.0))
        self.assertTrue(np.all(result.concentrations == 0.0))
        self.assertTrue(np.all(NephronTransportEngine.mole_fractions(result) == 0.0))

    def test_09_invalid_inputs_fail_fast(self):
        print("\nTEST 9: Boundary Validation")
        with self.assertRaises(InvalidInputError):
            NephronTransportEngine.simulate(self.plasma, -1.0, self.rates)
        with self.assertRaises(InvalidInputError):
            NephronTransportEngine.simulate(self.plasma, float('nan'), self.rates)
        with self.assertRaises(InvalidInputError):
            NephronTransportEngine.simulate(self.plasma, float('inf'), self.rates)

        bad_plasma = PlasmaConcentrations(na=-1.0, k=4.0, hco3=24.0, urea=5.0, cl=100.0)
        with self.assertRaises(InvalidInputError):
            NephronTransportEngine.simulate(bad_plasma, self.gfr, self.rates)

        nan_plasma = PlasmaConcentrations(na=140.0, k=float('nan'), hco3=24.0, urea=5.0, cl=100.0)
        with self.assertRaises(InvalidInputError):
            NephronTransportEngine.simulate(nan_plasma, self.gfr, self.rates)

        table = RATE_LIBRARY.baseline()
        table[Segment.DCT, Species.NA] = float('nan')
        with self.assertRaises(InvalidInputError):
            NephronTransportEngine.simulate(self.plasma, self.gfr, ReabsorptionRates(table))

        with self.assertRaises(InvalidInputError):
            ReabsorptionRates(np.zeros((5, 7)))

        with self.assertRaises(DataTypeError):
            PlasmaConcentrations(na="140", k=4.0, hco3=24.0, urea=5.0, cl=100.0)

    def test_10_engine_is_pure(self):
        """Same inputs -> same outputs, inputs untouched."""
        before = self.rates.table.copy()
        again = NephronTransportEngine.simulate(self.plasma, self.gfr, self.rates)
        np.testing.assert_array_equal(self.rates.table, before)
        np.testing.assert_array_equal(again.streams, self.result.streams)
        self.assertEqual(self.plasma, PlasmaConcentrations.healthy())

    def test_11_concentration_derivation(self):
        """C = n / (V + eps) with V = water * 18 / 1000"""
        row = self.result.streams[6]
        volume_l = row[1 + Species.WATER] * 18 / 1000
        expected_na = row[1 + Species.NA] / (volume_l + 1e-9)
        self.assertAlmostEqual(self.result.concentrations[6, Species.NA], expected_na, places=12)
        self.assertAlmostEqual(self.result.final_urine.volume_l, volume_l, places=12)

    def test_12_derived_quantities(self):
        fractions = NephronTransportEngine.mole_fractions(self.result)
        np.testing.assert_allclose(fractions.sum(axis=1), np.ones(7), rtol=1e-12)

        reabsorbed = NephronTransportEngine.reabsorbed_flows(self.result)
        self.assertEqual(reabsorbed.shape, (6, 7))
        np.testing.assert_allclose(
            reabsorbed.sum(axis=0),
            self.result.species_flows[0] - self.result.species_flows[-1],
            rtol=1e-9, atol=1e-15
        )

        delivery = NephronTransportEngine.nacl_delivery(self.result)
        expected = self.result.streams[3, 1 + Species.NA] + self.result.streams[3, 1 + Species.CL]
        self.assertAlmostEqual(delivery, expected, places=14)

        daily = NephronTransportEngine.daily_excretion(self.result)
        np.testing.assert_allclose(daily, self.result.streams[-1, 1:] * 24, rtol=1e-12)

    def test_13_glucose_fully_reabsorbed_at_baseline(self):
        urine = NephronTransportEngine.final_urine(self.result)
        self.assertEqual(urine.flow(Species.GLUCOSE), 0.0)
        self.assertAlmostEqual(urine.total, self.result.streams[-1, 0], places=12)
        self.assertGreater(self.result.stream(0).flow(Species.GLUCOSE), 0.0)

    def test_14_rates_accepted_as_plain_table(self):
        """A nested list is validated into a rate set and folds through remaining()."""
        result = NephronTransportEngine.simulate(self.plasma, self.gfr, self.rates.table.tolist())
        np.testing.assert_array_equal(result.streams, self.result.streams)

        with self.assertRaises(InvalidInputError):
            NephronTransportEngine.simulate(self.plasma, self.gfr, [[0.1] * 7] * 5)

    def test_15_calibration_tables(self):
        stream_table = format_stream_table(self.result)
        conc_table = format_concentration_table(self.result)
        self.assertEqual(len(stream_table.splitlines()), 8)
        self.assertEqual(len(conc_table.splitlines()), 8)
        self.assertIn("Final Urine", stream_table)

if __name__ == '__main__':
    unittest.main()
