"""
tests/test_gain.py
==================
Gain normalization into the [MINIMUM_DB, LIMIT_DB) window.
"""

import math
import os
import sys
import unittest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from pcm_pipeline.config import AnalysisConfig
from pcm_pipeline.dsp import mag_to_db
from pcm_pipeline.gain import LOW_VOLUME, NO_ADJUSTMENT, SATURATED, compute_gain


class TestComputeGain(unittest.TestCase):

    def test_saturated_peak_attenuated_to_limit(self):
        decision = compute_gain(-3.0)

        self.assertEqual(decision.adjustment, SATURATED)
        self.assertAlmostEqual(decision.gain, 10 ** ((-6.0 - (-3.0)) / 20))
        self.assertEqual(decision.effective_peak_db, -6.0)

        adjusted_peak = 10 ** (-3.0 / 20) * decision.gain
        self.assertAlmostEqual(mag_to_db(adjusted_peak), -6.0, places=6)

    def test_quiet_peak_amplified_to_floor(self):
        decision = compute_gain(-60.0)

        self.assertEqual(decision.adjustment, LOW_VOLUME)
        self.assertAlmostEqual(decision.gain, 10 ** ((-50.0 - (-60.0)) / 20))
        self.assertEqual(decision.effective_peak_db, -50.0)

        adjusted_peak = 10 ** (-60.0 / 20) * decision.gain
        self.assertAlmostEqual(20 * math.log10(adjusted_peak), -50.0, places=6)

    def test_in_window_is_unity(self):
        decision = compute_gain(-20.0)

        self.assertEqual(decision.gain, 1.0)
        self.assertEqual(decision.adjustment, NO_ADJUSTMENT)
        self.assertFalse(decision.adjusted)
        self.assertIsNone(decision.describe())
        self.assertEqual(decision.effective_peak_db, -20.0)

    def test_exactly_at_limit_is_saturated(self):
        decision = compute_gain(-6.0)
        self.assertEqual(decision.adjustment, SATURATED)
        self.assertEqual(decision.gain, 1.0)

    def test_exactly_at_floor_is_unity(self):
        decision = compute_gain(-50.0)
        self.assertEqual(decision.adjustment, NO_ADJUSTMENT)
        self.assertEqual(decision.gain, 1.0)

    def test_gain_positive_and_finite(self):
        for peak_db in (-180.0, -90.0, -50.0, -30.0, -6.0, 0.0, 12.0):
            gain = compute_gain(peak_db).gain
            self.assertGreater(gain, 0.0)
            self.assertTrue(math.isfinite(gain))

    def test_warning_text(self):
        self.assertTrue(compute_gain(-1.0).describe().startswith("Saturated volume adjusted"))
        self.assertTrue(compute_gain(-70.0).describe().startswith("Low volume adjusted"))

    def test_custom_window(self):
        config = AnalysisConfig(LIMIT_DB=-1.0, MINIMUM_DB=-40.0)
        self.assertEqual(compute_gain(-3.0, config).gain, 1.0)
        self.assertAlmostEqual(compute_gain(-45.0, config).gain, 10 ** (5.0 / 20))


if __name__ == "__main__":
    unittest.main()
