"""
tests/test_reporting.py
=======================
Corrections/errors listing, text summary and plots.
"""

import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from pcm_pipeline.diagnostics import DiagnosticsSink
from pcm_pipeline.reporting import DecisionReporter, format_diagnostics, generate_report


def sample_results() -> pd.DataFrame:
    return pd.DataFrame([
        {"file": "a.wav", "success": True, "selected_sample_rate": 16000.0,
         "mono_output": True, "gain": 1.0},
        {"file": "b.wav", "success": True, "selected_sample_rate": 8000.0,
         "mono_output": False, "gain": 0.7},
        {"file": "c.wav", "success": False, "selected_sample_rate": None,
         "mono_output": None, "gain": None},
    ])


class TestFormatDiagnostics(unittest.TestCase):

    def test_empty(self):
        text = format_diagnostics(DiagnosticsSink())
        self.assertEqual(text.splitlines(), [
            "--------- CORRECTIONS ---------",
            "No corrections",
            "",
            "--------- ERRORS ---------",
            "No errors",
        ])

    def test_records_listed_by_kind(self):
        sink = DiagnosticsSink()
        sink.warn("a.wav", "Converted to mono (identical channels)")
        sink.error("c.wav", "Below threshold, not processed")
        sink.warn("b.wav", "Saturated volume adjusted -3.00 dB > -6.00 dB")

        self.assertEqual(format_diagnostics(sink).splitlines(), [
            "--------- CORRECTIONS ---------",
            "a.wav: Converted to mono (identical channels)",
            "b.wav: Saturated volume adjusted -3.00 dB > -6.00 dB",
            "",
            "--------- ERRORS ---------",
            "c.wav: Below threshold, not processed",
        ])


class TestDecisionReporter(unittest.TestCase):

    def setUp(self):
        self.tmpdir = Path(tempfile.mkdtemp())
        self.sink = DiagnosticsSink()
        self.sink.error("c.wav", "Below threshold, not processed")

    def tearDown(self):
        plt.close("all")
        shutil.rmtree(self.tmpdir)

    def test_summary_report(self):
        reporter = DecisionReporter(sample_results(), str(self.tmpdir), self.sink)
        text = reporter.generate_summary_report()

        self.assertIn("Total files: 3", text)
        self.assertIn("Accepted: 2", text)
        self.assertIn("Rejected: 1", text)
        self.assertIn("c.wav: Below threshold, not processed", text)
        self.assertTrue((self.tmpdir / "summary_report.txt").exists())

    def test_plot(self):
        reporter = DecisionReporter(sample_results(), str(self.tmpdir))
        fig = reporter.plot_rate_distribution()

        self.assertIsNotNone(fig)
        self.assertTrue((self.tmpdir / "rate_distribution.png").exists())

    def test_plot_without_accepted_files(self):
        df = pd.DataFrame([{"file": "c.wav", "success": False}])
        self.assertIsNone(DecisionReporter(df, str(self.tmpdir)).plot_rate_distribution())

    def test_full_report_from_csv(self):
        csv_path = self.tmpdir / "results.csv"
        sample_results().to_csv(csv_path, index=False)

        report_dir = self.tmpdir / "reports"
        generate_report(str(csv_path), str(report_dir))

        accepted = pd.read_csv(report_dir / "accepted_files.csv")
        self.assertEqual(list(accepted["file"]), ["a.wav", "b.wav"])
        self.assertTrue((report_dir / "rate_distribution.png").exists())


if __name__ == "__main__":
    unittest.main()
