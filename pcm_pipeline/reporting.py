"""
Reporting Module
================

End-of-run reports:
- corrections (warnings) and errors, as accumulated by the batch sink
- text summary of the decisions table
- selected sample-rate / gain distribution plots
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from .diagnostics import Diagnostic, DiagnosticsSink

logger = logging.getLogger(__name__)


def format_diagnostics(sink: DiagnosticsSink) -> str:
    """
    Corrections and errors sections, in the order they were recorded.
    """
    lines = []

    lines.append("--------- CORRECTIONS ---------")
    warnings: List[Diagnostic] = sink.warnings
    if not warnings:
        lines.append("No corrections")
    lines.extend(str(d) for d in warnings)

    lines.append("")
    lines.append("--------- ERRORS ---------")
    errors: List[Diagnostic] = sink.errors
    if not errors:
        lines.append("No errors")
    lines.extend(str(d) for d in errors)

    return "\n".join(lines)


class DecisionReporter:
    """
    Generate reports for a batch of normalization decisions.
    """

    def __init__(self, results_df: pd.DataFrame, output_dir: str = "reports",
                 diagnostics: DiagnosticsSink = None):
        """
        Initialize reporter.

        Args:
            results_df: DataFrame from PipelineOrchestrator.run
            output_dir: Output directory for reports
            diagnostics: Batch diagnostics sink
        """
        self.df = results_df
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticsSink()
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        sns.set_style("whitegrid")

    def _accepted(self) -> pd.DataFrame:
        if self.df.empty or "success" not in self.df.columns:
            return self.df
        return self.df[self.df["success"].astype(bool)]

    def plot_rate_distribution(self, save: bool = True) -> Optional[plt.Figure]:
        """
        Bar chart of selected output sample rates.
        """
        accepted = self._accepted()
        if "selected_sample_rate" not in accepted.columns or accepted.empty:
            logger.warning("No selected sample rates to plot")
            return None

        counts = accepted["selected_sample_rate"].astype(int).value_counts().sort_index()

        fig, axes = plt.subplots(1, 2, figsize=(14, 5))

        sns.barplot(x=counts.index.astype(str), y=counts.values, ax=axes[0],
                    color=sns.color_palette("husl", 8)[0])
        axes[0].set_xlabel("Selected sample rate (Hz)")
        axes[0].set_ylabel("Files")
        axes[0].set_title("Output Sample Rates")

        if "gain" in accepted.columns:
            sns.histplot(accepted["gain"].dropna(), ax=axes[1], bins=20)
            axes[1].axvline(1.0, color="red", linestyle="--", label="Unity gain")
            axes[1].set_xlabel("Gain (linear)")
            axes[1].set_title("Applied Gain")
            axes[1].legend()
        else:
            axes[1].set_visible(False)

        plt.tight_layout()

        if save:
            save_path = self.output_dir / "rate_distribution.png"
            plt.savefig(save_path, dpi=150, bbox_inches="tight")
            logger.info(f"Saved: {save_path}")

        return fig

    def generate_summary_report(self) -> str:
        """
        Generate text summary report.
        """
        report = []
        report.append("=" * 70)
        report.append("PCM NORMALIZATION REPORT")
        report.append("=" * 70)
        report.append(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        report.append("")

        report.append("BATCH OVERVIEW")
        report.append("-" * 40)
        total = len(self.df)
        accepted = self._accepted()
        report.append(f"Total files: {total}")
        report.append(f"Accepted: {len(accepted)}")
        report.append(f"Rejected: {total - len(accepted)}")
        report.append("")

        if not accepted.empty and "selected_sample_rate" in accepted.columns:
            report.append("SELECTED SAMPLE RATES")
            report.append("-" * 40)
            counts = accepted["selected_sample_rate"].astype(int).value_counts().sort_index()
            for rate, count in counts.items():
                report.append(f"  {rate:>6} Hz: {count}")
            report.append("")

        if not accepted.empty and "mono_output" in accepted.columns:
            mono = int(accepted["mono_output"].astype(bool).sum())
            report.append(f"Collapsed to mono: {mono}")
            report.append("")

        report.append(format_diagnostics(self.diagnostics))
        report.append("")
        report.append("=" * 70)

        report_text = "\n".join(report)

        report_path = self.output_dir / "summary_report.txt"
        with open(report_path, "w", encoding="utf-8") as f:
            f.write(report_text)

        logger.info(f"Summary report saved to {report_path}")

        return report_text

    def generate_full_report(self, plot: bool = True) -> str:
        """
        Generate the report package; returns the text summary.
        """
        logger.info("Generating report package...")

        if plot:
            fig = self.plot_rate_distribution()
            if fig is not None:
                plt.close(fig)

        text = self.generate_summary_report()

        if not self.df.empty and "success" in self.df.columns:
            self._accepted().to_csv(self.output_dir / "accepted_files.csv", index=False)

        logger.info(f"Report package saved to {self.output_dir}")
        return text


def generate_report(results_csv: str, output_dir: str = "reports") -> str:
    """
    Convenience function to generate a report from a results CSV.

    Args:
        results_csv: Path to results CSV file
        output_dir: Output directory for reports
    """
    df = pd.read_csv(results_csv)
    reporter = DecisionReporter(df, output_dir)
    return reporter.generate_full_report()
