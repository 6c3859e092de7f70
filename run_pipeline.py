"""
PCM Normalization Pipeline Runner
=================================

Analyzes every audio file under the input folder and, with --write,
exports trimmed, gain-adjusted, resampled Ogg Vorbis files.

Usage:
    python run_pipeline.py                      # Analyze ./in
    python run_pipeline.py --input ./music      # Specify input folder
    python run_pipeline.py --write              # Also export to ./out
    python run_pipeline.py --workers 8          # Use 8 workers
    python run_pipeline.py --report-only out/latest_results.csv
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

from pcm_pipeline.config import PipelineConfig
from pcm_pipeline.orchestrator import PipelineOrchestrator
from pcm_pipeline.reporting import DecisionReporter, format_diagnostics, generate_report


def setup_logging(output_dir: str, verbose: bool = False) -> str:
    """Configure logging for the pipeline."""
    log_dir = Path(output_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"pipeline_{timestamp}.log"

    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ],
        force=True,
    )

    # Reduce noise from third-party libraries
    for name in ("matplotlib", "PIL", "numba", "pydub.converter", "audioread"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return str(log_file)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="PCM Normalization Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Analyze ./in and print the decisions
  python run_pipeline.py

  # Export accepted files as .ogg under ./out
  python run_pipeline.py --write

  # Stricter silence floor for quiet material
  python run_pipeline.py --minimum-db -60
        """
    )

    parser.add_argument('--input', '-i', type=str, default='in',
                        help='Folder scanned recursively for audio (default: in)')
    parser.add_argument('--output', '-o', type=str, default='out',
                        help='Output folder for audio and results (default: out)')
    parser.add_argument('--write', action='store_true',
                        help='Export accepted files (trim, gain, resample, Ogg Vorbis)')
    parser.add_argument('--workers', '-w', type=int, default=4,
                        help='Number of parallel workers (default: 4, 1 = sequential)')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose logging')
    parser.add_argument('--plot', action='store_true',
                        help='Save sample-rate/gain distribution plots')
    parser.add_argument('--report-only', type=str, metavar='CSV_FILE',
                        help='Generate report from existing results CSV (skip processing)')

    policy = parser.add_argument_group("analysis policy")
    policy.add_argument('--minimum-db', type=float, help='Silence floor in dB (default: -50)')
    policy.add_argument('--limit-db', type=float, help='Peak ceiling in dB (default: -6)')
    policy.add_argument('--contrast-db', type=float, help='Spectral contrast window in dB (default: 15)')
    policy.add_argument('--freq-margin', type=float, help='Margin over Nyquist (default: 1.15)')

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    log_file = setup_logging(str(Path(args.output) / "logs"), args.verbose)
    logger = logging.getLogger(__name__)

    logger.info("=" * 70)
    logger.info("PCM Normalization Pipeline")
    logger.info("=" * 70)

    if args.report_only:
        logger.info(f"Generating report from: {args.report_only}")
        report_dir = Path(args.output) / "reports"
        generate_report(args.report_only, str(report_dir))
        logger.info(f"Report generated in: {report_dir}")
        return 0

    input_path = Path(args.input)
    if not input_path.is_dir():
        logger.error(f"Input folder does not exist: {input_path}")
        return 1

    logger.info(f"Input: {input_path.absolute()}")
    logger.info(f"Output: {args.output}")
    logger.info(f"Workers: {args.workers}")
    logger.info(f"Log file: {log_file}")

    try:
        config = PipelineConfig()
        config.analysis = config.analysis.with_overrides(
            MINIMUM_DB=args.minimum_db,
            LIMIT_DB=args.limit_db,
            CONTRAST_DB=args.contrast_db,
            FREQ_MARGIN=args.freq_margin,
        )
        config.refresh_hash()
    except ValueError as e:
        logger.error(f"Invalid analysis policy: {e}")
        return 1

    config.n_workers = args.workers
    config.write = args.write
    config.verbose = args.verbose
    config.plot = args.plot

    orchestrator = PipelineOrchestrator(config)
    df = orchestrator.run(str(input_path), args.output, args.workers)

    for result in sorted(orchestrator.results, key=lambda r: r.job.input_path):
        if result.summary_line:
            print(result.summary_line)

    print()
    print(format_diagnostics(orchestrator.diagnostics))

    if not df.empty:
        reporter = DecisionReporter(df, str(Path(args.output) / "reports"),
                                    orchestrator.diagnostics)
        reporter.generate_full_report(plot=args.plot)

    return 0


if __name__ == "__main__":
    sys.exit(main())
