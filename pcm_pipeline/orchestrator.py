"""
Pipeline Orchestrator
=====================

Batch analysis (and optional export) of a folder of audio files.

Features:
- Recursive discovery of audio files by extension
- Parallel processing with a worker pool, one file per task
- Per-worker diagnostics merged into one batch sink
- Structured output generation (CSV, summary, config snapshot)
"""

import json
import logging
import time
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
from tqdm import tqdm

from .config import PipelineConfig, DEFAULT_CONFIG
from .decision import AnalysisResult, analyze
from .diagnostics import Diagnostic, DiagnosticsSink
from .export import export_decision
from .stream import open_source

logger = logging.getLogger(__name__)


@dataclass
class ProcessingJob:
    """Single file processing job"""
    input_path: str
    relative_path: str
    output_path: Optional[str] = None


@dataclass
class ProcessingResult:
    """Result of processing a single file"""
    job: ProcessingJob
    analysis: Optional[AnalysisResult] = None
    exported_path: Optional[str] = None
    diagnostics: List[Diagnostic] = field(default_factory=list)
    success: bool = False
    error: Optional[str] = None
    processing_time_sec: float = 0.0

    @property
    def summary_line(self) -> Optional[str]:
        if self.analysis and self.analysis.decision:
            return self.analysis.decision.summary_line(self.job.input_path)
        return None

    def to_csv_row(self) -> Dict:
        """Flatten result for CSV export"""
        row = {
            "file": self.job.relative_path,
            "input_path": self.job.input_path,
        }

        if self.analysis and self.analysis.descriptor:
            descriptor = self.analysis.descriptor
            row.update({
                "source_sample_rate": descriptor.sample_rate,
                "channels": descriptor.channels,
                "frames": descriptor.frames,
            })

        if self.analysis and self.analysis.decision:
            row.update(self.analysis.decision.to_dict())

        row.update({
            "n_warnings": sum(1 for d in self.diagnostics if not d.is_error),
            "exported_path": self.exported_path,
            "success": self.success,
            "error": self.error,
            "processing_time_sec": self.processing_time_sec,
        })

        return row


class AudioFileScanner:
    """
    Scan an input folder and build the processing job queue.
    """

    def __init__(self, config: PipelineConfig = None):
        self.config = config or DEFAULT_CONFIG

    def is_audio_file(self, path: Path) -> bool:
        return path.is_file() and path.suffix.lower() in self.config.folders.AUDIO_EXTENSIONS

    def scan(self, input_dir: str, output_dir: str = None) -> List[ProcessingJob]:
        """
        Recursively collect audio files under ``input_dir``.

        Output paths mirror the input layout under ``output_dir`` with an
        ``.ogg`` extension. A missing or non-directory input yields no jobs.
        """
        root = Path(input_dir)
        if not root.is_dir():
            logger.warning(f"Input folder not found: {input_dir}")
            return []

        output_root = Path(output_dir or self.config.folders.OUTPUT_DIR)
        jobs = []
        for path in sorted(root.rglob("*")):
            if not self.is_audio_file(path):
                continue
            relative = path.relative_to(root)
            jobs.append(ProcessingJob(
                input_path=str(path),
                relative_path=str(relative),
                output_path=str((output_root / relative).with_suffix(".ogg")),
            ))

        logger.info(f"Found {len(jobs)} audio files in {input_dir}")
        return jobs


def process_single_job(job: ProcessingJob, config: PipelineConfig) -> ProcessingResult:
    """
    Analyze (and optionally export) one file (worker function).

    Designed to run in a separate process: diagnostics are collected in a
    private sink and shipped back with the result.
    """
    start_time = time.time()

    result = ProcessingResult(job=job)
    sink = DiagnosticsSink()

    source = None
    try:
        source = open_source(job.input_path)
        analysis = analyze(source, job.input_path, sink, config.analysis)
    except Exception as e:
        if source is not None:
            source.close()
        result.success = False
        result.error = f"Could not decode file: {e}"
        sink.error(job.input_path, result.error)
        logger.error(f"Processing failed for {job.input_path}: {e}")
        result.diagnostics = sink.records
        result.processing_time_sec = time.time() - start_time
        return result

    with source:
        result.analysis = analysis
        result.success = analysis.valid

        if not analysis.valid:
            result.error = analysis.error.message
        else:
            logger.debug(analysis.decision.summary_line(job.input_path))
            if config.write and job.output_path:
                try:
                    result.exported_path = export_decision(
                        source, analysis.decision, job.output_path,
                        job.input_path, sink, config.export,
                    )
                except Exception as e:
                    # The decision stands; only the rendered file is missing
                    sink.error(job.input_path, f"Export failed: {e}")
                    logger.error(f"Export failed for {job.input_path}: {e}")

    result.diagnostics = sink.records
    result.processing_time_sec = time.time() - start_time
    return result


class PipelineOrchestrator:
    """
    Main pipeline orchestrator with multiprocessing support.

    Usage:
        orchestrator = PipelineOrchestrator(config)
        df = orchestrator.run("in/", output_dir="out/")
        orchestrator.diagnostics.warnings
    """

    def __init__(self, config: PipelineConfig = None):
        """
        Initialize orchestrator.

        Args:
            config: PipelineConfig instance
        """
        self.config = config or DEFAULT_CONFIG
        self.scanner = AudioFileScanner(self.config)

        # Results storage
        self.results: List[ProcessingResult] = []
        self.diagnostics = DiagnosticsSink()
        self._run_metadata: Dict = {}

    def run(self, input_dir: str = None,
            output_dir: str = None,
            n_workers: int = None,
            show_progress: bool = True,
            save: bool = True) -> pd.DataFrame:
        """
        Run the pipeline on a folder.

        Args:
            input_dir: Folder scanned for audio files
            output_dir: Exported audio and result files
            n_workers: Number of parallel workers (None = use config)
            show_progress: Show progress bar
            save: Write CSV/JSON outputs to ``output_dir``

        Returns:
            DataFrame with one row per file
        """
        start_time = time.time()

        input_dir = input_dir or self.config.folders.INPUT_DIR
        output_dir = output_dir or self.config.folders.OUTPUT_DIR
        n_workers = n_workers or self.config.n_workers

        self.results = []
        self.diagnostics = DiagnosticsSink()
        self._run_metadata = {
            "input_dir": input_dir,
            "output_dir": output_dir,
            "config_hash": self.config.config_hash,
            "config_version": self.config.analysis.CONFIG_VERSION,
            "start_time": datetime.now().isoformat(),
            "n_workers": n_workers,
            "write": self.config.write,
        }

        logger.info(f"Starting pipeline run (config v{self.config.analysis.CONFIG_VERSION})")
        logger.info(f"Input: {input_dir}")
        logger.info(f"Workers: {n_workers}")

        # 1. Discover files
        logger.info("Phase 1: Scanning input folder...")
        jobs = self.scanner.scan(input_dir, output_dir)

        if not jobs:
            logger.warning("No audio files found!")
            return pd.DataFrame()

        self._run_metadata["total_jobs"] = len(jobs)

        # 2. Analyze (and export)
        logger.info(f"Phase 2: Processing {len(jobs)} files...")
        if n_workers > 1:
            self.results = self._process_parallel(jobs, n_workers, show_progress)
        else:
            self.results = self._process_sequential(jobs, show_progress)

        # 3. Generate results
        logger.info("Phase 3: Generating results...")
        df = self._generate_dataframe()

        elapsed = time.time() - start_time
        successful = sum(1 for r in self.results if r.success)
        self._run_metadata.update({
            "end_time": datetime.now().isoformat(),
            "elapsed_sec": elapsed,
            "successful": successful,
            "failed": len(self.results) - successful,
            "warnings": len(self.diagnostics.warnings),
            "errors": len(self.diagnostics.errors),
        })

        if save:
            output_path = Path(output_dir)
            output_path.mkdir(parents=True, exist_ok=True)
            self._save_results(df, output_path)

        logger.info(f"Pipeline complete: {successful}/{len(self.results)} accepted in {elapsed:.1f}s")

        return df

    def _collect(self, result: ProcessingResult):
        self.results.append(result)
        self.diagnostics.extend(result.diagnostics)

    def _process_parallel(self, jobs: List[ProcessingJob],
                          n_workers: int,
                          show_progress: bool) -> List[ProcessingResult]:
        """
        Process jobs in parallel using ProcessPoolExecutor.
        """
        with ProcessPoolExecutor(max_workers=n_workers) as executor:
            future_to_job = {
                executor.submit(process_single_job, job, self.config): job
                for job in jobs
            }

            iterator = as_completed(future_to_job)
            if show_progress:
                iterator = tqdm(iterator, total=len(jobs), desc="Analyzing")

            for future in iterator:
                try:
                    self._collect(future.result())
                except Exception as e:
                    job = future_to_job[future]
                    logger.error(f"Job failed: {job.input_path}: {e}")
                    diagnostic = Diagnostic.error(job.input_path, f"Worker failed: {e}")
                    self._collect(ProcessingResult(
                        job=job,
                        diagnostics=[diagnostic],
                        success=False,
                        error=diagnostic.message,
                    ))

        return self.results

    def _process_sequential(self, jobs: List[ProcessingJob],
                            show_progress: bool) -> List[ProcessingResult]:
        """
        Process jobs in-process (debugging, single worker).
        """
        iterator = tqdm(jobs, desc="Analyzing") if show_progress else jobs

        for job in iterator:
            self._collect(process_single_job(job, self.config))

        return self.results

    def _generate_dataframe(self) -> pd.DataFrame:
        """
        Convert results to pandas DataFrame.
        """
        rows = [r.to_csv_row() for r in self.results]
        df = pd.DataFrame(rows)

        if "file" in df.columns:
            df = df.sort_values("file").reset_index(drop=True)

        return df

    def _save_results(self, df: pd.DataFrame, output_path: Path):
        """
        Save results to various formats.
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

        # 1. Master CSV
        csv_path = output_path / f"normalization_decisions_{timestamp}.csv"
        df.to_csv(csv_path, index=False)
        logger.info(f"Saved CSV: {csv_path}")

        # 2. Summary statistics
        summary = compute_summary(df)
        summary_path = output_path / f"summary_statistics_{timestamp}.json"
        with open(summary_path, "w") as f:
            json.dump(summary, f, indent=2, default=str)
        logger.info(f"Saved summary: {summary_path}")

        # 3. Diagnostics
        diagnostics_path = output_path / f"diagnostics_{timestamp}.json"
        with open(diagnostics_path, "w") as f:
            json.dump([d.to_dict() for d in self.diagnostics], f, indent=2)

        # 3b. Per-file decisions (accepted and rejected)
        decisions_path = output_path / f"decisions_{timestamp}.json"
        analyses = sorted((r.analysis for r in self.results if r.analysis is not None),
                          key=lambda a: a.file_id)
        with open(decisions_path, "w") as f:
            json.dump([a.to_dict() for a in analyses], f, indent=2, default=str)

        # 4. Run metadata
        meta_path = output_path / f"run_metadata_{timestamp}.json"
        with open(meta_path, "w") as f:
            json.dump(self._run_metadata, f, indent=2, default=str)

        # 5. Config snapshot
        config_path = output_path / f"config_snapshot_{timestamp}.json"
        self.config.save(str(config_path))

        # 6. Latest results
        latest_csv = output_path / "latest_results.csv"
        if latest_csv.exists() or latest_csv.is_symlink():
            latest_csv.unlink()
        try:
            latest_csv.symlink_to(csv_path.name)
        except (OSError, NotImplementedError):
            # Symlinks may not work on Windows
            df.to_csv(latest_csv, index=False)


def compute_summary(df: pd.DataFrame) -> Dict:
    """
    Summary statistics for a results table.
    """
    if df.empty:
        return {"total_files": 0, "accepted": 0, "rejected": 0}

    summary = {
        "total_files": len(df),
        "accepted": int(df["success"].sum()),
        "rejected": int((~df["success"].astype(bool)).sum()),
    }

    if "selected_sample_rate" in df.columns:
        rates = df["selected_sample_rate"].dropna().astype(int)
        summary["selected_sample_rates"] = {
            str(rate): int(count) for rate, count in rates.value_counts().sort_index().items()
        }

    if "mono_output" in df.columns:
        summary["mono_outputs"] = int(df["mono_output"].fillna(False).astype(bool).sum())

    for metric in ("gain", "peak_db", "max_frequency"):
        if metric in df.columns:
            valid = df[metric].dropna()
            if len(valid) > 0:
                summary[f"{metric}_mean"] = float(valid.mean())
                summary[f"{metric}_min"] = float(valid.min())
                summary[f"{metric}_max"] = float(valid.max())

    return summary
