"""
Decision Assembly
=================

Combines peak scan, frame analysis, bandwidth and gain into one
NormalizationDecision for a stream, or rejects the stream.

Entry points:
- analyze(): returns an AnalysisResult (decision or error), never raises
  for a rejected stream
- analyze_or_raise(): returns the decision or raises AnalysisRejected

Warnings go to the caller's DiagnosticsSink; a rejected stream produces
exactly one Error and nothing else.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .analysis import AnalysisState, FrameAnalyzer
from .bandwidth import representative_frequency, select_sample_rate
from .config import AnalysisConfig, DEFAULT_CONFIG
from .diagnostics import Diagnostic, DiagnosticsSink
from .dsp import scan_peak
from .gain import GainDecision, compute_gain
from .stream import FrameSource, StreamDescriptor

logger = logging.getLogger(__name__)


class AnalysisRejected(Exception):
    """The stream cannot be normalized; carries the Error diagnostic."""

    def __init__(self, diagnostic: Diagnostic):
        # args keeps the diagnostic itself so results survive pickling
        super().__init__(diagnostic)
        self.diagnostic = diagnostic

    def __str__(self) -> str:
        return str(self.diagnostic)


class BelowThresholdError(AnalysisRejected):
    """No frame ever rises above the silence floor."""


class CorruptStreamError(AnalysisRejected):
    """Degenerate bandwidth or sample rate."""


@dataclass(frozen=True)
class NormalizationDecision:
    """How the export stage should render one stream"""
    selected_sample_rate: int
    mono_output: bool
    gain: float
    trim_start: int
    trim_end: int

    # Informational
    source_sample_rate: float = 0.0
    peak_db: float = 0.0
    effective_peak_db: float = 0.0
    max_frequency: float = 0.0
    total_frames: int = 0

    @property
    def trimmed_frames(self) -> int:
        return self.trim_end - self.trim_start

    def to_dict(self) -> Dict:
        return {
            "selected_sample_rate": self.selected_sample_rate,
            "mono_output": self.mono_output,
            "gain": self.gain,
            "trim_start": self.trim_start,
            "trim_end": self.trim_end,
            "source_sample_rate": self.source_sample_rate,
            "peak_db": self.peak_db,
            "effective_peak_db": self.effective_peak_db,
            "max_frequency": self.max_frequency,
            "total_frames": self.total_frames,
            "trimmed_frames": self.trimmed_frames,
        }

    def summary_line(self, file: str) -> str:
        """One console line per accepted file."""
        layout = "Mono" if self.mono_output else "Stereo"
        return (f"{file}: {self.source_sample_rate:g} > {self.selected_sample_rate} | "
                f"{self.effective_peak_db:.2f} dB | {layout}")


@dataclass
class AnalysisResult:
    """Outcome of analyzing one stream"""
    file_id: str
    descriptor: Optional[StreamDescriptor] = None
    decision: Optional[NormalizationDecision] = None
    error: Optional[Diagnostic] = None
    diagnostics: List[Diagnostic] = field(default_factory=list)
    rejection: Optional[AnalysisRejected] = field(default=None, repr=False)

    @property
    def valid(self) -> bool:
        return self.decision is not None and self.error is None

    def to_dict(self) -> Dict:
        result = {
            "file": self.file_id,
            "valid": self.valid,
            "error": self.error.message if self.error else None,
            "warnings": [d.message for d in self.diagnostics if not d.is_error],
        }
        if self.decision:
            result.update(self.decision.to_dict())
        return result


def assemble_decision(file_id: str,
                      descriptor: StreamDescriptor,
                      state: AnalysisState,
                      peak_db: float,
                      sink: DiagnosticsSink,
                      config: AnalysisConfig = None) -> NormalizationDecision:
    """
    Validate the analysis and build the decision.

    Checks, in order:
    1. No active frame at all -> BelowThresholdError
    2. Bandwidth or sample rate under MIN_VALID_HZ -> CorruptStreamError

    On success, warnings for trimming, gain adjustment and mono collapse are
    appended to ``sink``.

    Raises:
        BelowThresholdError, CorruptStreamError
    """
    config = config or DEFAULT_CONFIG.analysis
    sample_rate = descriptor.sample_rate

    if not state.found_activity:
        raise BelowThresholdError(
            Diagnostic.error(file_id, "Below threshold, not processed")
        )

    max_frequency = representative_frequency(state.dominant_frequencies, config.PERCENTILE)
    if max_frequency < config.MIN_VALID_HZ or sample_rate < config.MIN_VALID_HZ:
        raise CorruptStreamError(
            Diagnostic.error(file_id, f"Corrupt file ({max_frequency:.2f}, {sample_rate:g})")
        )

    selected_rate = select_sample_rate(max_frequency, config)
    gain: GainDecision = compute_gain(peak_db, config)
    total_frames = state.current_frame_offset

    decision = NormalizationDecision(
        selected_sample_rate=selected_rate,
        mono_output=state.mono_collapsible,
        gain=gain.gain,
        trim_start=state.first_active_frame,
        trim_end=state.last_active_frame_end,
        source_sample_rate=sample_rate,
        peak_db=peak_db,
        effective_peak_db=gain.effective_peak_db,
        max_frequency=max_frequency,
        total_frames=total_frames,
    )

    if state.first_active_frame > 0:
        head = state.first_active_frame / sample_rate
        tail = (total_frames - state.last_active_frame_end) / sample_rate
        sink.warn(file_id, f"Trimmed: {head:.6f}s from start, {tail:.6f}s from end")

    message = gain.describe(config)
    if message:
        sink.warn(file_id, message)

    if state.mono_collapsible:
        sink.warn(file_id, "Converted to mono (identical channels)")

    return decision


def analyze(source: FrameSource,
            file_id: str = None,
            sink: DiagnosticsSink = None,
            config: AnalysisConfig = None) -> AnalysisResult:
    """
    Analyze one stream: peak scan, rewind, frame analysis, decision.

    Args:
        source: Rewindable frame source
        file_id: Identifier used in diagnostics (defaults to the source path)
        sink: Diagnostics sink shared with the caller (a private one if None)
        config: AnalysisConfig (defaults apply if None)

    Returns:
        AnalysisResult; ``result.valid`` is False for a rejected stream and
        ``result.error`` holds the Error diagnostic (also appended to sink)
    """
    config = config or DEFAULT_CONFIG.analysis
    sink = sink if sink is not None else DiagnosticsSink()
    file_id = file_id or getattr(source, "filepath", None) or "<stream>"

    local = DiagnosticsSink()
    result = AnalysisResult(file_id=file_id, descriptor=source.descriptor)

    peak_db = scan_peak(source, config)
    state = FrameAnalyzer(config).analyze(source, peak_db)

    try:
        result.decision = assemble_decision(
            file_id, source.descriptor, state, peak_db, local, config
        )
    except AnalysisRejected as e:
        logger.info(f"Rejected {file_id}: {e.diagnostic.message}")
        result.error = e.diagnostic
        result.rejection = e
        local.append(e.diagnostic)

    result.diagnostics = local.records
    sink.extend(result.diagnostics)
    return result


def analyze_or_raise(source: FrameSource,
                     file_id: str = None,
                     sink: DiagnosticsSink = None,
                     config: AnalysisConfig = None) -> NormalizationDecision:
    """
    Like analyze(), but raises the rejection.

    Raises:
        BelowThresholdError, CorruptStreamError
    """
    result = analyze(source, file_id, sink, config)
    if result.rejection is not None:
        raise result.rejection
    return result.decision
