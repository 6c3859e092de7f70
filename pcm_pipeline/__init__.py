"""
PCM Normalization Pipeline
==========================

Offline two-pass analysis of decoded PCM audio. For each file it decides
the silence-trimmed frame range, a gain bringing the peak into range, a
stereo-to-mono collapse and the smallest sufficient output sample rate.

Modules:
- config: Analysis policy knobs and pipeline settings
- diagnostics: Warning/error records and the sink they are appended to
- stream: Seekable frame sources (soundfile, in-memory)
- dsp: Decibel conversion, peak scan, magnitude spectrum
- analysis: Frame-wise trim/mono/dominant-frequency pass
- bandwidth: Percentile bandwidth and sample-rate ladder
- gain: Peak window gain
- decision: Validation and the analyze() entry point
- export: Rendering accepted decisions to Ogg Vorbis
- orchestrator: Multiprocessing batch processor
- reporting: Corrections/errors report and plots
"""

from .config import AnalysisConfig, PipelineConfig, DEFAULT_CONFIG
from .decision import (
    AnalysisRejected,
    AnalysisResult,
    BelowThresholdError,
    CorruptStreamError,
    NormalizationDecision,
    analyze,
    analyze_or_raise,
)
from .diagnostics import Diagnostic, DiagnosticKind, DiagnosticsSink
from .stream import ArraySource, SoundFileSource, StreamDescriptor, open_source

__version__ = "1.0.0"

__all__ = [
    "AnalysisConfig",
    "PipelineConfig",
    "DEFAULT_CONFIG",
    "AnalysisRejected",
    "AnalysisResult",
    "BelowThresholdError",
    "CorruptStreamError",
    "NormalizationDecision",
    "analyze",
    "analyze_or_raise",
    "Diagnostic",
    "DiagnosticKind",
    "DiagnosticsSink",
    "ArraySource",
    "SoundFileSource",
    "StreamDescriptor",
    "open_source",
]
