"""
Frame Analysis Module
=====================

Second pass over the stream, one FRAME_SIZE block at a time:

1. Downmix to mono for analysis and track whether both channels are equal
2. Classify the block as silent/active against the silence floor
3. Extract the block's dominant frequency from its magnitude spectrum

Produces trim boundaries, the mono-collapse flag and the per-frame
dominant frequencies for the bandwidth estimate.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from .config import AnalysisConfig, DEFAULT_CONFIG
from .dsp import bin_frequency, mag_to_db, magnitude_spectrum
from .stream import FrameSource

logger = logging.getLogger(__name__)


@dataclass
class AnalysisState:
    """State accumulated across the analysis pass"""
    first_active_frame: Optional[int] = None
    last_active_frame_end: int = 0
    current_frame_offset: int = 0
    mono_collapsible: bool = True
    dominant_frequencies: List[float] = field(default_factory=list)

    @property
    def found_activity(self) -> bool:
        return self.first_active_frame is not None


class FrameAnalyzer:
    """
    Frame-wise analysis against a global peak reference.

    Usage:
        peak_db = scan_peak(source)
        state = FrameAnalyzer(config).analyze(source, peak_db)
    """

    def __init__(self, config: AnalysisConfig = None):
        self.config = config or DEFAULT_CONFIG.analysis

    def downmix(self, block: np.ndarray, state: AnalysisState) -> np.ndarray:
        """
        Mono analysis signal for one block.

        Stereo input is averaged; any left/right pair differing by more than
        EPSILON clears ``mono_collapsible`` for good. Channels beyond the
        second are ignored.
        """
        if block.ndim == 1:
            return block
        if block.shape[1] < 2:
            return block[:, 0]

        left = block[:, 0]
        right = block[:, 1]
        if state.mono_collapsible and np.any(np.abs(left - right) > self.config.EPSILON):
            state.mono_collapsible = False
            logger.debug(f"Channels differ at block offset {state.current_frame_offset}")

        return (left + right) / 2.0

    def classify(self, analysis: np.ndarray, state: AnalysisState) -> bool:
        """
        Move the trim markers if the block is above the silence floor.

        Silent blocks never move the markers, so silence inside the active
        region is kept and only leading/trailing silence is trimmed.
        """
        peak = float(np.max(np.abs(analysis))) if len(analysis) else 0.0
        frame_db = mag_to_db(peak, self.config.EPSILON)

        if frame_db <= self.config.MINIMUM_DB:
            return False

        if state.first_active_frame is None:
            state.first_active_frame = state.current_frame_offset
        state.last_active_frame_end = state.current_frame_offset + len(analysis)
        return True

    def dominant_frequency(self, analysis: np.ndarray, peak_db: float,
                           sample_rate: float) -> float:
        """
        Highest-frequency bin within the contrast window of the global peak.

        Bins are scanned from the top of the spectrum down; the first bin
        above the silence floor and less than CONTRAST_DB below ``peak_db``
        wins. This estimates the upper edge of the content, not the loudest
        tone. Returns 0.0 when no bin qualifies.
        """
        mags_db = mag_to_db(
            magnitude_spectrum(analysis, self.config.FRAME_SIZE),
            self.config.EPSILON,
        )
        relevant = (mags_db > self.config.MINIMUM_DB) & (
            (peak_db - mags_db) < self.config.CONTRAST_DB
        )

        indices = np.flatnonzero(relevant)
        if len(indices) == 0:
            return 0.0
        return bin_frequency(int(indices[-1]), sample_rate, self.config.FRAME_SIZE)

    def process_block(self, block: np.ndarray, peak_db: float,
                      sample_rate: float, state: AnalysisState):
        """Run all per-block steps and advance the frame offset."""
        analysis = self.downmix(block, state)
        self.classify(analysis, state)

        frequency = self.dominant_frequency(analysis, peak_db, sample_rate)
        if frequency > 0:
            state.dominant_frequencies.append(frequency)

        state.current_frame_offset += len(analysis)

    def analyze(self, source: FrameSource, peak_db: float) -> AnalysisState:
        """
        Full analysis pass from frame 0.

        Args:
            source: Rewindable frame source
            peak_db: Global peak from the peak scan

        Returns:
            AnalysisState for the whole stream
        """
        state = AnalysisState()
        sample_rate = source.descriptor.sample_rate

        source.seek(0)
        for block in source.blocks(self.config.FRAME_SIZE):
            self.process_block(block, peak_db, sample_rate, state)

        logger.debug(
            f"Analysis pass: {state.current_frame_offset} frames, "
            f"active [{state.first_active_frame}, {state.last_active_frame_end}), "
            f"{len(state.dominant_frequencies)} frequency samples, "
            f"mono={state.mono_collapsible}"
        )
        return state
