"""
Signal Helpers
==============

Decibel conversion, the global peak scan and the per-frame magnitude
spectrum shared by the analysis passes.
"""

import logging
from functools import lru_cache
from typing import Union

import numpy as np
from scipy import fft as sp_fft
from scipy.signal import get_window

from .config import AnalysisConfig, DEFAULT_CONFIG
from .stream import FrameSource

logger = logging.getLogger(__name__)

ArrayLike = Union[float, np.ndarray]


def mag_to_db(magnitude: ArrayLike, epsilon: float = DEFAULT_CONFIG.analysis.EPSILON) -> ArrayLike:
    """
    Linear magnitude to decibels.

    ``20 * log10(magnitude + epsilon)``; the epsilon floor keeps the result
    finite for a true-zero magnitude (-180 dB with the default epsilon).
    Accepts scalars and numpy arrays.
    """
    if np.isscalar(magnitude):
        return float(20.0 * np.log10(float(magnitude) + epsilon))
    return 20.0 * np.log10(np.asarray(magnitude, dtype=np.float64) + epsilon)


def scan_peak(source: FrameSource, config: AnalysisConfig = None) -> float:
    """
    First pass: absolute sample peak of the whole stream, in dB.

    Reads every block from frame 0 across all channels, then rewinds the
    source so the analysis pass starts from the beginning again.

    Returns:
        mag_to_db(peak sample)
    """
    config = config or DEFAULT_CONFIG.analysis

    source.seek(0)
    peak = 0.0
    for block in source.blocks(config.FRAME_SIZE):
        block_peak = float(np.max(np.abs(block)))
        if block_peak > peak:
            peak = block_peak
    source.seek(0)

    peak_db = mag_to_db(peak, config.EPSILON)
    logger.debug(f"Peak scan: {peak:.6f} ({peak_db:.2f} dB)")
    return peak_db


@lru_cache(maxsize=8)
def _hann(frame_size: int) -> np.ndarray:
    return get_window("hann", frame_size, fftbins=False)


def magnitude_spectrum(frame: np.ndarray, frame_size: int) -> np.ndarray:
    """
    Magnitude spectrum of one mono analysis frame.

    The frame is zero-padded to ``frame_size``, Hann-windowed and
    transformed; bins ``0 .. frame_size/2 - 1`` are returned, bin ``i``
    standing for ``i * sample_rate / frame_size`` Hz. Magnitudes are
    unnormalised (a full-scale sine peaks around frame_size / 4).
    """
    padded = np.zeros(frame_size, dtype=np.float64)
    n = min(len(frame), frame_size)
    padded[:n] = frame[:n]

    spectrum = sp_fft.rfft(padded * _hann(frame_size))
    return np.abs(spectrum[: frame_size // 2])


def bin_frequency(index: int, sample_rate: float, frame_size: int) -> float:
    """Centre frequency (Hz) of spectrum bin ``index``."""
    return float(index) * (float(sample_rate) / float(frame_size))
