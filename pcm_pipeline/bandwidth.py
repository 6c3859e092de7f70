"""
Bandwidth Estimation
====================

Reduces the per-frame dominant frequencies to one representative
bandwidth and maps it onto the output sample-rate ladder.
"""

import bisect
import logging
from typing import Sequence

from .config import AnalysisConfig, DEFAULT_CONFIG

logger = logging.getLogger(__name__)


def representative_frequency(frequencies: Sequence[float],
                             percentile: float = DEFAULT_CONFIG.analysis.PERCENTILE) -> float:
    """
    Percentile of the per-frame dominant frequencies.

    The values are sorted ascending and the one at ``floor(count * percentile)``
    is taken. With few frames this can be the maximum itself (one value
    returns that value). An empty list gives 0.
    """
    if not frequencies:
        return 0.0

    ordered = sorted(frequencies)
    index = min(int(len(ordered) * percentile), len(ordered) - 1)
    return float(ordered[index])


def select_sample_rate(max_frequency: float, config: AnalysisConfig = None) -> int:
    """
    Smallest ladder rate that holds ``max_frequency`` with margin.

    target = max_frequency * 2 * FREQ_MARGIN; rates above the top of the
    ladder are clamped to the ladder maximum.
    """
    config = config or DEFAULT_CONFIG.analysis
    ladder = config.SAMPLE_RATES

    target = max_frequency * 2.0 * config.FREQ_MARGIN
    position = bisect.bisect_left(ladder, target)
    if position == len(ladder):
        logger.debug(f"Target rate {target:.1f}Hz above ladder, clamping to {ladder[-1]}Hz")
        return ladder[-1]
    return ladder[position]
