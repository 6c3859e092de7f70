"""
Gain Normalization
==================

Brings the global peak into the [MINIMUM_DB, LIMIT_DB) window with a
single linear gain factor.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import AnalysisConfig, DEFAULT_CONFIG

logger = logging.getLogger(__name__)

SATURATED = "saturated"
LOW_VOLUME = "low_volume"
NO_ADJUSTMENT = "none"


@dataclass(frozen=True)
class GainDecision:
    """Gain chosen for a stream and the peak it results in"""
    gain: float
    peak_db: float
    effective_peak_db: float
    adjustment: str = NO_ADJUSTMENT

    @property
    def adjusted(self) -> bool:
        return self.adjustment != NO_ADJUSTMENT

    def describe(self, config: AnalysisConfig = None) -> Optional[str]:
        """Warning text for an adjusted gain, None otherwise."""
        config = config or DEFAULT_CONFIG.analysis
        if self.adjustment == SATURATED:
            return f"Saturated volume adjusted {self.peak_db:.2f} dB > {config.LIMIT_DB:.2f} dB"
        if self.adjustment == LOW_VOLUME:
            return f"Low volume adjusted {self.peak_db:.2f} dB < {config.MINIMUM_DB:.2f} dB"
        return None


def compute_gain(peak_db: float, config: AnalysisConfig = None) -> GainDecision:
    """
    Linear gain for a global peak.

    - peak_db >= LIMIT_DB: attenuate to exactly LIMIT_DB ("saturated")
    - peak_db < MINIMUM_DB: amplify to exactly MINIMUM_DB ("low_volume")
    - otherwise: unity gain
    """
    config = config or DEFAULT_CONFIG.analysis

    if peak_db >= config.LIMIT_DB:
        gain = 10.0 ** ((config.LIMIT_DB - peak_db) / 20.0)
        logger.debug(f"Peak {peak_db:.2f} dB saturated, gain {gain:.4f}")
        return GainDecision(gain, peak_db, config.LIMIT_DB, SATURATED)

    if peak_db < config.MINIMUM_DB:
        gain = 10.0 ** ((config.MINIMUM_DB - peak_db) / 20.0)
        logger.debug(f"Peak {peak_db:.2f} dB below floor, gain {gain:.4f}")
        return GainDecision(gain, peak_db, config.MINIMUM_DB, LOW_VOLUME)

    return GainDecision(1.0, peak_db, peak_db, NO_ADJUSTMENT)
