"""
Pipeline Configuration Module
=============================

Analysis policy knobs and pipeline settings.

The decibel thresholds, the frequency margin and the sample-rate ladder are
policy, not algorithm: they live here with their documented defaults and can
be overridden per run (``AnalysisConfig.with_overrides``).
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Tuple
import hashlib
import json


# ============================================================================
# ANALYSIS POLICY
# ============================================================================

@dataclass(frozen=True)
class AnalysisConfig:
    """
    Frozen analysis configuration.

    All values are in dBFS (relative to a full-scale float sample of 1.0)
    unless stated otherwise.
    """
    # Silence floor: frames at or below this level are silent
    MINIMUM_DB: float = -50.0

    # Ceiling: peaks at or above this level are attenuated down to it
    LIMIT_DB: float = -6.0

    # Spectral bins within this margin below the global peak are relevant
    CONTRAST_DB: float = 15.0

    # Added before every logarithm
    EPSILON: float = 1e-9

    # Safety margin over the Nyquist minimum (2 x bandwidth)
    FREQ_MARGIN: float = 1.15

    # Analysis block length in PCM frames
    FRAME_SIZE: int = 1024

    # Percentile of per-frame dominant frequencies used as bandwidth
    PERCENTILE: float = 0.95

    # Bandwidth or sample rate below this (Hz) marks the file as corrupt
    MIN_VALID_HZ: float = 10.0

    # Supported output sample rates, ascending
    SAMPLE_RATES: Tuple[int, ...] = (8000, 11025, 16000, 24000, 32000, 44100)

    # Version tracking
    CONFIG_VERSION: str = "1.0.0"

    def __post_init__(self):
        if not self.SAMPLE_RATES:
            raise ValueError("SAMPLE_RATES must not be empty")
        if list(self.SAMPLE_RATES) != sorted(set(self.SAMPLE_RATES)):
            raise ValueError("SAMPLE_RATES must be strictly ascending")
        if self.FRAME_SIZE <= 0 or self.FRAME_SIZE % 2:
            raise ValueError("FRAME_SIZE must be a positive even number")
        if self.FREQ_MARGIN <= 0:
            raise ValueError("FREQ_MARGIN must be positive")
        if self.EPSILON <= 0:
            raise ValueError("EPSILON must be positive")
        if self.LIMIT_DB <= self.MINIMUM_DB:
            raise ValueError("LIMIT_DB must be above MINIMUM_DB")
        if not 0.0 <= self.PERCENTILE < 1.0:
            raise ValueError("PERCENTILE must be in [0, 1)")

    def with_overrides(self, **overrides) -> "AnalysisConfig":
        """Return a copy with some policy values replaced (None values are ignored)."""
        overrides = {k: v for k, v in overrides.items() if v is not None}
        if "SAMPLE_RATES" in overrides:
            overrides["SAMPLE_RATES"] = tuple(int(r) for r in overrides["SAMPLE_RATES"])
        return replace(self, **overrides)


@dataclass(frozen=True)
class FolderConfig:
    """
    Folder and file conventions.

    Expected structure:
    in/                  # scanned recursively
    ├── album/
    │   └── track.flac
    └── jingle.wav
    out/                 # mirrors in/, one .ogg per accepted file
    ├── album/
    │   └── track.ogg
    ├── reports/
    └── logs/
    """
    AUDIO_EXTENSIONS: Tuple[str, ...] = (
        ".mp3", ".wav", ".ogg", ".aif", ".aiff",
        ".flac", ".m4a", ".aac", ".wma", ".opus",
    )

    INPUT_DIR: str = "in"
    OUTPUT_DIR: str = "out"
    REPORTS_DIR: str = "reports"
    LOGS_DIR: str = "logs"


@dataclass(frozen=True)
class ExportConfig:
    """Settings for rendering an accepted decision to disk."""
    # Frames read per block while exporting
    BUFFER_FRAMES: int = 4096

    # Final transcode (ffmpeg via pydub)
    OGG_CODEC: str = "libvorbis"
    OGG_QUALITY: int = 5

    # librosa.resample backend
    RESAMPLE_TYPE: str = "soxr_hq"


@dataclass
class PipelineConfig:
    """
    Main pipeline configuration.

    Combines the frozen configs with runtime settings.
    """
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    folders: FolderConfig = field(default_factory=FolderConfig)
    export: ExportConfig = field(default_factory=ExportConfig)

    # Runtime settings (can be modified)
    n_workers: int = 4                    # Parallel workers (1 = in-process)
    write: bool = False                   # Export accepted files
    verbose: bool = False                 # Debug logging
    plot: bool = False                    # Save rate distribution plot

    def __post_init__(self):
        """Generate config hash for version tracking"""
        self._config_hash = self._compute_hash()
        self._created_at = datetime.now().isoformat()

    def _frozen_dict(self) -> Dict:
        return {
            "analysis": dict(self.analysis.__dict__),
            "folders": dict(self.folders.__dict__),
            "export": dict(self.export.__dict__),
        }

    def _compute_hash(self) -> str:
        """Compute deterministic hash of frozen parameters"""
        config_str = json.dumps(self._frozen_dict(), sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @property
    def config_hash(self) -> str:
        return self._config_hash

    def refresh_hash(self):
        """Recompute the hash after swapping one of the frozen configs."""
        self._config_hash = self._compute_hash()

    def to_dict(self) -> Dict:
        """Export configuration as dictionary"""
        data = self._frozen_dict()
        data["runtime"] = {
            "n_workers": self.n_workers,
            "write": self.write,
            "verbose": self.verbose,
            "plot": self.plot,
        }
        data["meta"] = {
            "config_hash": self._config_hash,
            "created_at": self._created_at,
            "version": self.analysis.CONFIG_VERSION,
        }
        return data

    def save(self, path: str):
        """Save configuration to JSON file"""
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: str) -> "PipelineConfig":
        """Load configuration from JSON file"""
        with open(path, "r") as f:
            data = json.load(f)

        analysis = dict(data.get("analysis", {}))
        if "SAMPLE_RATES" in analysis:
            analysis["SAMPLE_RATES"] = tuple(analysis["SAMPLE_RATES"])
        folders = dict(data.get("folders", {}))
        if "AUDIO_EXTENSIONS" in folders:
            folders["AUDIO_EXTENSIONS"] = tuple(folders["AUDIO_EXTENSIONS"])

        config = cls(
            analysis=AnalysisConfig(**analysis),
            folders=FolderConfig(**folders),
            export=ExportConfig(**data.get("export", {})),
        )
        runtime = data.get("runtime", {})
        config.n_workers = runtime.get("n_workers", config.n_workers)
        config.write = runtime.get("write", config.write)
        config.verbose = runtime.get("verbose", config.verbose)
        config.plot = runtime.get("plot", config.plot)

        return config


# ============================================================================
# DEFAULT CONFIGURATION INSTANCE
# ============================================================================

DEFAULT_CONFIG = PipelineConfig()


if __name__ == "__main__":
    # Print configuration for verification
    config = PipelineConfig()
    print(f"Pipeline Configuration v{config.analysis.CONFIG_VERSION}")
    print(f"Config Hash: {config.config_hash}")
    print(f"\nAnalysis Settings:")
    print(f"  Silence floor: {config.analysis.MINIMUM_DB} dB")
    print(f"  Peak limit: {config.analysis.LIMIT_DB} dB")
    print(f"  Contrast window: {config.analysis.CONTRAST_DB} dB")
    print(f"  Rate ladder: {config.analysis.SAMPLE_RATES}")
