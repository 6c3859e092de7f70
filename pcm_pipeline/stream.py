"""
Frame Sources
=============

Seekable sources of float32 PCM frames.

Both analysis passes read the same source from frame 0, so every source
must be rewindable:

- SoundFileSource: decoded through libsndfile (soundfile), read lazily
- ArraySource: an in-memory numpy buffer (synthetic streams, or files
  decoded up front by librosa when libsndfile cannot open them)
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

import numpy as np
import soundfile as sf

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamDescriptor:
    """Immutable stream properties supplied by the decoder"""
    sample_rate: float
    channels: int
    frames: Optional[int] = None

    @property
    def duration(self) -> Optional[float]:
        if self.frames is None or self.sample_rate <= 0:
            return None
        return self.frames / self.sample_rate


class FrameSource:
    """
    Base class for rewindable PCM sources.

    Blocks are float32 arrays shaped (frames, channels).
    """

    descriptor: StreamDescriptor

    def seek(self, frame: int):
        raise NotImplementedError

    def read(self, frames: int) -> np.ndarray:
        raise NotImplementedError

    def blocks(self, block_size: int) -> Iterator[np.ndarray]:
        """Yield consecutive blocks from the current position to the end."""
        while True:
            block = self.read(block_size)
            if len(block) == 0:
                return
            yield block

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *_):
        self.close()


class ArraySource(FrameSource):
    """In-memory source over a (frames,) or (frames, channels) array."""

    def __init__(self, samples: np.ndarray, sample_rate: float):
        samples = np.asarray(samples, dtype=np.float32)
        if samples.ndim == 1:
            samples = samples[:, np.newaxis]
        if samples.ndim != 2:
            raise ValueError(f"Expected 1-D or 2-D samples, got shape {samples.shape}")

        self._samples = samples
        self._position = 0
        self.descriptor = StreamDescriptor(
            sample_rate=sample_rate,
            channels=samples.shape[1],
            frames=samples.shape[0],
        )

    @property
    def samples(self) -> np.ndarray:
        return self._samples

    def seek(self, frame: int):
        self._position = max(0, min(int(frame), len(self._samples)))

    def read(self, frames: int) -> np.ndarray:
        start = self._position
        end = min(start + frames, len(self._samples))
        self._position = end
        return self._samples[start:end]


class SoundFileSource(FrameSource):
    """Lazy source backed by ``soundfile.SoundFile``."""

    def __init__(self, filepath: str):
        self.filepath = str(filepath)
        self._file = sf.SoundFile(self.filepath, mode="r")
        self.descriptor = StreamDescriptor(
            sample_rate=float(self._file.samplerate),
            channels=self._file.channels,
            frames=self._file.frames,
        )
        logger.debug(
            f"Opened {self.filepath}: {self._file.frames} frames @ "
            f"{self._file.samplerate}Hz x{self._file.channels}"
        )

    def seek(self, frame: int):
        self._file.seek(int(frame))

    def read(self, frames: int) -> np.ndarray:
        return self._file.read(frames, dtype="float32", always_2d=True)

    def close(self):
        self._file.close()


def load_with_librosa(filepath: str) -> ArraySource:
    """
    Decode a whole file with librosa (audioread/ffmpeg backends).

    Used for containers libsndfile cannot open (m4a, aac, wma, ...).
    The native sample rate and channel layout are kept.
    """
    import librosa

    audio, sr = librosa.load(filepath, sr=None, mono=False)
    if audio.ndim > 1:
        audio = audio.T
    logger.debug(f"Decoded {filepath} with librosa: {audio.shape} @ {sr}Hz")
    return ArraySource(audio, float(sr))


def open_source(filepath: str) -> FrameSource:
    """
    Open an audio file for analysis.

    Tries libsndfile first and falls back to librosa for other containers.
    Raises the decoder's error if neither can read the file.
    """
    try:
        return SoundFileSource(filepath)
    except sf.LibsndfileError as e:
        logger.debug(f"soundfile cannot open {Path(filepath).name} ({e}), trying librosa")
        return load_with_librosa(filepath)
