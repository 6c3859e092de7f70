"""
Export Module
=============

Renders an accepted NormalizationDecision:

1. Re-read the source between trim_start and trim_end
2. Collapse to mono if decided
3. Resample to the selected rate (librosa)
4. Apply the gain
5. Write a temporary WAV (soundfile) and transcode it to Ogg Vorbis
   through ffmpeg (pydub), removing the WAV afterwards
"""

import logging
from pathlib import Path
from typing import Optional

import numpy as np
import librosa
from librosa.util.exceptions import ParameterError
import soundfile as sf
from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError, CouldntEncodeError

from .config import ExportConfig, DEFAULT_CONFIG
from .decision import NormalizationDecision
from .diagnostics import DiagnosticsSink
from .stream import FrameSource

logger = logging.getLogger(__name__)


class ExportError(Exception):
    """Rendering or transcoding an accepted file failed."""


class AudioExporter:
    """
    Renders decisions to disk.

    Usage:
        exporter = AudioExporter()
        exporter.export(source, decision, "out/album/track.ogg")
    """

    def __init__(self, config: ExportConfig = None):
        self.config = config or DEFAULT_CONFIG.export

    def read_segment(self, source: FrameSource, start: int, end: int) -> np.ndarray:
        """Frames [start, end) as a (frames, channels) float32 array."""
        source.seek(start)
        remaining = max(0, end - start)
        chunks = []
        while remaining > 0:
            block = source.read(min(self.config.BUFFER_FRAMES, remaining))
            if len(block) == 0:
                break
            chunks.append(block)
            remaining -= len(block)

        if not chunks:
            return np.zeros((0, source.descriptor.channels), dtype=np.float32)
        return np.concatenate(chunks, axis=0)

    def render(self, source: FrameSource, decision: NormalizationDecision) -> np.ndarray:
        """
        Apply trim, mono collapse, resampling and gain in memory.

        Returns:
            (frames,) for mono output, (frames, channels) otherwise
        """
        audio = self.read_segment(source, decision.trim_start, decision.trim_end)

        if decision.mono_output:
            audio = audio.mean(axis=1)

        orig_sr = source.descriptor.sample_rate
        if len(audio) and int(orig_sr) != decision.selected_sample_rate:
            audio = librosa.resample(
                audio,
                orig_sr=orig_sr,
                target_sr=decision.selected_sample_rate,
                res_type=self.config.RESAMPLE_TYPE,
                axis=0,
            )
            logger.debug(f"Resampled {orig_sr:g}Hz -> {decision.selected_sample_rate}Hz")

        return (audio * decision.gain).astype(np.float32)

    def write_wav(self, audio: np.ndarray, sample_rate: int, filepath: str):
        """Write rendered audio as 16-bit PCM WAV."""
        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        sf.write(filepath, audio, sample_rate, subtype="PCM_16")
        logger.debug(f"Saved audio to {filepath}")

    def transcode_ogg(self, wav_path: str, ogg_path: str, mono: bool):
        """
        Transcode a WAV to Ogg Vorbis with ffmpeg.

        Raises:
            ExportError: if ffmpeg fails
        """
        parameters = ["-q:a", str(self.config.OGG_QUALITY)]
        if mono:
            parameters += ["-ac", "1"]

        try:
            segment = AudioSegment.from_wav(wav_path)
            segment.export(
                ogg_path,
                format="ogg",
                codec=self.config.OGG_CODEC,
                parameters=parameters,
            )
        except (CouldntDecodeError, CouldntEncodeError, OSError) as e:
            raise ExportError(f"ffmpeg transcode failed: {e}") from e

    def export(self, source: FrameSource, decision: NormalizationDecision,
               ogg_path: str, keep_wav: bool = False) -> str:
        """
        Render ``decision`` to ``ogg_path``.

        The temporary WAV sits next to the Ogg file and is removed afterwards
        (also when the transcode fails), unless ``keep_wav`` is set.

        Returns:
            Path of the written Ogg file

        Raises:
            ExportError
        """
        ogg_path = Path(ogg_path)
        wav_path = ogg_path.with_suffix(".wav")

        try:
            try:
                audio = self.render(source, decision)
                self.write_wav(audio, decision.selected_sample_rate, str(wav_path))
            except (sf.LibsndfileError, ParameterError, OSError, ValueError) as e:
                raise ExportError(f"Export failed: {e}") from e

            self.transcode_ogg(str(wav_path), str(ogg_path), decision.mono_output)
        finally:
            if not keep_wav:
                wav_path.unlink(missing_ok=True)

        logger.info(f"Exported {ogg_path}")
        return str(ogg_path)


def export_decision(source: FrameSource, decision: NormalizationDecision,
                    ogg_path: str, file_id: str, sink: DiagnosticsSink,
                    config: ExportConfig = None) -> Optional[str]:
    """
    Export and report failures as Error diagnostics instead of raising.

    Returns:
        Path of the Ogg file, or None on failure
    """
    try:
        return AudioExporter(config).export(source, decision, ogg_path)
    except ExportError as e:
        logger.error(f"Export failed for {file_id}: {e}")
        sink.error(file_id, str(e))
        return None
