"""
tests/test_export.py
====================
Rendering accepted decisions: trim, mono, resample, gain, WAV/Ogg output.

The ffmpeg transcode is mocked; everything up to the temporary WAV runs for real.
"""

import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import numpy as np
import soundfile as sf
from librosa.util.exceptions import ParameterError
from pydub.exceptions import CouldntDecodeError

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from pcm_pipeline.decision import NormalizationDecision
from pcm_pipeline.diagnostics import DiagnosticsSink
from pcm_pipeline.export import AudioExporter, ExportError, export_decision
from pcm_pipeline.stream import ArraySource
from tests.signals import stereo, tone_frames


def make_decision(**overrides):
    values = dict(
        selected_sample_rate=8000,
        mono_output=True,
        gain=0.5,
        trim_start=1024,
        trim_end=5120,
        source_sample_rate=16000,
    )
    values.update(overrides)
    return NormalizationDecision(**values)


class TestRender(unittest.TestCase):

    def setUp(self):
        self.samples = stereo(tone_frames(500, 8192, 16000, amplitude=0.5))
        self.source = ArraySource(self.samples, 16000)
        self.exporter = AudioExporter()

    def test_read_segment(self):
        segment = self.exporter.read_segment(self.source, 1024, 5120)
        np.testing.assert_array_equal(segment, self.samples[1024:5120])

    def test_read_segment_past_end(self):
        segment = self.exporter.read_segment(self.source, 8000, 9000)
        self.assertEqual(segment.shape, (192, 2))

    def test_mono_resampled_and_scaled(self):
        audio = self.exporter.render(self.source, make_decision())

        self.assertEqual(audio.ndim, 1)
        self.assertEqual(audio.dtype, np.float32)
        self.assertEqual(len(audio), 2048)
        self.assertAlmostEqual(float(np.max(np.abs(audio))), 0.25, delta=0.02)

    def test_stereo_at_native_rate(self):
        decision = make_decision(mono_output=False, selected_sample_rate=16000, gain=1.0)
        audio = self.exporter.render(self.source, decision)

        self.assertEqual(audio.shape, (4096, 2))
        np.testing.assert_allclose(audio, self.samples[1024:5120])


class TestExport(unittest.TestCase):

    def setUp(self):
        self.tmpdir = Path(tempfile.mkdtemp())
        self.source = ArraySource(tone_frames(500, 8192, 16000), 16000)
        self.ogg_path = self.tmpdir / "album" / "track.ogg"

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_intermediate_wav(self):
        exporter = AudioExporter()
        with patch.object(AudioExporter, "transcode_ogg") as mock_transcode:
            path = exporter.export(self.source, make_decision(), str(self.ogg_path), keep_wav=True)

        wav_path = self.ogg_path.with_suffix(".wav")
        info = sf.info(str(wav_path))
        self.assertEqual(path, str(self.ogg_path))
        self.assertEqual(info.samplerate, 8000)
        self.assertEqual(info.channels, 1)
        self.assertEqual(info.frames, 2048)
        self.assertEqual(info.subtype, "PCM_16")
        mock_transcode.assert_called_once_with(str(wav_path), str(self.ogg_path), True)

    def test_wav_removed_after_transcode(self):
        with patch.object(AudioExporter, "transcode_ogg"):
            AudioExporter().export(self.source, make_decision(), str(self.ogg_path))
        self.assertFalse(self.ogg_path.with_suffix(".wav").exists())

    def test_wav_removed_after_failed_transcode(self):
        with patch.object(AudioExporter, "transcode_ogg",
                          side_effect=ExportError("ffmpeg transcode failed: boom")):
            with self.assertRaises(ExportError):
                AudioExporter().export(self.source, make_decision(), str(self.ogg_path))
        self.assertFalse(self.ogg_path.with_suffix(".wav").exists())

    def test_render_error_becomes_export_error(self):
        with patch.object(AudioExporter, "render",
                          side_effect=ParameterError("bad resample ratio")):
            with self.assertRaises(ExportError) as ctx:
                AudioExporter().export(self.source, make_decision(), str(self.ogg_path))
        self.assertTrue(str(ctx.exception).startswith("Export failed"))

    def test_undecodable_wav_becomes_export_error(self):
        with patch("pcm_pipeline.export.AudioSegment") as mock_segment:
            mock_segment.from_wav.side_effect = CouldntDecodeError("bad wav header")
            with self.assertRaises(ExportError) as ctx:
                AudioExporter().transcode_ogg("in.wav", "out.ogg", mono=True)
        self.assertIn("ffmpeg transcode failed", str(ctx.exception))

    def test_transcode_parameters(self):
        exporter = AudioExporter()
        with patch("pcm_pipeline.export.AudioSegment") as mock_segment:
            exporter.transcode_ogg("in.wav", "out.ogg", mono=True)

        export_call = mock_segment.from_wav.return_value.export
        export_call.assert_called_once_with(
            "out.ogg", format="ogg", codec="libvorbis", parameters=["-q:a", "5", "-ac", "1"],
        )

    def test_transcode_failure_raises(self):
        with patch("pcm_pipeline.export.AudioSegment") as mock_segment:
            mock_segment.from_wav.side_effect = OSError("ffmpeg not found")
            with self.assertRaises(ExportError) as ctx:
                AudioExporter().transcode_ogg("in.wav", "out.ogg", mono=False)
        self.assertIn("ffmpeg transcode failed", str(ctx.exception))

    def test_export_decision_reports_failure(self):
        sink = DiagnosticsSink()
        with patch.object(AudioExporter, "transcode_ogg",
                          side_effect=ExportError("ffmpeg transcode failed: boom")):
            path = export_decision(self.source, make_decision(), str(self.ogg_path),
                                   "track.flac", sink)

        self.assertIsNone(path)
        self.assertEqual(len(sink.errors), 1)
        self.assertEqual(sink.errors[0].file, "track.flac")
        self.assertEqual(sink.errors[0].message, "ffmpeg transcode failed: boom")


if __name__ == "__main__":
    unittest.main()
