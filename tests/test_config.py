"""
tests/test_config.py
====================
Policy defaults, validation, overrides and config snapshots.
"""

import os
import shutil
import sys
import tempfile
import unittest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from pcm_pipeline.config import AnalysisConfig, DEFAULT_CONFIG, PipelineConfig


class TestAnalysisConfig(unittest.TestCase):

    def test_defaults(self):
        config = AnalysisConfig()
        self.assertEqual(config.MINIMUM_DB, -50.0)
        self.assertEqual(config.LIMIT_DB, -6.0)
        self.assertEqual(config.CONTRAST_DB, 15.0)
        self.assertEqual(config.EPSILON, 1e-9)
        self.assertEqual(config.FREQ_MARGIN, 1.15)
        self.assertEqual(config.FRAME_SIZE, 1024)
        self.assertEqual(config.SAMPLE_RATES, (8000, 11025, 16000, 24000, 32000, 44100))

    def test_invalid_values(self):
        bad = [
            {"SAMPLE_RATES": ()},
            {"SAMPLE_RATES": (16000, 8000)},
            {"SAMPLE_RATES": (8000, 8000)},
            {"FRAME_SIZE": 0},
            {"FRAME_SIZE": 1023},
            {"FREQ_MARGIN": 0.0},
            {"EPSILON": 0.0},
            {"LIMIT_DB": -60.0},
            {"PERCENTILE": 1.0},
        ]
        for overrides in bad:
            with self.subTest(overrides=overrides):
                with self.assertRaises(ValueError):
                    AnalysisConfig(**overrides)

    def test_with_overrides(self):
        base = AnalysisConfig()
        config = base.with_overrides(LIMIT_DB=-3.0, MINIMUM_DB=None, SAMPLE_RATES=[22050, 48000])

        self.assertEqual(config.LIMIT_DB, -3.0)
        self.assertEqual(config.MINIMUM_DB, base.MINIMUM_DB)
        self.assertEqual(config.SAMPLE_RATES, (22050, 48000))
        self.assertEqual(base.LIMIT_DB, -6.0)

    def test_overrides_are_validated(self):
        with self.assertRaises(ValueError):
            AnalysisConfig().with_overrides(LIMIT_DB=-80.0)


class TestPipelineConfig(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_hash_is_deterministic(self):
        self.assertEqual(PipelineConfig().config_hash, DEFAULT_CONFIG.config_hash)
        self.assertEqual(len(DEFAULT_CONFIG.config_hash), 16)

    def test_hash_follows_policy(self):
        config = PipelineConfig()
        before = config.config_hash
        config.analysis = config.analysis.with_overrides(CONTRAST_DB=20.0)
        config.refresh_hash()
        self.assertNotEqual(config.config_hash, before)

    def test_runtime_settings_do_not_change_hash(self):
        config = PipelineConfig(n_workers=1, write=True)
        self.assertEqual(config.config_hash, DEFAULT_CONFIG.config_hash)

    def test_save_and_load(self):
        config = PipelineConfig(n_workers=2, write=True)
        config.analysis = config.analysis.with_overrides(FREQ_MARGIN=1.3)
        config.refresh_hash()

        path = os.path.join(self.tmpdir, "config.json")
        config.save(path)
        loaded = PipelineConfig.load(path)

        self.assertEqual(loaded.analysis, config.analysis)
        self.assertEqual(loaded.folders, config.folders)
        self.assertEqual(loaded.export, config.export)
        self.assertEqual(loaded.n_workers, 2)
        self.assertTrue(loaded.write)
        self.assertEqual(loaded.config_hash, config.config_hash)

    def test_to_dict_sections(self):
        data = DEFAULT_CONFIG.to_dict()
        self.assertEqual(set(data), {"analysis", "folders", "export", "runtime", "meta"})
        self.assertEqual(data["meta"]["config_hash"], DEFAULT_CONFIG.config_hash)


if __name__ == "__main__":
    unittest.main()
