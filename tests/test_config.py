from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from prize_wheel.config import EngineConfigError, load_config


class LoadConfigTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name)
        self.path = self.root / "config.yaml"

    def _write(self, text: str) -> None:
        self.path.write_text(text, encoding="utf-8")

    def test_defaults_from_empty_file(self) -> None:
        self._write("")
        config = load_config(self.path)
        self.assertEqual(config.data_dir, (self.root / "data").resolve())
        self.assertEqual(config.mode, 3)
        self.assertEqual(config.pacing.min_prob, 0.10)
        self.assertEqual(config.pacing.max_prob, 0.90)
        self.assertEqual(config.streaks.max_real, 0)
        self.assertEqual(config.shares.small, 0.8)

    def test_full_file(self) -> None:
        self._write(
            "data_dir: /srv/wheel\n"
            "mode: 2\n"
            "dry_run: true\n"
            "mode_poll_interval: 0\n"
            "pacing:\n"
            "  min_prob: 0.2\n"
            "  max_prob: 0.7\n"
            "  expected_spins_per_day: 300\n"
            "  progress_source: spins\n"
            "  curve: [[0, 0], [0.5, 0.7], [1, 1]]\n"
            "schedule: {day_start_hour: 10, day_end_hour: 22}\n"
            "streaks: {max_real: 3, max_filler: 4}\n"
            "category_shares: {small: 0.6, medium: 0.3, large: 0.1}\n"
        )
        config = load_config(self.path)
        self.assertEqual(config.data_dir, Path("/srv/wheel"))
        self.assertEqual(config.mode, 2)
        self.assertTrue(config.dry_run)
        self.assertEqual(config.pacing.expected_spins_per_day, 300)
        self.assertEqual(config.pacing.progress_source, "spins")
        self.assertAlmostEqual(config.pacing.curve.evaluate(0.5), 0.7)
        self.assertEqual(config.pacing.day_end_hour, 22.0)
        self.assertEqual((config.streaks.max_real, config.streaks.max_filler), (3, 4))
        self.assertEqual(config.shares.medium, 0.3)

    def test_missing_file_raises(self) -> None:
        with self.assertRaises(EngineConfigError):
            load_config(self.root / "absent.yaml")

    def test_invalid_values_raise(self) -> None:
        bad_documents = [
            "mode: 5\n",
            "mode: lots\n",
            "pacing: {min_prob: 0.9, max_prob: 0.1}\n",
            "pacing: {progress_source: moon}\n",
            "pacing: {curve: [[0, 0, 0]]}\n",
            "streaks: {max_real: -1}\n",
            "schedule: {day_start_hour: 30}\n",
            "category_shares: {small: -0.5}\n",
            "pacing: [1, 2]\n",
            "- just a list\n",
        ]
        for document in bad_documents:
            with self.subTest(document=document):
                self._write(document)
                with self.assertRaises(EngineConfigError):
                    load_config(self.path)


if __name__ == "__main__":
    unittest.main()
