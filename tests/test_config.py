"""Tests for netmeter.config and netmeter.history -- local persistence."""

import json
import os
import tempfile
import unittest
from unittest import mock

from netmeter.config import DEFAULTS, load_config, save_config
from netmeter.errors import ConfigurationError
from netmeter.history import clear_history, load_history, save_result


class TestConfigDefaults(unittest.TestCase):
    def test_defaults_have_required_keys(self):
        for key in ("base_url", "endpoint", "ping_count", "download_duration",
                    "upload_duration", "pretest_duration", "connections", "submit",
                    "csv_file", "log_level"):
            self.assertIn(key, DEFAULTS)


class TestLoadSaveConfig(unittest.TestCase):
    def setUp(self):
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.path = os.path.join(tmpdir.name, "nested", "config.json")
        patcher = mock.patch("netmeter.config._config_path", return_value=self.path)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_defaults_when_missing(self):
        cfg = load_config()
        self.assertEqual(cfg, DEFAULTS)
        self.assertIsNot(cfg, DEFAULTS)

    def test_save_and_load(self):
        save_config({"ping_count": 50, "base_url": "http://speed.example"})
        cfg = load_config()
        self.assertEqual(cfg["ping_count"], 50)
        self.assertEqual(cfg["base_url"], "http://speed.example")
        self.assertEqual(cfg["download_duration"], DEFAULTS["download_duration"])

    def test_unknown_keys_ignored(self):
        save_config({"plan": 200, "connections": 6})
        cfg = load_config()
        self.assertNotIn("plan", cfg)
        self.assertEqual(cfg["connections"], 6)

    def test_corrupt_file_falls_back(self):
        os.makedirs(os.path.dirname(self.path))
        with open(self.path, "w") as fh:
            fh.write("{not json")
        with self.assertLogs("netmeter.config", "WARNING"):
            cfg = load_config()
        self.assertEqual(cfg, DEFAULTS)


class TestHistory(unittest.TestCase):
    def setUp(self):
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.path = os.path.join(tmpdir.name, "sub", "history.jsonl")
        patcher = mock.patch("netmeter.history._history_path", return_value=self.path)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_empty(self):
        self.assertEqual(load_history(), [])

    def test_save_assigns_id_and_timestamp(self):
        record = {"endpoint_id": "fra", "download_mbps": 100.0}
        stored = save_result(record)
        self.assertTrue(stored["id"].startswith("test-"))
        self.assertIn("timestamp", stored)
        self.assertNotIn("id", record)

    def test_existing_timestamp_preserved(self):
        save_result({"timestamp": "2024-01-01T00:00:00+00:00"})
        self.assertEqual(load_history()[0]["timestamp"], "2024-01-01T00:00:00+00:00")

    def test_newest_first_and_limit(self):
        for i in range(5):
            save_result({"endpoint_id": f"e{i}"})
        entries = load_history(limit=3)
        self.assertEqual([e["endpoint_id"] for e in entries], ["e4", "e3", "e2"])

    def test_corrupt_lines_skipped(self):
        save_result({"endpoint_id": "ok"})
        with open(self.path, "a") as fh:
            fh.write("garbage\n\n")
            fh.write(json.dumps([1, 2]) + "\n")
        self.assertEqual([e["endpoint_id"] for e in load_history()], ["ok"])

    def test_limit_validated(self):
        for limit in (0, 101):
            with self.assertRaises(ConfigurationError):
                load_history(limit=limit)

    def test_clear(self):
        save_result({"endpoint_id": "x"})
        clear_history()
        self.assertEqual(load_history(), [])
        clear_history()


if __name__ == "__main__":
    unittest.main()
