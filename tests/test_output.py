"""Tests for ui.output and the dashboard helpers."""

import csv
import io
import json
import os
import tempfile
import unittest
from unittest import mock

from rich.console import Console

from netmeter.api import Endpoint
from netmeter.engine import SpeedtestReport
from netmeter.grading import analyze_connection, rate_connection
from netmeter.latency import LatencyResult
from netmeter.throughput import ThroughputResult
from ui import dashboard
from ui.output import (
    _csv_escape,
    create_result_json,
    format_csv_header,
    format_csv_row,
    format_text_result,
    history_record,
    save_json,
)


REPORT = {
    "endpoint": {"id": "fra", "name": "Frankfurt"},
    "latency": {"ping": 12.5, "jitter": 1.25, "samples": [12.0, 13.0], "attempts": 2},
    "download": {"direction": "download", "mbps": 250.5},
    "upload": {"direction": "upload", "mbps": 40.25},
    "quality": {"grade": "A", "score": 85},
    "capabilities": {"can_support": ["Web Browsing"], "cannot_support": [], "streams": {"hd": 50, "full_hd": 31, "4k": 10}},
    "ranking": [{"id": "fra", "latency_ms": 12.5}],
}


class TestCreateResultJson(unittest.TestCase):
    def test_headline_fields(self):
        result = create_result_json(REPORT, {"ip": "203.0.113.7"})
        self.assertEqual(result["endpoint_id"], "fra")
        self.assertEqual(result["ping"], 12.5)
        self.assertEqual(result["download_mbps"], 250.5)
        self.assertEqual(result["upload_mbps"], 40.25)
        self.assertEqual(result["quality"]["grade"], "A")
        self.assertEqual(result["capabilities"]["streams"]["4k"], 10)
        self.assertEqual(result["client"]["ip"], "203.0.113.7")
        self.assertIn("timestamp", result)
        json.dumps(result)

    def test_optional_sections_omitted(self):
        result = create_result_json(dict(REPORT, quality=None, capabilities=None, ranking=[]))
        self.assertNotIn("quality", result)
        self.assertNotIn("capabilities", result)
        self.assertNotIn("ranking", result)
        self.assertNotIn("client", result)

    def test_history_record_is_flat(self):
        record = history_record(create_result_json(REPORT))
        self.assertEqual(record["grade"], "A")
        self.assertNotIn("latency", record)
        self.assertEqual(record["upload_mbps"], 40.25)


class TestSaveJson(unittest.TestCase):
    def test_writes_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "out.json")
            save_json({"a": 1}, path)
            with open(path) as fh:
                self.assertEqual(json.load(fh), {"a": 1})
            self.assertEqual(os.listdir(tmpdir), ["out.json"])

    def test_missing_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(OSError):
                save_json({"a": 1}, os.path.join(tmpdir, "nope", "out.json"))


class TestTextAndCsv(unittest.TestCase):
    def test_text_result(self):
        text = format_text_result(12.34, 1.5, 100, 20, "Frankfurt", grade="A")
        self.assertIn("Endpoint: Frankfurt", text)
        self.assertIn("Download: 100.00 Mbps", text)
        self.assertIn("Grade: A", text)

    def test_csv_escape(self):
        self.assertEqual(_csv_escape("plain"), "plain")
        self.assertEqual(_csv_escape("a,b"), '"a,b"')
        self.assertEqual(_csv_escape('say "hi"'), '"say ""hi"""')

    def test_csv_row_parses(self):
        row = format_csv_row("Frankfurt, DE", 12.346, 1.5, 100, 20.25)
        fields = next(csv.reader([row]))
        self.assertEqual(len(fields), len(format_csv_header().split(",")))
        self.assertEqual(fields[1], "Frankfurt, DE")
        self.assertEqual(fields[2:], ["12.35", "1.50", "100.00", "20.25"])


class TestDashboard(unittest.TestCase):
    def setUp(self):
        self.buffer = io.StringIO()
        patcher = mock.patch.object(dashboard, "console", Console(file=self.buffer, width=120))
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_histogram(self):
        self.assertEqual(dashboard.create_histogram([]), "No data")
        self.assertEqual(len(dashboard.create_histogram(list(range(100)), width=40)), 40)
        self.assertEqual(dashboard.create_histogram([1.0, 1.0]), "▁▁")

    def test_latency_details_without_samples(self):
        dashboard.print_latency_details(LatencyResult(attempts=5))
        self.assertIn("No latency samples", self.buffer.getvalue())

    def test_latency_details(self):
        result = LatencyResult(samples=[10.0, 12.0, 14.0], attempts=3)
        result.calculate()
        dashboard.print_latency_details(result)
        self.assertIn("3/3", self.buffer.getvalue())

    def test_final_results_panel(self):
        latency = LatencyResult(samples=[10.0, 12.0], attempts=2)
        latency.calculate()
        report = SpeedtestReport(
            endpoint=Endpoint("fra", "Frankfurt", "http://f/p", "http://f/d", "http://f/u", location="DE"),
            latency=latency,
            download=ThroughputResult(direction="download", mbps=20.0, bytes_total=1),
            upload=ThroughputResult(direction="upload", mbps=5.0, bytes_total=1),
            quality=rate_connection(20.0, 5.0, latency.ping, latency.jitter),
            capabilities=analyze_connection(20.0),
        )
        dashboard.print_final_results(report)
        output = self.buffer.getvalue()
        self.assertIn("Frankfurt", output)
        self.assertIn("4 HD", output)
        self.assertIn("Game Downloads", output)

    def test_history_table(self):
        dashboard.print_history([{
            "timestamp": "2024-01-01T10:00:00", "endpoint_id": "fra",
            "ping": 10.0, "jitter": 1.0, "download_mbps": 100.0, "upload_mbps": 20.0,
        }])
        self.assertIn("fra", self.buffer.getvalue())

    def test_history_table_remote_records(self):
        dashboard.print_history([{
            "id": "test-1", "timestamp": 1704103200000, "server_id": "lon",
            "ping": None, "jitter": None, "download_mbps": 80.0, "upload_mbps": None,
        }])
        output = self.buffer.getvalue()
        self.assertIn("lon", output)
        self.assertIn("2024-01-01 10:00", output)


if __name__ == "__main__":
    unittest.main()
