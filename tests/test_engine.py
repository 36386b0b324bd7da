"""End-to-end tests for netmeter.engine with in-memory transports."""

import asyncio
import json
import unittest

from netmeter.api import Endpoint
from netmeter.cancel import CancelToken
from netmeter.constants import MIN_FULL_TEST_CONNECTIONS, PRETEST_CONNECTIONS
from netmeter.engine import SpeedtestEngine
from netmeter.errors import ConfigurationError, MeasurementError, TestCancelled, TransportError
from netmeter.latency import LatencyProber
from netmeter.policy import DOWNLOAD, UPLOAD, chunk_size, optimal_connections
from netmeter.throughput import ThroughputResult
from netmeter.upload import PayloadCache
from ui.output import create_result_json


def _endpoint(eid):
    return Endpoint(
        id=eid,
        name=eid.title(),
        ping_url=f"http://{eid}.test/ping",
        download_url=f"http://{eid}.test/download",
        upload_url=f"http://{eid}.test/upload",
    )


class FakeTransport:
    def __init__(self, probe_delay=0.001, fail_probes=False, fail_downloads=False):
        self.probe_delay = probe_delay
        self.fail_probes = fail_probes
        self.fail_downloads = fail_downloads
        self.download_sizes = set()
        self.upload_sizes = set()

    async def probe(self, url):
        await asyncio.sleep(self.probe_delay)
        if self.fail_probes:
            raise TransportError("no route", status=None)

    async def download(self, url, size):
        await asyncio.sleep(0.005)
        if self.fail_downloads:
            raise TransportError("reset", status=502)
        self.download_sizes.add(size)
        return size

    async def upload(self, url, payload):
        await asyncio.sleep(0.005)
        self.upload_sizes.add(len(payload))
        return len(payload)


class EngineTestCase(unittest.IsolatedAsyncioTestCase):
    def _engine(self, transports, **kwargs):
        options = dict(
            ping_count=3,
            download_duration=0.2,
            upload_duration=0.2,
            pretest_duration=0.1,
            prober=LatencyProber(count=3, delay=0),
            payload_cache=PayloadCache(generate=lambda n: b"\0" * n),
        )
        options.update(kwargs)
        engine = SpeedtestEngine(lambda e: transports[e.id], **options)
        self.phases = []
        engine.on_phase = self.phases.append
        return engine


class TestEngineRun(EngineTestCase):
    async def test_full_sequence(self):
        transports = {
            "local-server": FakeTransport(probe_delay=0),
            "slow": FakeTransport(probe_delay=0.03),
            "fast": FakeTransport(probe_delay=0.001),
        }
        engine = self._engine(transports)
        progress = []
        engine.on_progress = lambda phase, snap: progress.append(phase)

        report = await engine.run([_endpoint("local-server"), _endpoint("slow"), _endpoint("fast")])

        self.assertEqual(self.phases, ["selecting", "ping", "pretest", "download", "upload", "complete"])
        self.assertEqual(report.endpoint.id, "fast")
        self.assertEqual([r.endpoint.id for r in report.ranking], ["fast", "slow"])
        self.assertTrue(report.latency.ok)
        self.assertEqual(report.pretest.connections, PRETEST_CONNECTIONS)
        self.assertGreaterEqual(report.download.connections, MIN_FULL_TEST_CONNECTIONS)
        self.assertGreaterEqual(report.upload.connections, MIN_FULL_TEST_CONNECTIONS)
        self.assertEqual(report.download.chunk_size, chunk_size(report.pretest.mbps, DOWNLOAD))
        self.assertEqual(report.upload.chunk_size, chunk_size(report.download.mbps, UPLOAD))
        self.assertEqual(transports["fast"].upload_sizes, {report.upload.chunk_size})
        self.assertIsNotNone(report.quality)
        self.assertTrue(set(progress) <= {"download", "upload"})

        result = create_result_json(report.to_dict())
        json.dumps(result)
        self.assertEqual(result["endpoint_id"], "fast")

    async def test_connections_override(self):
        engine = self._engine({"a": FakeTransport()}, connections=3)
        report = await engine.run([_endpoint("a")])
        self.assertEqual(report.download.connections, 3)
        self.assertEqual(report.upload.connections, 3)

    async def test_upload_reuses_download_connections(self):
        rates = iter([5.0, 300.0, 40.0])
        configs = []

        class ScriptedOrchestrator:
            async def run(self, issue, config, on_progress=None, token=None):
                configs.append(config)
                return ThroughputResult(
                    direction=config.direction,
                    mbps=next(rates),
                    bytes_total=1,
                    connections=config.connections,
                    chunk_size=config.chunk_size,
                )

        engine = self._engine({"a": FakeTransport()}, orchestrator=ScriptedOrchestrator())
        report = await engine.run([_endpoint("a")])

        pretest, download, upload = configs
        self.assertEqual(pretest.connections, PRETEST_CONNECTIONS)
        self.assertEqual(download.connections, max(MIN_FULL_TEST_CONNECTIONS, optimal_connections(5.0)))
        self.assertNotEqual(optimal_connections(300.0), download.connections)
        self.assertEqual(upload.connections, download.connections)
        self.assertEqual(upload.chunk_size, chunk_size(300.0, UPLOAD))
        self.assertEqual(report.upload.mbps, 40.0)

    async def test_pinned_endpoint_skips_ranking(self):
        transports = {"a": FakeTransport(), "b": FakeTransport()}
        report = await self._engine(transports).run([_endpoint("a"), _endpoint("b")], endpoint_id="b")
        self.assertEqual(report.endpoint.id, "b")
        self.assertEqual(len(report.ranking), 1)

    async def test_pinned_endpoint_missing(self):
        with self.assertRaises(ConfigurationError):
            await self._engine({"a": FakeTransport()}).run([_endpoint("a")], endpoint_id="zzz")


class TestEngineFailures(EngineTestCase):
    async def test_no_endpoints(self):
        with self.assertRaises(ConfigurationError):
            await self._engine({}).run([])

    async def test_invalid_parameters(self):
        with self.assertRaises(ConfigurationError):
            SpeedtestEngine(lambda e: None, download_duration=0)
        with self.assertRaises(ConfigurationError):
            SpeedtestEngine(lambda e: None, ping_count=0)

    async def test_unreachable_endpoint(self):
        engine = self._engine({"a": FakeTransport(fail_probes=True)})
        with self.assertLogs("netmeter.latency", "WARNING"):
            with self.assertRaises(MeasurementError):
                await engine.run([_endpoint("a")])
        self.assertNotIn("pretest", self.phases)

    async def test_download_moving_nothing(self):
        engine = self._engine({"a": FakeTransport(fail_downloads=True)})
        with self.assertLogs("netmeter.throughput", "WARNING"):
            with self.assertRaises(MeasurementError):
                await engine.run([_endpoint("a")])
        self.assertNotIn("download", self.phases)

    async def test_cancel_during_download(self):
        engine = self._engine({"a": FakeTransport()}, download_duration=30)
        token = CancelToken()

        def on_phase(phase):
            self.phases.append(phase)
            if phase == "download":
                asyncio.get_running_loop().call_later(0.05, token.cancel)

        engine.on_phase = on_phase
        with self.assertRaises(TestCancelled):
            await asyncio.wait_for(engine.run([_endpoint("a")], token), timeout=5)
        self.assertNotIn("upload", self.phases)


if __name__ == "__main__":
    unittest.main()
