"""
Full measurement sequence.

    rank endpoints -> full latency series on the winner
      -> short download pre-test -> policy -> download
      -> upload (same connections, chunk size from the download result)

Each stage's output configures the next.  Phases that produce nothing raise
``MeasurementError`` rather than reporting a zero; cancellation surfaces as
``TestCancelled``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .api import Endpoint
from .cancel import CancelToken
from .constants import (
    DEFAULT_DURATION,
    DEFAULT_PING_COUNT,
    MIN_FULL_TEST_CONNECTIONS,
    PRETEST_CHUNK_SIZE,
    PRETEST_CONNECTIONS,
    PRETEST_DURATION,
)
from .download import DownloadTester
from .errors import ConfigurationError, MeasurementError
from .grading import ConnectionCapabilities, QualityRating, analyze_connection, rate_connection
from .latency import EndpointRanker, LatencyProber, LatencyResult, RankedEndpoint
from .policy import DOWNLOAD, UPLOAD, TransferPlan, chunk_size, plan_transfer
from .throughput import ProgressCallback, ThroughputOrchestrator, ThroughputResult
from .transport import Transport
from .upload import PayloadCache, UploadTester

logger = logging.getLogger(__name__)

PhaseCallback = Callable[[str], None]


@dataclass
class SpeedtestReport:
    """Everything one complete run produced."""

    endpoint: Endpoint
    latency: LatencyResult
    download: ThroughputResult
    upload: ThroughputResult
    pretest: Optional[ThroughputResult] = None
    ranking: List[RankedEndpoint] = field(default_factory=list)
    quality: Optional[QualityRating] = None
    capabilities: Optional[ConnectionCapabilities] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "endpoint": self.endpoint.to_dict(),
            "ping": self.latency.ping,
            "jitter": self.latency.jitter,
            "latency": self.latency.to_dict(),
            "download": self.download.to_dict(),
            "upload": self.upload.to_dict(),
            "pretest": self.pretest.to_dict() if self.pretest else None,
            "ranking": [r.to_dict() for r in self.ranking],
            "quality": self.quality.to_dict() if self.quality else None,
            "capabilities": self.capabilities.to_dict() if self.capabilities else None,
        }


class SpeedtestEngine:
    """Drive one complete latency / download / upload measurement."""

    def __init__(
        self,
        resolve_transport: Callable[[Endpoint], Transport],
        ping_count: int = DEFAULT_PING_COUNT,
        download_duration: float = DEFAULT_DURATION,
        upload_duration: float = DEFAULT_DURATION,
        pretest_duration: float = PRETEST_DURATION,
        connections: Optional[int] = None,
        orchestrator: Optional[ThroughputOrchestrator] = None,
        payload_cache: Optional[PayloadCache] = None,
        prober: Optional[LatencyProber] = None,
    ) -> None:
        for name, value in (
            ("download_duration", download_duration),
            ("upload_duration", upload_duration),
            ("pretest_duration", pretest_duration),
        ):
            if not value > 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")
        if ping_count < 1:
            raise ConfigurationError("ping_count must be at least 1")

        self.resolve_transport = resolve_transport
        self.ping_count = ping_count
        self.download_duration = download_duration
        self.upload_duration = upload_duration
        self.pretest_duration = pretest_duration
        self.connections = connections
        self.orchestrator = orchestrator or ThroughputOrchestrator()
        self.payload_cache = payload_cache
        self.prober = prober or LatencyProber(count=ping_count)
        self.ranker = EndpointRanker(self.prober, resolve_transport)

        self.on_phase: Optional[PhaseCallback] = None
        self.on_progress: Optional[Callable[[str, Any], None]] = None

    # -- Helpers ------------------------------------------------------------

    def _phase(self, name: str) -> None:
        logger.info("Phase: %s", name)
        if self.on_phase:
            self.on_phase(name)

    def _progress_for(self, phase: str) -> Optional[ProgressCallback]:
        if self.on_progress is None:
            return None
        callback = self.on_progress
        return lambda snapshot: callback(phase, snapshot)

    def _plan(self, estimated_mbps: float, direction: str) -> TransferPlan:
        plan = plan_transfer(estimated_mbps, direction, min_connections=MIN_FULL_TEST_CONNECTIONS)
        if self.connections is not None:
            plan = TransferPlan(direction, self.connections, plan.chunk_size)
        logger.info(
            "%s plan from %.2f Mbps: %d connections, %.1f MiB chunks",
            direction, estimated_mbps, plan.connections, plan.chunk_size / 1024 / 1024,
        )
        return plan

    def _upload_plan(self, download_plan: TransferPlan, download_mbps: float) -> TransferPlan:
        """Keep the download's connection count; size chunks from its rate."""
        plan = TransferPlan(UPLOAD, download_plan.connections, chunk_size(download_mbps, UPLOAD))
        logger.info(
            "upload plan from %.2f Mbps: %d connections, %.1f MiB chunks",
            download_mbps, plan.connections, plan.chunk_size / 1024 / 1024,
        )
        return plan

    @staticmethod
    def _require(result: ThroughputResult, phase: str) -> ThroughputResult:
        if not result.ok:
            raise MeasurementError(f"{phase} moved no data ({result.errors} failed chunks)")
        return result

    # -- Stages -------------------------------------------------------------

    async def select_endpoint(
        self,
        endpoints: List[Endpoint],
        token: CancelToken,
        endpoint_id: Optional[str] = None,
    ) -> List[RankedEndpoint]:
        """Rank *endpoints*, or pin *endpoint_id* without probing."""
        if endpoint_id is not None:
            pinned = [e for e in endpoints if e.id == endpoint_id]
            if not pinned:
                raise ConfigurationError(f"Endpoint {endpoint_id!r} not found")
            return [RankedEndpoint(endpoint=pinned[0])]
        return await self.ranker.rank(endpoints, token)

    async def measure_latency(self, endpoint: Endpoint, token: CancelToken) -> LatencyResult:
        result = await self.prober.measure(
            endpoint, self.resolve_transport(endpoint), self.ping_count, token,
        )
        if not result.ok:
            raise MeasurementError(f"No latency probe to {endpoint.id} succeeded")
        return result

    async def run(
        self,
        endpoints: List[Endpoint],
        token: Optional[CancelToken] = None,
        endpoint_id: Optional[str] = None,
    ) -> SpeedtestReport:
        if not endpoints:
            raise ConfigurationError("No endpoints available")
        token = token or CancelToken()

        self._phase("selecting")
        ranking = await self.select_endpoint(endpoints, token, endpoint_id)
        endpoint = ranking[0].endpoint
        transport = self.resolve_transport(endpoint)
        logger.info("Selected endpoint %s (%s)", endpoint.id, endpoint.name)

        self._phase("ping")
        latency = await self.measure_latency(endpoint, token)

        self._phase("pretest")
        pretest_tester = DownloadTester(self.pretest_duration, self.orchestrator)
        pretest = self._require(
            await pretest_tester.test(
                endpoint, transport, PRETEST_CONNECTIONS, PRETEST_CHUNK_SIZE, token,
            ),
            "download pre-test",
        )

        self._phase("download")
        dl_plan = self._plan(pretest.mbps, DOWNLOAD)
        dl_tester = DownloadTester(self.download_duration, self.orchestrator)
        dl_tester.on_progress = self._progress_for("download")
        download = self._require(
            await dl_tester.test(endpoint, transport, dl_plan.connections, dl_plan.chunk_size, token),
            "download",
        )

        self._phase("upload")
        ul_plan = self._upload_plan(dl_plan, download.mbps)
        ul_tester = UploadTester(self.upload_duration, self.orchestrator, self.payload_cache)
        ul_tester.on_progress = self._progress_for("upload")
        upload = self._require(
            await ul_tester.test(endpoint, transport, ul_plan.connections, ul_plan.chunk_size, token),
            "upload",
        )

        report = SpeedtestReport(
            endpoint=endpoint,
            latency=latency,
            download=download,
            upload=upload,
            pretest=pretest,
            ranking=ranking,
            quality=rate_connection(download.mbps, upload.mbps, latency.ping, latency.jitter),
            capabilities=analyze_connection(download.mbps),
        )
        self._phase("complete")
        return report
