"""
Download speed test module.

Back-to-back GET requests of a fixed chunk size over several concurrent
loops.  Each request carries a fresh nonce so no cache can answer it, and the
size parameter name comes from the endpoint's transport adapter.
"""
from __future__ import annotations

from typing import Optional

from .api import Endpoint
from .cancel import CancelToken
from .constants import DEFAULT_DURATION
from .policy import DOWNLOAD
from .throughput import (
    ProgressCallback,
    ThroughputOrchestrator,
    ThroughputResult,
    TransferConfig,
)
from .transport import Transport


class DownloadTester:
    """Parallel download speed tester."""

    def __init__(
        self,
        duration_seconds: float = DEFAULT_DURATION,
        orchestrator: Optional[ThroughputOrchestrator] = None,
    ) -> None:
        self.duration_seconds = duration_seconds
        self.orchestrator = orchestrator or ThroughputOrchestrator()
        self.on_progress: Optional[ProgressCallback] = None

    async def test(
        self,
        endpoint: Endpoint,
        transport: Transport,
        connections: int,
        chunk_size: int,
        token: Optional[CancelToken] = None,
    ) -> ThroughputResult:
        config = TransferConfig(
            connections=connections,
            chunk_size=chunk_size,
            duration=self.duration_seconds,
            direction=DOWNLOAD,
        )

        async def _issue(size: int) -> int:
            return await transport.download(endpoint.download_url, size)

        return await self.orchestrator.run(_issue, config, self.on_progress, token)
