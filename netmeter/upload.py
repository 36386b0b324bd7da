"""
Upload speed test module.

Back-to-back POST requests carrying a random payload of the chunk size.  The
payload for a given size is generated once and reused by every request and
every loop, so random-byte generation never sits on the transfer hot path.
"""
from __future__ import annotations

import logging
import os
import threading
from typing import Callable, Dict, Optional

from .api import Endpoint
from .cancel import CancelToken
from .constants import DEFAULT_DURATION, PAYLOAD_CACHE_CAPACITY
from .policy import UPLOAD
from .throughput import (
    ProgressCallback,
    ThroughputOrchestrator,
    ThroughputResult,
    TransferConfig,
)
from .transport import Transport

logger = logging.getLogger(__name__)


class PayloadCache:
    """Bounded cache of random upload bodies keyed by size.

    Once ``capacity`` sizes are held, further sizes are generated on demand
    but not stored.
    """

    def __init__(
        self,
        capacity: int = PAYLOAD_CACHE_CAPACITY,
        generate: Callable[[int], bytes] = os.urandom,
    ) -> None:
        self.capacity = capacity
        self._generate = generate
        self._payloads: Dict[int, bytes] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._payloads)

    def __contains__(self, size: int) -> bool:
        return size in self._payloads

    def get(self, size: int) -> bytes:
        with self._lock:
            payload = self._payloads.get(size)
            if payload is None:
                payload = self._generate(size)
                if len(self._payloads) < self.capacity:
                    self._payloads[size] = payload
                else:
                    logger.debug("Payload cache full; %d-byte payload not cached", size)
            return payload


_DEFAULT_CACHE = PayloadCache()


class UploadTester:
    """Parallel upload speed tester."""

    def __init__(
        self,
        duration_seconds: float = DEFAULT_DURATION,
        orchestrator: Optional[ThroughputOrchestrator] = None,
        payload_cache: Optional[PayloadCache] = None,
    ) -> None:
        self.duration_seconds = duration_seconds
        self.orchestrator = orchestrator or ThroughputOrchestrator()
        self.payload_cache = payload_cache or _DEFAULT_CACHE
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
            direction=UPLOAD,
        )
        config.validate()
        payload = self.payload_cache.get(chunk_size)

        async def _issue(size: int) -> int:
            return await transport.upload(endpoint.upload_url, payload)

        return await self.orchestrator.run(_issue, config, self.on_progress, token)
