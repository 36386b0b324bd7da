"""
HTTP round-trip latency measurement and endpoint ranking.

The prober issues sequential GET probes with a short fixed pause between
them; failed probes are skipped, never recorded as zero.  The ranker runs a
short probe series against every candidate concurrently and picks the one
with the lowest median.
"""
from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .api import Endpoint
from .cancel import CancelToken
from .constants import (
    DEFAULT_PING_COUNT,
    PROBE_DELAY,
    RANKING_PING_COUNT,
    RANKING_SENTINEL_MS,
)
from .errors import ConfigurationError, TestCancelled, TransportError
from .stats import summarize_latency
from .transport import Transport


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclass
class LatencyResult:
    """Summary of one probe series."""

    ping: float = math.nan
    jitter: float = math.nan
    samples: List[float] = field(default_factory=list)
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return bool(self.samples)

    @property
    def failed_probes(self) -> int:
        return self.attempts - len(self.samples)

    def calculate(self) -> None:
        self.ping, self.jitter = summarize_latency(self.samples)

    def to_dict(self) -> dict:
        return {
            "ping": None if math.isnan(self.ping) else self.ping,
            "jitter": None if math.isnan(self.jitter) else self.jitter,
            "samples": [round(s, 2) for s in self.samples],
            "attempts": self.attempts,
        }


@dataclass
class RankedEndpoint:
    """One candidate's standing after ranking."""

    endpoint: Endpoint
    latency_ms: float = RANKING_SENTINEL_MS
    result: Optional[LatencyResult] = None

    @property
    def reachable(self) -> bool:
        return self.result is not None and self.result.ok

    def to_dict(self) -> dict:
        return {
            "id": self.endpoint.id,
            "name": self.endpoint.name,
            "latency_ms": self.latency_ms,
            "reachable": self.reachable,
        }


# ---------------------------------------------------------------------------
# Prober
# ---------------------------------------------------------------------------

class LatencyProber:
    """Sequential round-trip probes against one endpoint."""

    def __init__(self, count: int = DEFAULT_PING_COUNT, delay: float = PROBE_DELAY) -> None:
        self.count = count
        self.delay = delay

    async def measure(
        self,
        endpoint: Endpoint,
        transport: Transport,
        count: Optional[int] = None,
        token: Optional[CancelToken] = None,
    ) -> LatencyResult:
        count = self.count if count is None else count
        if count < 1:
            raise ConfigurationError("Probe count must be at least 1")
        token = token or CancelToken()

        result = LatencyResult()
        for i in range(count):
            token.raise_if_cancelled()
            result.attempts += 1
            start = time.perf_counter()
            try:
                await token.run(transport.probe(endpoint.ping_url))
            except (TransportError, asyncio.TimeoutError, OSError) as exc:
                logger.debug("Probe %d/%d to %s skipped: %s", i + 1, count, endpoint.id, exc)
            else:
                result.samples.append((time.perf_counter() - start) * 1000)

            if i < count - 1:
                await token.sleep(self.delay)

        result.calculate()
        if not result.ok:
            logger.warning("All %d probes to %s failed", count, endpoint.id)
        return result


# ---------------------------------------------------------------------------
# Ranker
# ---------------------------------------------------------------------------

class EndpointRanker:
    """Pick the lowest-latency remote endpoint from a candidate list."""

    def __init__(
        self,
        prober: LatencyProber,
        resolve_transport: Callable[[Endpoint], Transport],
        sample_count: int = RANKING_PING_COUNT,
    ) -> None:
        self.prober = prober
        self.resolve_transport = resolve_transport
        self.sample_count = sample_count

    @staticmethod
    def candidates(endpoints: List[Endpoint]) -> List[Endpoint]:
        """Drop the same-origin endpoint unless nothing else is on offer."""
        remote = [e for e in endpoints if not e.is_local]
        return remote or list(endpoints)

    async def _probe(
        self, endpoint: Endpoint, transport: Transport, token: CancelToken,
    ) -> RankedEndpoint:
        ranked = RankedEndpoint(endpoint=endpoint)
        try:
            result = await self.prober.measure(endpoint, transport, self.sample_count, token)
        except TestCancelled:
            raise
        except Exception as exc:  # ranking must never fail on one endpoint
            logger.warning("Ranking probe for %s failed: %s", endpoint.id, exc)
            return ranked

        ranked.result = result
        if result.ok:
            ranked.latency_ms = result.ping
        return ranked

    async def rank(
        self,
        endpoints: List[Endpoint],
        token: Optional[CancelToken] = None,
    ) -> List[RankedEndpoint]:
        """Return every candidate, best first; ties keep input order."""
        if not endpoints:
            raise ConfigurationError("No endpoints to rank")
        token = token or CancelToken()

        pool = self.candidates(endpoints)
        # Unknown families fail here, before any probe goes out.
        transports = [self.resolve_transport(e) for e in pool]
        ranked = await asyncio.gather(
            *[self._probe(e, t, token) for e, t in zip(pool, transports)]
        )
        return sorted(ranked, key=lambda r: r.latency_ms)

    async def select_best(
        self,
        endpoints: List[Endpoint],
        token: Optional[CancelToken] = None,
    ) -> Endpoint:
        ranking = await self.rank(endpoints, token)
        return ranking[0].endpoint
