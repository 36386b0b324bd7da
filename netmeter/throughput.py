"""
Concurrent throughput orchestration shared by download and upload.

N loops start together and move back-to-back chunks until the duration
budget is spent or the run is cancelled.  Every loop writes into one
``RunAccumulator``; the final figure is total bytes over the wall-clock time
from run start until the last loop returned, which reflects saturated
throughput without double-counting the idle gaps of slower loops.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, NamedTuple, Optional

from .cancel import CancelToken
from .constants import ERROR_BACKOFF, MAX_CONNECTIONS, PROGRESS_INTERVAL
from .errors import ConfigurationError, TestCancelled, TransportError
from .stats import calculate_mbps

logger = logging.getLogger(__name__)

ChunkIssuer = Callable[[int], Awaitable[int]]


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TransferConfig:
    connections: int
    chunk_size: int
    duration: float
    direction: str = "download"

    def validate(self) -> None:
        if not 1 <= self.connections <= MAX_CONNECTIONS:
            raise ConfigurationError(
                f"Connections must be between 1 and {MAX_CONNECTIONS}, got {self.connections}"
            )
        if self.chunk_size <= 0:
            raise ConfigurationError(f"Chunk size must be positive, got {self.chunk_size}")
        if not self.duration > 0:
            raise ConfigurationError(f"Duration must be positive, got {self.duration}")


class TransferSample(NamedTuple):
    bytes: int
    elapsed_ms: float


@dataclass(frozen=True)
class ProgressSnapshot:
    """Running totals at one instant of a run."""

    mbps: float
    bytes_transferred: int
    connections: int
    elapsed_s: float
    remaining_s: float

    @property
    def fraction(self) -> float:
        total = self.elapsed_s + self.remaining_s
        return min(self.elapsed_s / total, 1.0) if total > 0 else 1.0


ProgressCallback = Callable[[ProgressSnapshot], None]


@dataclass
class ThroughputResult:
    """Outcome of one download or upload run."""

    direction: str = "download"
    mbps: float = 0.0
    bytes_total: int = 0
    duration_s: float = 0.0
    connections: int = 0
    chunk_size: int = 0
    errors: int = 0
    samples: List[TransferSample] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.bytes_total > 0

    def calculate(self) -> None:
        self.mbps = round(calculate_mbps(self.bytes_total, self.duration_s), 2)

    def to_dict(self) -> dict:
        return {
            "direction": self.direction,
            "mbps": self.mbps,
            "bytes_total": self.bytes_total,
            "duration_s": round(self.duration_s, 3),
            "connections": self.connections,
            "chunk_size": self.chunk_size,
            "errors": self.errors,
            "samples": [[s.bytes, round(s.elapsed_ms, 2)] for s in self.samples],
        }


# ---------------------------------------------------------------------------
# Accumulator
# ---------------------------------------------------------------------------

class RunAccumulator:
    """Per-run counters mutated concurrently by every loop of the run."""

    def __init__(self, config: TransferConfig, token: CancelToken) -> None:
        self.config = config
        self.token = token
        self.started = time.perf_counter()
        self.last_emit = self.started
        self.total_bytes = 0
        self.errors = 0
        self.active = 0
        self.samples: List[TransferSample] = []
        self._lock = threading.Lock()

    def elapsed(self, now: Optional[float] = None) -> float:
        return (time.perf_counter() if now is None else now) - self.started

    def expired(self) -> bool:
        return self.elapsed() >= self.config.duration

    def record(self, nbytes: int, elapsed_ms: float) -> None:
        with self._lock:
            self.total_bytes += nbytes
            self.samples.append(TransferSample(nbytes, elapsed_ms))

    def record_error(self) -> None:
        with self._lock:
            self.errors += 1

    def loop_started(self) -> None:
        with self._lock:
            self.active += 1

    def loop_finished(self) -> None:
        with self._lock:
            self.active -= 1

    def due_snapshot(self, now: float) -> Optional[ProgressSnapshot]:
        """Snapshot if ``PROGRESS_INTERVAL`` passed since the last one."""
        with self._lock:
            if now - self.last_emit < PROGRESS_INTERVAL:
                return None
            self.last_emit = now
            elapsed = now - self.started
            return ProgressSnapshot(
                mbps=calculate_mbps(self.total_bytes, elapsed),
                bytes_transferred=self.total_bytes,
                connections=self.active,
                elapsed_s=elapsed,
                remaining_s=max(0.0, self.config.duration - elapsed),
            )


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class ThroughputOrchestrator:
    """Run N concurrent chunk loops and reduce them to one Mbps figure."""

    def __init__(self, error_backoff: float = ERROR_BACKOFF) -> None:
        self.error_backoff = error_backoff

    async def run(
        self,
        issue: ChunkIssuer,
        config: TransferConfig,
        on_progress: Optional[ProgressCallback] = None,
        token: Optional[CancelToken] = None,
    ) -> ThroughputResult:
        config.validate()
        token = token or CancelToken()
        acc = RunAccumulator(config, token)

        loops = [
            asyncio.create_task(self._loop(i, issue, acc, on_progress))
            for i in range(config.connections)
        ]
        try:
            await asyncio.gather(*loops)
        finally:
            for t in loops:
                t.cancel()
            await asyncio.gather(*loops, return_exceptions=True)

        result = ThroughputResult(
            direction=config.direction,
            bytes_total=acc.total_bytes,
            duration_s=acc.elapsed(),
            connections=config.connections,
            chunk_size=config.chunk_size,
            errors=acc.errors,
            samples=list(acc.samples),
        )
        result.calculate()

        if token.cancelled:
            raise TestCancelled()

        logger.info(
            "%s run: %d bytes in %.2f s over %d connections -> %.2f Mbps (%d errors)",
            config.direction, result.bytes_total, result.duration_s,
            config.connections, result.mbps, result.errors,
        )
        return result

    async def _loop(
        self,
        cid: int,
        issue: ChunkIssuer,
        acc: RunAccumulator,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        token = acc.token
        chunk = acc.config.chunk_size
        acc.loop_started()
        try:
            while not token.cancelled and not acc.expired():
                t0 = time.perf_counter()
                try:
                    nbytes = await token.run(issue(chunk))
                except TestCancelled:
                    return
                except (TransportError, asyncio.TimeoutError, OSError) as exc:
                    acc.record_error()
                    logger.warning("%s chunk on connection %d failed: %s",
                                   acc.config.direction, cid, exc)
                    try:
                        await token.sleep(self.error_backoff)
                    except TestCancelled:
                        return
                    continue

                now = time.perf_counter()
                acc.record(nbytes, (now - t0) * 1000)

                if on_progress is not None and not token.cancelled:
                    snapshot = acc.due_snapshot(now)
                    if snapshot is not None:
                        on_progress(snapshot)
        finally:
            acc.loop_finished()
