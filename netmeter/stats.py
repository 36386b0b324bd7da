"""
Network measurement statistics.

Pure functions -- no I/O, no side effects.
Everything here is deterministic and easy to unit-test.
"""
from __future__ import annotations

import math
import statistics
from typing import List, Sequence, Tuple

BITS_PER_BYTE = 8
BITS_PER_MEGABIT = 1_000_000  # decimal Mbps, as ISPs advertise


# ---------------------------------------------------------------------------
# Latency
# ---------------------------------------------------------------------------

def calculate_median(samples: Sequence[float]) -> float:
    """True median; the mean of the two middle values for even counts."""
    if not samples:
        return math.nan
    return statistics.median(samples)


def calculate_jitter(samples: Sequence[float]) -> float:
    """Population standard deviation of the round-trip samples."""
    if not samples:
        return math.nan
    if len(samples) == 1:
        return 0.0
    return statistics.pstdev(samples)


def summarize_latency(samples: Sequence[float]) -> Tuple[float, float]:
    """Return ``(ping, jitter)`` rounded to two decimals.

    An empty sample set gives ``(nan, nan)`` -- never a zero latency.
    """
    if not samples:
        return math.nan, math.nan
    return round(calculate_median(samples), 2), round(calculate_jitter(samples), 2)


def calculate_percentile(samples: Sequence[float], percentile: float) -> float:
    """Linear-interpolation percentile."""
    if not samples:
        return 0.0

    ordered = sorted(samples)
    n = len(ordered)
    idx = (percentile / 100) * (n - 1)
    lower = int(idx)
    upper = min(lower + 1, n - 1)
    weight = idx - lower
    return ordered[lower] * (1 - weight) + ordered[upper] * weight


# ---------------------------------------------------------------------------
# Throughput
# ---------------------------------------------------------------------------

def calculate_mbps(bytes_transferred: int, seconds: float) -> float:
    """Aggregate megabits per second for *bytes_transferred* over *seconds*."""
    if seconds <= 0:
        return 0.0
    return bytes_transferred * BITS_PER_BYTE / seconds / BITS_PER_MEGABIT


def chunk_mbps(samples: List[Tuple[int, float]]) -> List[float]:
    """Instantaneous Mbps of each ``(bytes, elapsed_ms)`` chunk sample."""
    return [
        calculate_mbps(nbytes, elapsed_ms / 1000)
        for nbytes, elapsed_ms in samples
        if elapsed_ms > 0
    ]


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: float) -> str:
    """Human-readable speed string."""
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.2f} Mbps"


def format_latency(latency_ms: float) -> str:
    """Human-readable latency string."""
    if math.isnan(latency_ms):
        return "N/A"
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.1f} ms"


def format_bytes(nbytes: int) -> str:
    if nbytes >= 1024 ** 3:
        return f"{nbytes / 1024 ** 3:.2f} GiB"
    if nbytes >= 1024 ** 2:
        return f"{nbytes / 1024 ** 2:.1f} MiB"
    if nbytes >= 1024:
        return f"{nbytes / 1024:.1f} KiB"
    return f"{nbytes} B"
