"""
Transfer parameter policy.

Maps an estimated throughput to a connection count and a chunk size.  Pure
and total: any float (including NaN and negatives, which land in the lowest
tier) yields exactly one answer per direction.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

from .constants import MIB

DOWNLOAD = "download"
UPLOAD = "upload"

# (upper bound in Mbps, exclusive) -> value; the final entry catches the rest.
_CONNECTION_TIERS = [
    (10.0, 4),
    (50.0, 6),
    (100.0, 10),
    (250.0, 14),
    (math.inf, 18),
]

_CHUNK_TIERS = {
    DOWNLOAD: [
        (10.0, 1 * MIB),
        (50.0, 2 * MIB),
        (100.0, 3 * MIB),
        (math.inf, 5 * MIB),
    ],
    # Request bodies are built and sent in full before any response, so
    # upload chunks stay below the download chunk of the same tier.
    UPLOAD: [
        (10.0, MIB // 2),
        (50.0, 1 * MIB),
        (100.0, 3 * MIB // 2),
        (math.inf, 2 * MIB),
    ],
}


@dataclass(frozen=True)
class TransferPlan:
    direction: str
    connections: int
    chunk_size: int


def _lookup(tiers, estimated_mbps: float):
    if math.isnan(estimated_mbps):
        estimated_mbps = 0.0
    for bound, value in tiers:
        if estimated_mbps < bound:
            return value
    return tiers[-1][1]


def optimal_connections(estimated_mbps: float) -> int:
    """Concurrent transfer loops for a path of roughly *estimated_mbps*."""
    return _lookup(_CONNECTION_TIERS, estimated_mbps)


def chunk_size(estimated_mbps: float, direction: str) -> int:
    """Bytes per request for *direction* (``"download"`` or ``"upload"``)."""
    try:
        tiers = _CHUNK_TIERS[direction]
    except KeyError:
        raise ValueError(f"Unknown transfer direction: {direction!r}") from None
    return _lookup(tiers, estimated_mbps)


def plan_transfer(estimated_mbps: float, direction: str, min_connections: int = 0) -> TransferPlan:
    """Connection count and chunk size for the next run in *direction*."""
    return TransferPlan(
        direction=direction,
        connections=max(min_connections, optimal_connections(estimated_mbps)),
        chunk_size=chunk_size(estimated_mbps, direction),
    )
