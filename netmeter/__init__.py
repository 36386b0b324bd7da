"""netmeter -- latency, jitter, and throughput measurement over HTTP."""

from .api import CLOUDFLARE_ENDPOINT, Endpoint, SpeedtestAPI, TestRecord, UserLocation
from .cancel import CancelToken
from .download import DownloadTester
from .engine import SpeedtestEngine, SpeedtestReport
from .errors import (
    ConfigurationError,
    ErrorCategory,
    MeasurementError,
    SpeedtestError,
    TestCancelled,
    TransportError,
    classify_error,
    user_message,
)
from .grading import QualityRating, rate_connection
from .latency import EndpointRanker, LatencyProber, LatencyResult, RankedEndpoint
from .policy import TransferPlan, chunk_size, optimal_connections, plan_transfer
from .throughput import (
    ProgressSnapshot,
    RunAccumulator,
    ThroughputOrchestrator,
    ThroughputResult,
    TransferConfig,
    TransferSample,
)
from .transport import CloudflareTransport, Transport, open_session, transport_for
from .upload import PayloadCache, UploadTester

__all__ = [
    "CLOUDFLARE_ENDPOINT",
    "CancelToken",
    "CloudflareTransport",
    "ConfigurationError",
    "DownloadTester",
    "Endpoint",
    "EndpointRanker",
    "ErrorCategory",
    "LatencyProber",
    "LatencyResult",
    "MeasurementError",
    "PayloadCache",
    "ProgressSnapshot",
    "QualityRating",
    "RankedEndpoint",
    "RunAccumulator",
    "SpeedtestAPI",
    "SpeedtestEngine",
    "SpeedtestError",
    "SpeedtestReport",
    "TestCancelled",
    "TestRecord",
    "ThroughputOrchestrator",
    "ThroughputResult",
    "TransferConfig",
    "TransferPlan",
    "TransferSample",
    "Transport",
    "TransportError",
    "UploadTester",
    "UserLocation",
    "chunk_size",
    "classify_error",
    "open_session",
    "optimal_connections",
    "plan_transfer",
    "rate_connection",
    "transport_for",
    "user_message",
]
