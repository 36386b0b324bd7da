"""
Error taxonomy and user-facing error categories.

Transient probe / chunk failures are ``TransportError`` and are recovered
locally by the measuring loop.  A phase that produced nothing at all raises
``MeasurementError``.  Cancellation is ``TestCancelled`` which is *not* a
``SpeedtestError``: callers reset quietly instead of reporting a failure.
"""
from __future__ import annotations

import asyncio
import enum
from typing import Optional

import aiohttp


class SpeedtestError(Exception):
    """Base class for every failure raised by netmeter."""


class TransportError(SpeedtestError):
    """A single probe or chunk failed on the wire."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class MeasurementError(SpeedtestError):
    """A measurement phase finished without a single usable sample."""


class ConfigurationError(SpeedtestError, ValueError):
    """Invalid run parameters, detected before any network activity."""


class TestCancelled(Exception):
    """The run was cancelled through its ``CancelToken``."""

    __test__ = False  # keep pytest from collecting this as a test class


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

class ErrorCategory(str, enum.Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    SERVER = "server"
    RATE_LIMITED = "rate_limited"
    TOO_LARGE = "too_large"
    UNKNOWN = "unknown"


_MESSAGES = {
    ErrorCategory.NETWORK: "Network connection error. Please check your internet and try again.",
    ErrorCategory.TIMEOUT: "Test timed out. Your connection may be unstable.",
    ErrorCategory.SERVER: "Server error. Please try again later.",
    ErrorCategory.RATE_LIMITED: "Too many requests. Please wait a moment and try again.",
    ErrorCategory.TOO_LARGE: "Request too large. Please try again.",
    ErrorCategory.UNKNOWN: "Test failed. Please try again.",
}


def _status_of(exc: BaseException) -> Optional[int]:
    if isinstance(exc, TransportError):
        return exc.status
    if isinstance(exc, aiohttp.ClientResponseError):
        return exc.status
    return None


def classify_error(exc: BaseException) -> ErrorCategory:
    """Map *exc* to one of a handful of generic categories."""
    status = _status_of(exc)
    if status is not None:
        if status == 429:
            return ErrorCategory.RATE_LIMITED
        if status == 413:
            return ErrorCategory.TOO_LARGE
        if status >= 500:
            return ErrorCategory.SERVER

    cause = exc.__cause__
    if isinstance(exc, (asyncio.TimeoutError, aiohttp.ServerTimeoutError)):
        return ErrorCategory.TIMEOUT
    if isinstance(exc, (aiohttp.ClientConnectionError, ConnectionError, OSError)):
        return ErrorCategory.NETWORK
    if isinstance(exc, MeasurementError):
        return ErrorCategory.NETWORK
    if cause is not None and cause is not exc:
        return classify_error(cause)
    return ErrorCategory.UNKNOWN


def user_message(exc: BaseException) -> str:
    """Generic message for *exc*; raw error text is never exposed."""
    return _MESSAGES[classify_error(exc)]
