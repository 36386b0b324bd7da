"""
HTTP transport adapters, one per endpoint family.

Every adapter exposes the same three calls -- ``probe``, ``download`` and
``upload`` -- so the prober and the throughput testers never look at an
endpoint's address.  Family-specific quirks (the download size parameter
name, the shape of the upload acknowledgement) live here and nowhere else.
"""
from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Dict, Optional, Type

import aiohttp

from .api import FAMILY_CLOUDFLARE, FAMILY_DATAPLANE, Endpoint
from .constants import (
    COMMON_HEADERS,
    CONNECT_TIMEOUT,
    MAX_CONNECTIONS,
    PROBE_TIMEOUT,
    READ_BUFFER_SIZE,
    SOCK_READ_TIMEOUT,
)
from .errors import ConfigurationError, TransportError

logger = logging.getLogger(__name__)


def _nonce() -> str:
    return f"{time.time() * 1000 + random.random():.6f}"


class Transport:
    """Base adapter for the self-hosted data-plane service.

    ``/api/download?size=N&nonce=...`` returns *N* bytes; ``/api/upload``
    answers with ``{"bytesReceived": ..., "duration": ..., "mbps": ...}``.
    """

    family = FAMILY_DATAPLANE
    size_param = "size"

    def __init__(self, session: aiohttp.ClientSession, probe_timeout: float = PROBE_TIMEOUT) -> None:
        self.session = session
        self.probe_timeout = probe_timeout
        self._transfer_timeout = aiohttp.ClientTimeout(
            total=None, connect=CONNECT_TIMEOUT, sock_read=SOCK_READ_TIMEOUT,
        )

    # -- Probe --------------------------------------------------------------

    async def probe(self, url: str) -> None:
        """One round trip; returns once the full response has arrived."""
        timeout = aiohttp.ClientTimeout(total=self.probe_timeout)
        try:
            async with self.session.get(url, timeout=timeout) as resp:
                await resp.read()
                self._check(resp)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(f"probe failed: {exc!r}") from exc

    # -- Download -----------------------------------------------------------

    def download_params(self, size: int) -> Dict[str, str]:
        return {self.size_param: str(size), "nonce": _nonce()}

    async def download(self, url: str, size: int) -> int:
        """Fetch one chunk of *size* bytes; returns the bytes received."""
        received = 0
        try:
            async with self.session.get(
                url, params=self.download_params(size), timeout=self._transfer_timeout,
            ) as resp:
                self._check(resp)
                async for block in resp.content.iter_chunked(READ_BUFFER_SIZE):
                    received += len(block)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(f"download failed: {exc!r}") from exc
        return received

    # -- Upload -------------------------------------------------------------

    async def upload(self, url: str, payload: bytes) -> int:
        """Send *payload*; returns the byte count the far end acknowledged."""
        try:
            async with self.session.post(
                url,
                data=payload,
                headers={"Content-Type": "application/octet-stream"},
                timeout=self._transfer_timeout,
            ) as resp:
                self._check(resp)
                return await self._acknowledged(resp, len(payload))
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise TransportError(f"upload failed: {exc!r}") from exc

    async def _acknowledged(self, resp: aiohttp.ClientResponse, sent: int) -> int:
        data = await resp.json(content_type=None)
        received = data.get("bytesReceived") if isinstance(data, dict) else None
        if not isinstance(received, int):
            raise ValueError(f"malformed upload acknowledgement: {data!r:.80}")
        return received

    # -- Internals ----------------------------------------------------------

    @staticmethod
    def _check(resp: aiohttp.ClientResponse) -> None:
        if resp.status >= 400:
            raise TransportError(f"HTTP {resp.status} from {resp.url}", status=resp.status)


class CloudflareTransport(Transport):
    """speed.cloudflare.com: ``?bytes=N`` downloads, plain-text upload acks."""

    family = FAMILY_CLOUDFLARE
    size_param = "bytes"

    async def _acknowledged(self, resp: aiohttp.ClientResponse, sent: int) -> int:
        await resp.read()
        return sent


TRANSPORTS: Dict[str, Type[Transport]] = {
    FAMILY_DATAPLANE: Transport,
    FAMILY_CLOUDFLARE: CloudflareTransport,
}


def transport_for(
    endpoint: Endpoint,
    session: aiohttp.ClientSession,
    probe_timeout: Optional[float] = None,
) -> Transport:
    """Pick the adapter matching ``endpoint.family``."""
    try:
        cls = TRANSPORTS[endpoint.family]
    except KeyError:
        raise ConfigurationError(
            f"Unknown endpoint family {endpoint.family!r} for endpoint {endpoint.id!r}"
        ) from None
    if probe_timeout is None:
        return cls(session)
    return cls(session, probe_timeout=probe_timeout)


def open_session(connections: int = MAX_CONNECTIONS) -> aiohttp.ClientSession:
    """Session sized for *connections* concurrent loops, without decompression."""
    connector = aiohttp.TCPConnector(
        limit=connections,
        limit_per_host=connections,
        force_close=False,
        enable_cleanup_closed=True,
    )
    return aiohttp.ClientSession(
        headers=COMMON_HEADERS,
        connector=connector,
        auto_decompress=False,
    )
