"""
Data-plane service API client.

Handles endpoint discovery, result submission, and history queries.  All HTTP
work goes through a single ``aiohttp.ClientSession`` managed via
async-context-manager protocol (``async with SpeedtestAPI(url) as api: ...``).
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin, urlparse

import aiohttp

from .constants import (
    CLOUDFLARE_DOWNLOAD_URL,
    CLOUDFLARE_PING_URL,
    CLOUDFLARE_UPLOAD_URL,
    COMMON_HEADERS,
    DEFAULT_BASE_URL,
    LOCAL_ENDPOINT_ID,
    MAX_HISTORY_LIMIT,
    MIN_HISTORY_LIMIT,
    RESULTS_PATH,
    SERVERS_PATH,
    USER_AGENT,
)
from .errors import ConfigurationError, TransportError

logger = logging.getLogger(__name__)

FAMILY_DATAPLANE = "dataplane"
FAMILY_CLOUDFLARE = "cloudflare"
FAMILIES = (FAMILY_DATAPLANE, FAMILY_CLOUDFLARE)


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

def _infer_family(url: str) -> str:
    host = urlparse(url).hostname or ""
    if host == "cloudflare.com" or host.endswith(".cloudflare.com"):
        return FAMILY_CLOUDFLARE
    return FAMILY_DATAPLANE


@dataclass(frozen=True)
class Endpoint:
    """One measurement target: probe, download and upload addresses."""

    id: str
    name: str
    ping_url: str
    download_url: str
    upload_url: str
    location: str = ""
    family: str = FAMILY_DATAPLANE
    distance: float = 0.0

    @property
    def is_local(self) -> bool:
        return self.id == LOCAL_ENDPOINT_ID

    # -- Constructors -------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict, base_url: str = "") -> Endpoint:
        """Build from a server-list entry, resolving relative paths."""
        urls = data.get("endpoints", {})

        def _resolve(key: str) -> str:
            raw = urls.get(key, "")
            return urljoin(base_url, raw) if base_url else raw

        download_url = _resolve("download")
        family = data.get("family") or _infer_family(download_url)
        if family not in FAMILIES:
            raise ConfigurationError(f"Unknown endpoint family {family!r} for endpoint {data.get('id')!r}")
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            location=data.get("location", ""),
            ping_url=_resolve("ping"),
            download_url=download_url,
            upload_url=_resolve("upload"),
            family=family,
            distance=float(data.get("distance", 0)),
        )

    # -- Serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "family": self.family,
            "distance": self.distance,
            "endpoints": {
                "ping": self.ping_url,
                "download": self.download_url,
                "upload": self.upload_url,
            },
        }


CLOUDFLARE_ENDPOINT = Endpoint(
    id="cloudflare",
    name="Cloudflare",
    location="Anycast",
    ping_url=CLOUDFLARE_PING_URL,
    download_url=CLOUDFLARE_DOWNLOAD_URL,
    upload_url=CLOUDFLARE_UPLOAD_URL,
    family=FAMILY_CLOUDFLARE,
)


@dataclass
class UserLocation:
    """Client location as reported alongside the server list."""

    ip: str = "unknown"
    country: str = "Unknown"
    continent: str = "Unknown"

    @classmethod
    def from_dict(cls, data: dict) -> UserLocation:
        return cls(
            ip=data.get("ip", "unknown"),
            country=data.get("country", "Unknown"),
            continent=data.get("continent", "Unknown"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TestRecord:
    """A completed test as submitted to the result store."""

    __test__ = False

    endpoint_id: str
    ping: float
    jitter: float
    download_mbps: float
    upload_mbps: float
    user_agent: str = USER_AGENT
    connection_type: str = "unknown"
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        """Wire format expected by ``POST /api/results``."""
        return {
            "serverId": self.endpoint_id,
            "ping": round(self.ping, 2),
            "jitter": round(self.jitter, 2),
            "downloadMbps": round(self.download_mbps, 2),
            "uploadMbps": round(self.upload_mbps, 2),
            "userAgent": self.user_agent[:500],
            "connectionType": self.connection_type,
        }


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------

class SpeedtestAPI:
    """Async context-manager wrapping the data-plane REST API."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self.endpoints: List[Endpoint] = []
        self.user_location: Optional[UserLocation] = None

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> SpeedtestAPI:
        self._session = aiohttp.ClientSession(
            headers=COMMON_HEADERS,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._session:
            await self._session.close()
            self._session = None

    # -- Internal helpers ---------------------------------------------------

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError(
                "SpeedtestAPI must be used as an async context manager "
                "(async with SpeedtestAPI() as api: ...)"
            )
        return self._session

    def _url(self, path: str) -> str:
        return urljoin(self.base_url, path.lstrip("/"))

    # -- Public methods -----------------------------------------------------

    async def fetch_endpoints(self) -> List[Endpoint]:
        """Return the candidate endpoints offered by the service."""
        session = self._ensure_session()

        async with session.get(self._url(SERVERS_PATH)) as resp:
            resp.raise_for_status()
            data = await resp.json()

        self.user_location = UserLocation.from_dict(data.get("userLocation", {}))
        self.endpoints = [
            Endpoint.from_dict(s, base_url=self.base_url) for s in data.get("servers", [])
        ]
        logger.debug("Fetched %d endpoints from %s", len(self.endpoints), self.base_url)
        return self.endpoints

    async def submit_result(self, record: TestRecord) -> Dict[str, Any]:
        """Store *record* remotely; returns ``{"id": ..., "timestamp": ...}``.

        Not retried.  Callers must not let a failure here fail the test.
        """
        session = self._ensure_session()

        async with session.post(self._url(RESULTS_PATH), json=record.to_payload()) as resp:
            resp.raise_for_status()
            try:
                data = await resp.json(content_type=None)
            except ValueError as exc:
                raise TransportError(f"Malformed result acknowledgement: {exc}", resp.status) from exc

        if not isinstance(data, dict):
            raise TransportError("Result acknowledgement is not an object", resp.status)
        return {"id": data.get("id"), "timestamp": data.get("timestamp")}

    async def fetch_recent_results(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Return the *limit* most recent completed tests, newest first."""
        if not MIN_HISTORY_LIMIT <= limit <= MAX_HISTORY_LIMIT:
            raise ConfigurationError(
                f"History limit must be between {MIN_HISTORY_LIMIT} and {MAX_HISTORY_LIMIT}"
            )
        session = self._ensure_session()

        async with session.get(self._url(RESULTS_PATH), params={"limit": str(limit)}) as resp:
            resp.raise_for_status()
            data = await resp.json()

        results = data.get("results", [])
        return results if isinstance(results, list) else []
