"""
Shared constants used across all netmeter modules.

Centralises magic numbers, default headers, and tunables so they live in
exactly one place.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = "netmeter/0.1 (+https://github.com/netmeter/netmeter)"

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Accept-Encoding": "identity",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

# ---------------------------------------------------------------------------
# Data-plane service
# ---------------------------------------------------------------------------

DEFAULT_BASE_URL = "http://localhost:3000"
SERVERS_PATH = "/api/servers"
RESULTS_PATH = "/api/results"

LOCAL_ENDPOINT_ID = "local-server"

CLOUDFLARE_PING_URL = "https://speed.cloudflare.com/__down?bytes=0"
CLOUDFLARE_DOWNLOAD_URL = "https://speed.cloudflare.com/__down"
CLOUDFLARE_UPLOAD_URL = "https://speed.cloudflare.com/__up"

MIN_HISTORY_LIMIT = 1
MAX_HISTORY_LIMIT = 100

# ---------------------------------------------------------------------------
# Latency
# ---------------------------------------------------------------------------

DEFAULT_PING_COUNT = 20
RANKING_PING_COUNT = 5
PROBE_DELAY = 0.05               # 50 ms pause between probes
PROBE_TIMEOUT = 5.0              # bound on a single round trip
RANKING_SENTINEL_MS = 9999.0     # latency given to an unreachable endpoint
MIN_PING_COUNT = 1
MAX_PING_COUNT = 100

# ---------------------------------------------------------------------------
# Connection limits
# ---------------------------------------------------------------------------

MIN_CONNECTIONS = 1
MAX_CONNECTIONS = 32
MIN_FULL_TEST_CONNECTIONS = 8

# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------

DEFAULT_DURATION = 10.0          # seconds for download / upload
MIN_DURATION = 1.0
MAX_DURATION = 300.0

PROGRESS_INTERVAL = 0.1          # at most one snapshot per 100 ms
ERROR_BACKOFF = 0.1              # pause after a failed chunk
CONNECT_TIMEOUT = 5.0
SOCK_READ_TIMEOUT = 10.0

# ---------------------------------------------------------------------------
# Data transfer
# ---------------------------------------------------------------------------

MIB = 1024 * 1024

PRETEST_CONNECTIONS = 4
PRETEST_CHUNK_SIZE = 2 * MIB
PRETEST_DURATION = 3.0

READ_BUFFER_SIZE = 256 * 1024    # body read granularity for downloads
PAYLOAD_CACHE_CAPACITY = 5       # distinct upload chunk sizes kept in memory
