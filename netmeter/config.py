"""
User configuration file support.

Reads/writes ``~/.netmeter/config.json``.  Missing keys fall back to
``DEFAULTS``; command-line flags override whatever is loaded here.

Supported keys::

    base_url = "http://localhost:3000"   # data-plane service
    endpoint = null            # pin an endpoint id instead of ranking
    ping_count = 20
    download_duration = 10.0
    upload_duration = 10.0
    pretest_duration = 3.0
    connections = null         # fixed connection count; null = adaptive
    submit = false             # POST results to the service
    csv_file = ""              # auto-append CSV path
    log_level = "WARNING"
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from .constants import DEFAULT_BASE_URL, DEFAULT_DURATION, DEFAULT_PING_COUNT, PRETEST_DURATION

logger = logging.getLogger(__name__)

_CONFIG_DIR = os.path.join(Path.home(), ".netmeter")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "base_url": DEFAULT_BASE_URL,
    "endpoint": None,
    "ping_count": DEFAULT_PING_COUNT,
    "download_duration": DEFAULT_DURATION,
    "upload_duration": DEFAULT_DURATION,
    "pretest_duration": PRETEST_DURATION,
    "connections": None,
    "submit": False,
    "csv_file": "",
    "log_level": "WARNING",
}


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def load_config() -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = _config_path()
    config = dict(DEFAULTS)

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Ignoring unreadable config file %s: %s", path, exc)
        return config

    if isinstance(user, dict):
        config.update({k: v for k, v in user.items() if k in DEFAULTS})
    return config


def save_config(config: Dict[str, Any]) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = _config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()
