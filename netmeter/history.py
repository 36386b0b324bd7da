"""
Local result store.

Completed tests are kept as JSON-lines in ``~/.netmeter/history.jsonl``.
Each line is a self-contained record with an ``id`` and ``timestamp``, so the
file can be appended to safely without parsing what is already there.
"""
from __future__ import annotations

import json
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from .constants import MAX_HISTORY_LIMIT, MIN_HISTORY_LIMIT
from .errors import ConfigurationError


_DEFAULT_DIR = os.path.join(Path.home(), ".netmeter")
_DEFAULT_FILE = "history.jsonl"


def _history_path() -> str:
    return os.path.join(_DEFAULT_DIR, _DEFAULT_FILE)


# ---------------------------------------------------------------------------
# Write
# ---------------------------------------------------------------------------

def save_result(record: Dict[str, Any]) -> Dict[str, str]:
    """Append *record*; returns the ``{"id", "timestamp"}`` it was stored under."""
    path = _history_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    stored = dict(record)
    stored.setdefault("id", f"test-{uuid.uuid4().hex[:12]}")
    stored.setdefault("timestamp", datetime.now(timezone.utc).isoformat())

    with open(path, "a", encoding="utf-8") as fh:
        fh.write(json.dumps(stored, ensure_ascii=False) + "\n")

    return {"id": stored["id"], "timestamp": stored["timestamp"]}


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------

def load_history(limit: int = 10) -> List[Dict[str, Any]]:
    """Return the *limit* most recent records, newest first."""
    if not MIN_HISTORY_LIMIT <= limit <= MAX_HISTORY_LIMIT:
        raise ConfigurationError(
            f"History limit must be between {MIN_HISTORY_LIMIT} and {MAX_HISTORY_LIMIT}"
        )

    path = _history_path()
    if not os.path.isfile(path):
        return []

    entries: List[Dict[str, Any]] = []
    with open(path, encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                continue  # skip corrupt lines
            if isinstance(entry, dict):
                entries.append(entry)

    return list(reversed(entries[-limit:]))


def clear_history() -> None:
    path = _history_path()
    if os.path.isfile(path):
        os.unlink(path)
