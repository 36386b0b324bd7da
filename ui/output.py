"""
Output formatting -- JSON export, plain text, and CSV.
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def create_result_json(
    report_dict: Dict[str, Any],
    user_location: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build the exported result document from ``SpeedtestReport.to_dict()``."""
    latency = report_dict.get("latency", {})
    download = report_dict.get("download", {})
    upload = report_dict.get("upload", {})
    endpoint = report_dict.get("endpoint", {})

    result: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "endpoint_id": endpoint.get("id", ""),
        "endpoint": endpoint,
        "ping": latency.get("ping"),
        "jitter": latency.get("jitter"),
        "download_mbps": download.get("mbps", 0),
        "upload_mbps": upload.get("mbps", 0),
        "latency": latency,
        "download": download,
        "upload": upload,
    }

    if report_dict.get("quality"):
        result["quality"] = report_dict["quality"]
    if report_dict.get("capabilities"):
        result["capabilities"] = report_dict["capabilities"]
    if report_dict.get("ranking"):
        result["ranking"] = report_dict["ranking"]
    if user_location:
        result["client"] = user_location

    return result


def history_record(result: Dict[str, Any]) -> Dict[str, Any]:
    """Flat record kept in the local history (no raw samples)."""
    keys = ("timestamp", "endpoint_id", "ping", "jitter", "download_mbps", "upload_mbps")
    record = {k: result.get(k) for k in keys}
    quality = result.get("quality")
    if quality:
        record["grade"] = quality.get("grade")
    return record


def save_json(result: Dict[str, Any], filepath: str) -> None:
    """Write *result* to *filepath* atomically (write-tmp then rename)."""
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(result, fh, indent=2, ensure_ascii=False)
        os.replace(tmp, filepath)
    except OSError as exc:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise OSError(f"Failed to save JSON to {filepath}: {exc}") from exc


# ---------------------------------------------------------------------------
# Plain-text / CSV helpers
# ---------------------------------------------------------------------------

def format_text_result(
    ping_ms: float,
    jitter_ms: float,
    download_mbps: float,
    upload_mbps: float,
    endpoint_name: str,
    grade: str = "",
) -> str:
    sep = "=" * 50
    lines = [
        sep,
        "Speedtest Results",
        sep,
        f"Endpoint: {endpoint_name}",
        "-" * 50,
        f"Ping: {ping_ms:.1f} ms (jitter: {jitter_ms:.2f} ms)",
        f"Download: {download_mbps:.2f} Mbps",
        f"Upload: {upload_mbps:.2f} Mbps",
    ]
    if grade:
        lines.append(f"Grade: {grade}")
    lines.append(sep)
    return "\n".join(lines)


def _csv_escape(value: str) -> str:
    if any(c in value for c in ',"\n\r'):
        return '"' + value.replace('"', '""') + '"'
    return value


def format_csv_header() -> str:
    return "timestamp,endpoint,ping_ms,jitter_ms,download_mbps,upload_mbps"


def format_csv_row(
    endpoint_name: str,
    ping_ms: float,
    jitter_ms: float,
    download_mbps: float,
    upload_mbps: float,
) -> str:
    ts = datetime.now(timezone.utc).isoformat()
    return (
        f"{ts},{_csv_escape(endpoint_name)},{ping_ms:.2f},{jitter_ms:.2f},"
        f"{download_mbps:.2f},{upload_mbps:.2f}"
    )
