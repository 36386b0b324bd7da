"""
Connection quality rating.

Scores a completed test out of 100 -- download 40 points, upload 30, ping
20, jitter 10 -- and maps the score to a letter grade with a short
description of what the connection is good for.  ``analyze_connection``
lists everyday activities the download rate can and cannot sustain.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, NamedTuple, Tuple


# ---------------------------------------------------------------------------
# Scoring tables: (threshold, points), first match wins
# ---------------------------------------------------------------------------

_DOWNLOAD_POINTS = [(100, 40), (50, 35), (25, 30), (10, 20), (5, 10)]
_UPLOAD_POINTS = [(50, 30), (20, 25), (10, 20), (5, 15), (2, 10)]
_PING_POINTS = [(20, 20), (50, 15), (100, 10), (150, 5)]
_JITTER_POINTS = [(5, 10), (15, 7), (30, 4), (50, 2)]

_GRADES: List[Tuple[float, str, str, str, List[str]]] = [
    (90, "A+", "green", "Excellent - Perfect for any online activity", [
        "8K streaming", "Large file transfers", "Professional gaming",
        "Video conferencing (50+ participants)", "VR/AR applications",
    ]),
    (80, "A", "green", "Great - Excellent for demanding tasks", [
        "4K streaming on multiple devices", "Competitive gaming",
        "Video conferencing (20+ participants)", "Large downloads",
    ]),
    (70, "B", "blue", "Good - Suitable for most online activities", [
        "4K streaming", "Online gaming", "Video conferencing (10 participants)",
        "Remote work", "Smart home devices",
    ]),
    (55, "C", "yellow", "Fair - Adequate for basic tasks", [
        "HD streaming", "Casual gaming", "Video calls (1-on-1)", "Web browsing", "Email",
    ]),
    (40, "D", "red", "Below Average - May experience buffering", [
        "SD streaming", "Light web browsing", "Email", "Social media",
    ]),
    (0, "F", "red", "Poor - Limited functionality", [
        "Text-based content", "Email (text only)", "Basic web browsing",
    ]),
]


@dataclass
class QualityRating:
    grade: str
    score: int
    description: str
    color: str
    suitable_for: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "grade": self.grade,
            "score": self.score,
            "description": self.description,
            "suitable_for": list(self.suitable_for),
        }


def _higher_is_better(value: float, table) -> float:
    for threshold, points in table:
        if value >= threshold:
            return points
    # Below the last tier: scale linearly towards zero.
    last_threshold, last_points = table[-1]
    return max(0.0, value / last_threshold * last_points)


def _lower_is_better(value: float, table, decay: float) -> float:
    for threshold, points in table:
        if value <= threshold:
            return points
    last_threshold, last_points = table[-1]
    return max(0.0, last_points - (value - last_threshold) / decay)


def rate_connection(
    download_mbps: float,
    upload_mbps: float,
    ping_ms: float,
    jitter_ms: float,
) -> QualityRating:
    """Score the four headline metrics and return the matching grade."""
    values = [download_mbps, upload_mbps, ping_ms, jitter_ms]
    if any(math.isnan(v) for v in values):
        raise ValueError("Cannot rate a connection with missing metrics")

    score = (
        _higher_is_better(download_mbps, _DOWNLOAD_POINTS)
        + _higher_is_better(upload_mbps, _UPLOAD_POINTS)
        + _lower_is_better(ping_ms, _PING_POINTS, 50)
        + _lower_is_better(jitter_ms, _JITTER_POINTS, 50)
    )

    for threshold, grade, color, description, uses in _GRADES:
        if score >= threshold:
            return QualityRating(grade, int(score + 0.5), description, color, list(uses))

    _, grade, color, description, uses = _GRADES[-1]
    return QualityRating(grade, int(score + 0.5), description, color, list(uses))


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------

def speed_category(mbps: float) -> str:
    if mbps >= 100:
        return "Ultra Fast"
    if mbps >= 50:
        return "Very Fast"
    if mbps >= 25:
        return "Fast"
    if mbps >= 10:
        return "Moderate"
    if mbps >= 5:
        return "Slow"
    return "Very Slow"


def latency_category(ping_ms: float) -> str:
    if ping_ms <= 20:
        return "Excellent"
    if ping_ms <= 50:
        return "Good"
    if ping_ms <= 100:
        return "Fair"
    if ping_ms <= 150:
        return "Poor"
    return "Very Poor"


# ---------------------------------------------------------------------------
# What the connection can carry
# ---------------------------------------------------------------------------

class Activity(NamedTuple):
    name: str
    required_mbps: float
    description: str


ACTIVITIES: List[Activity] = [
    Activity("Web Browsing", 1, "Basic websites and email"),
    Activity("Social Media", 3, "Scrolling feeds and viewing photos"),
    Activity("Music Streaming", 2, "High quality audio playback"),
    Activity("SD Video (480p)", 3, "Standard definition streaming"),
    Activity("HD Video (720p)", 5, "High definition streaming"),
    Activity("Full HD (1080p)", 8, "Full high definition streaming"),
    Activity("4K Streaming", 25, "Ultra high definition content"),
    Activity("Video Calls (1:1)", 2, "Standard video conferencing"),
    Activity("Video Calls (Group)", 4, "Multi-person video meetings"),
    Activity("Online Gaming", 10, "Multiplayer gaming with low latency"),
    Activity("Game Downloads", 50, "Fast downloads of large games"),
    Activity("Large File Transfers", 30, "Cloud backups and file sharing"),
    Activity("Remote Work", 10, "VPN, file sharing, video calls"),
    Activity("Smart Home Devices", 5, "Multiple IoT devices connected"),
]

# Per-stream download rate in Mbps
HD_STREAM_MBPS = 5
FULL_HD_STREAM_MBPS = 8
FOUR_K_STREAM_MBPS = 25


@dataclass
class ConnectionCapabilities:
    can_support: List[Activity] = field(default_factory=list)
    cannot_support: List[Activity] = field(default_factory=list)
    hd_streams: int = 0
    full_hd_streams: int = 0
    four_k_streams: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "can_support": [a.name for a in self.can_support],
            "cannot_support": [a.name for a in self.cannot_support],
            "streams": {
                "hd": self.hd_streams,
                "full_hd": self.full_hd_streams,
                "4k": self.four_k_streams,
            },
        }


def analyze_connection(download_mbps: float) -> ConnectionCapabilities:
    """Split ``ACTIVITIES`` by whether *download_mbps* meets each one's need,
    and count how many simultaneous video streams fit."""
    if math.isnan(download_mbps):
        raise ValueError("Cannot analyze a connection without a download rate")

    caps = ConnectionCapabilities()
    for activity in ACTIVITIES:
        if download_mbps >= activity.required_mbps:
            caps.can_support.append(activity)
        else:
            caps.cannot_support.append(activity)

    rate = max(0.0, download_mbps)
    caps.hd_streams = int(rate // HD_STREAM_MBPS)
    caps.full_hd_streams = int(rate // FULL_HD_STREAM_MBPS)
    caps.four_k_streams = int(rate // FOUR_K_STREAM_MBPS)
    return caps
