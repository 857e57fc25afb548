"""Bandwidth measurement and playback-health entities."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

BandwidthTrigger = Literal["startup", "episode-end", "bandwidth-retest", "manual"]

BANDWIDTH_TRIGGERS: tuple[str, ...] = (
    "startup",
    "episode-end",
    "bandwidth-retest",
    "manual",
)


@dataclass(frozen=True)
class BandwidthSample:
    """One client-reported throughput measurement. Never mutated."""

    mbps: float
    duration_ms: int | None
    trigger: BandwidthTrigger | None
    observed_at: datetime
    reliable: bool = False


@dataclass(frozen=True)
class BandwidthStatus:
    """Rolling per-user bandwidth view exposed to clients."""

    has_measurement: bool
    needs_test: bool
    suggest_retest: bool
    measured_mbps: float | None = None
    measured_at: datetime | None = None
    max_bitrate_mbps: float | None = None
    safety_margin: float = 1.3
    sample_count: int = 0


@dataclass(frozen=True)
class BandwidthReportResult:
    """Answer to a bandwidth report."""

    recorded: float
    reliable: bool
    needs_test: bool
    suggest_retest: bool
    max_bitrate_mbps: float


@dataclass(frozen=True)
class StutterSettings:
    """Client stutter-detection thresholds."""

    low_threshold: int = 3
    consecutive_threshold: int = 2
    window_ms: int = 30_000


@dataclass
class FallbackSession:
    """Per-playback-session fallback flag.

    At most one fallback is active at a time; only a session reset clears it.
    """

    active: bool = False
