"""Resolution classification and the file-size plausibility gate.

Pure functions, no I/O.
"""

from __future__ import annotations

import re
from typing import Mapping

from resolvarr.domain.entities.media import ResolutionTier

_BYTES_PER_MB = 1024 * 1024

# Checked in order; the first pattern found anywhere in the name wins.
_TIER_PATTERNS: tuple[tuple[re.Pattern[str], ResolutionTier], ...] = (
    (
        re.compile(r"(?<![a-z0-9])(2160p|4k|uhd)(?![a-z0-9])", re.IGNORECASE),
        ResolutionTier.P2160,
    ),
    (
        re.compile(r"(?<![a-z0-9])(1080[pi]|fhd)(?![a-z0-9])", re.IGNORECASE),
        ResolutionTier.P1080,
    ),
    (
        re.compile(r"(?<![a-z0-9])720p(?![a-z0-9])", re.IGNORECASE),
        ResolutionTier.P720,
    ),
    (
        re.compile(r"(?<![a-z0-9])(480p|sd)(?![a-z0-9])", re.IGNORECASE),
        ResolutionTier.P480,
    ),
    (
        re.compile(r"(?<![a-z0-9])360p(?![a-z0-9])", re.IGNORECASE),
        ResolutionTier.P360,
    ),
)

# Minimum MB per minute of runtime for a file to be plausible at its tier.
DEFAULT_MIN_MB_PER_MINUTE: dict[int, float] = {
    ResolutionTier.P2160: 15.0,
    ResolutionTier.P1080: 5.0,
    ResolutionTier.P720: 2.0,
    ResolutionTier.P480: 1.0,
    ResolutionTier.P360: 0.5,
    ResolutionTier.UNKNOWN: 0.5,
}


def classify_resolution(name: str) -> ResolutionTier:
    """Infer the resolution tier from a file or release name."""
    for pattern, tier in _TIER_PATTERNS:
        if pattern.search(name):
            return tier
    return ResolutionTier.UNKNOWN


def mb_per_minute(size_bytes: int, runtime_minutes: float) -> float:
    return size_bytes / _BYTES_PER_MB / runtime_minutes


def is_valid_source(
    size_bytes: int | None,
    tier: int,
    runtime_minutes: float | None,
    *,
    min_mb_per_minute: Mapping[int, float] | None = None,
) -> bool:
    """Reject files implausibly small for their claimed tier.

    Returns False only when size and runtime are both known and the density
    falls below the tier minimum. Missing data always passes.
    """
    if not size_bytes or not runtime_minutes or runtime_minutes <= 0:
        return True
    table = min_mb_per_minute or DEFAULT_MIN_MB_PER_MINUTE
    minimum = table.get(int(tier), table.get(0, 0.5))
    return mb_per_minute(size_bytes, runtime_minutes) >= minimum


def estimate_bitrate_mbps(
    size_bytes: int | None, runtime_minutes: float | None
) -> float | None:
    """Average bitrate in Mbps, or None when size or runtime is unknown."""
    if not size_bytes or not runtime_minutes or runtime_minutes <= 0:
        return None
    return size_bytes * 8 / (runtime_minutes * 60) / 1_000_000
