"""Domain entities for source resolution.

Pure value objects: no framework dependencies, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum
from typing import Literal, Union

MediaType = Literal["movie", "episode"]

CacheKey = tuple[str, str, Union[int, None], Union[int, None]]


class ResolutionTier(IntEnum):
    """Coarse video resolution buckets (higher value = better quality)."""

    UNKNOWN = 0
    P360 = 360
    P480 = 480
    P720 = 720
    P1080 = 1080
    P2160 = 2160


class SourceKind(str, Enum):
    """Backend a candidate or resolved link came from.

    ``CACHE`` only appears on immediate results served from the
    resolved-link cache.
    """

    LOCAL_INDEX = "localIndex"
    CLOUD_BACKEND = "cloudBackend"
    CACHE = "cache"


@dataclass(frozen=True)
class ContentRequest:
    """A request to locate a playable source for one movie or episode."""

    content_id: str
    media_type: MediaType
    title: str
    year: int | None = None
    season: int | None = None
    episode: int | None = None
    runtime_minutes: float | None = None

    @property
    def cache_key(self) -> CacheKey:
        """``(contentId, mediaType, season, episode)``; movies ignore S/E."""
        if self.media_type == "movie":
            return (self.content_id, self.media_type, None, None)
        return (self.content_id, self.media_type, self.season, self.episode)

    def describe(self) -> str:
        """Short human label, e.g. ``Dune (2021)`` or ``Lost S01E05``."""
        if self.media_type == "episode" and self.season is not None:
            return f"{self.title} S{self.season:02d}E{(self.episode or 0):02d}"
        if self.year:
            return f"{self.title} ({self.year})"
        return self.title


@dataclass(frozen=True)
class Candidate:
    """One file competing to become the resolved source.

    ``order`` is the discovery position inside its source list and is the
    final tie-breaker when ranking.
    """

    identifier: str
    name: str
    size_bytes: int | None
    resolution_tier: ResolutionTier
    audio_score: int
    source_kind: SourceKind
    order: int = 0
    estimated_bitrate_mbps: float | None = None
    over_bandwidth: bool = False


@dataclass(frozen=True)
class ResolvedLink:
    """A cached, playable stream link (one row of the resolution cache).

    ``title``, ``year`` and ``runtime_minutes`` echo the request that produced
    the row so the content can be searched again without the client
    resending them.
    """

    content_id: str
    media_type: MediaType
    stream_url: str
    file_name: str
    created_at: datetime
    expires_at: datetime
    last_accessed_at: datetime
    season: int | None = None
    episode: int | None = None
    title: str | None = None
    year: int | None = None
    runtime_minutes: float | None = None
    estimated_bitrate_mbps: float | None = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_request(self) -> ContentRequest | None:
        """The request this row answered; None for rows stored without a title."""
        if not self.title:
            return None
        return ContentRequest(
            content_id=self.content_id,
            media_type=self.media_type,
            title=self.title,
            year=self.year,
            season=self.season,
            episode=self.episode,
            runtime_minutes=self.runtime_minutes,
        )


@dataclass(frozen=True)
class ImmediateSource:
    """Synchronous resolve result."""

    stream_url: str
    file_name: str
    source_kind: SourceKind
    estimated_bitrate_mbps: float | None = None


@dataclass(frozen=True)
class JobHandle:
    """Asynchronous resolve result: poll the job for completion."""

    job_id: str


ResolveOutcome = Union[ImmediateSource, JobHandle]
