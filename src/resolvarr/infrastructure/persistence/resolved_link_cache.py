"""Resolved-link repository backed by CachePort (diskcache/redis).

Each ``(contentId, mediaType, season, episode)`` key holds a JSON list of
rows. Writes append; reads pick the freshest non-expired row.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from typing import Any, AsyncIterator, Callable

import structlog

from resolvarr.domain.entities.media import CacheKey, ContentRequest, ResolvedLink
from resolvarr.domain.ports.cache import CachePort

log = structlog.get_logger(__name__)

KEY_PREFIX = "resolvedlink:"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def cache_key_string(key: CacheKey) -> str:
    content_id, media_type, season, episode = key
    s = "-" if season is None else str(season)
    e = "-" if episode is None else str(episode)
    return f"{KEY_PREFIX}{content_id}:{media_type}:{s}:{e}"


def _row_to_dict(row: ResolvedLink) -> dict[str, Any]:
    return {
        "content_id": row.content_id,
        "media_type": row.media_type,
        "season": row.season,
        "episode": row.episode,
        "stream_url": row.stream_url,
        "file_name": row.file_name,
        "created_at": row.created_at.isoformat(),
        "expires_at": row.expires_at.isoformat(),
        "last_accessed_at": row.last_accessed_at.isoformat(),
        "title": row.title,
        "year": row.year,
        "runtime_minutes": row.runtime_minutes,
        "estimated_bitrate_mbps": row.estimated_bitrate_mbps,
    }


def _row_from_dict(d: dict[str, Any]) -> ResolvedLink:
    return ResolvedLink(
        content_id=d["content_id"],
        media_type=d["media_type"],
        season=d.get("season"),
        episode=d.get("episode"),
        stream_url=d["stream_url"],
        file_name=d.get("file_name", ""),
        created_at=datetime.fromisoformat(d["created_at"]),
        expires_at=datetime.fromisoformat(d["expires_at"]),
        last_accessed_at=datetime.fromisoformat(d["last_accessed_at"]),
        title=d.get("title"),
        year=d.get("year"),
        runtime_minutes=d.get("runtime_minutes"),
        estimated_bitrate_mbps=d.get("estimated_bitrate_mbps"),
    )


def _serialize_rows(rows: list[ResolvedLink]) -> str:
    return json.dumps([_row_to_dict(r) for r in rows])


def _deserialize_rows(data: str) -> list[ResolvedLink]:
    return [_row_from_dict(d) for d in json.loads(data)]


@dataclass
class _KeyLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class CacheResolvedLinkRepository:
    """Append-only resolved-link table stored through a CachePort.

    Read-modify-write of one key is serialized by a per-key
    ``asyncio.Lock``; different keys never contend. A key's lock exists only
    while some caller holds or awaits it.

    Args:
        cache: Opened cache adapter.
        ttl_seconds: Row lifetime (48h by default).
        clock: Returns the current aware UTC time.
    """

    def __init__(
        self,
        cache: CachePort,
        ttl_seconds: int = 48 * 3600,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.cache = cache
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._locks: dict[str, _KeyLock] = {}

    @asynccontextmanager
    async def _locked(self, key: str) -> AsyncIterator[None]:
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _KeyLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    async def _load(self, key: str) -> list[ResolvedLink]:
        data = await self.cache.get(key)
        if data is None:
            return []
        try:
            return _deserialize_rows(data)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            log.error("resolved_link_deserialize_error", key=key, error=str(e))
            return []

    async def _store(self, key: str, rows: list[ResolvedLink], now: datetime) -> None:
        if not rows:
            await self.cache.delete(key)
            return
        # The backing key must outlive its longest-lived row.
        remaining = max(r.expires_at for r in rows) - now
        ttl = max(1, int(remaining.total_seconds()) + 1)
        await self.cache.set(key, _serialize_rows(rows), ttl=ttl)

    async def get(
        self,
        content_id: str,
        media_type: str,
        season: int | None = None,
        episode: int | None = None,
    ) -> ResolvedLink | None:
        """Freshest row with ``now < expires_at``; bumps ``last_accessed_at``."""
        if media_type == "movie":
            season = episode = None
        key = cache_key_string((content_id, media_type, season, episode))

        async with self._locked(key):
            rows = await self._load(key)
            now = self._clock()
            live = [r for r in rows if not r.is_expired(now)]
            if not live:
                log.debug("resolved_link_miss", key=key, rows=len(rows))
                return None

            hit = max(live, key=lambda r: r.created_at)
            bumped = replace(hit, last_accessed_at=now)
            rows = [bumped if r is hit else r for r in rows]
            await self._store(key, rows, now)

        log.debug("resolved_link_hit", key=key, file_name=hit.file_name)
        return bumped

    async def put(
        self,
        request: ContentRequest,
        stream_url: str,
        file_name: str,
        *,
        estimated_bitrate_mbps: float | None = None,
    ) -> ResolvedLink:
        """Append a new row expiring ``ttl`` from now."""
        content_id, media_type, season, episode = request.cache_key
        key = cache_key_string(request.cache_key)

        async with self._locked(key):
            now = self._clock()
            row = ResolvedLink(
                content_id=content_id,
                media_type=media_type,
                season=season,
                episode=episode,
                stream_url=stream_url,
                file_name=file_name,
                created_at=now,
                expires_at=now + self.ttl,
                last_accessed_at=now,
                title=request.title,
                year=request.year,
                runtime_minutes=request.runtime_minutes,
                estimated_bitrate_mbps=estimated_bitrate_mbps,
            )
            rows = await self._load(key)
            rows.append(row)
            await self._store(key, rows, now)

        log.info(
            "resolved_link_saved",
            key=key,
            file_name=file_name,
            expires_at=row.expires_at.isoformat(),
        )
        return row

    async def sweep_expired(self) -> int:
        """Delete expired rows across all keys; returns rows removed.

        Each key is locked only for its own rewrite.
        """
        removed = 0
        for key in await self.cache.keys(KEY_PREFIX):
            async with self._locked(key):
                rows = await self._load(key)
                now = self._clock()
                live = [r for r in rows if not r.is_expired(now)]
                if len(live) != len(rows):
                    await self._store(key, live, now)
                    removed += len(rows) - len(live)

        if removed:
            log.info("resolved_link_sweep", removed=removed)
        return removed
