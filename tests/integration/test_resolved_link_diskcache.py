"""Resolved-link repository on a real on-disk cache."""

from __future__ import annotations

from pathlib import Path

import pytest

from resolvarr.domain.entities.media import ContentRequest
from resolvarr.infrastructure.cache.diskcache_adapter import DiskcacheAdapter
from resolvarr.infrastructure.persistence.resolved_link_cache import (
    CacheResolvedLinkRepository,
)

from fakes import FakeClock

pytestmark = pytest.mark.integration


class TestResolvedLinksOnDisk:
    async def test_put_get_and_expiry(
        self, diskcache: DiskcacheAdapter, clock: FakeClock, episode_request: ContentRequest
    ) -> None:
        repo = CacheResolvedLinkRepository(cache=diskcache, clock=clock)
        await repo.put(episode_request, "http://m/lost-105.mkv", "lost-105.mkv")

        clock.advance(hours=47, minutes=59)
        hit = await repo.get("4607", "episode", 1, 5)
        assert hit is not None
        assert hit.stream_url == "http://m/lost-105.mkv"

        clock.advance(minutes=2)
        assert await repo.get("4607", "episode", 1, 5) is None

    async def test_sweep_on_disk(
        self,
        diskcache: DiskcacheAdapter,
        clock: FakeClock,
        movie_request: ContentRequest,
        episode_request: ContentRequest,
    ) -> None:
        repo = CacheResolvedLinkRepository(cache=diskcache, clock=clock)
        await repo.put(movie_request, "http://m/dune.mkv", "dune.mkv")
        clock.advance(hours=40)
        await repo.put(episode_request, "http://m/lost.mkv", "lost.mkv")
        clock.advance(hours=10)

        assert await repo.sweep_expired() == 1
        assert await diskcache.keys("resolvedlink:") == ["resolvedlink:4607:episode:1:5"]
        assert await repo.get("4607", "episode", 1, 5) is not None

    async def test_survives_reopen(
        self, tmp_path: Path, clock: FakeClock, movie_request: ContentRequest
    ) -> None:
        directory = tmp_path / "reopen"
        async with DiskcacheAdapter(directory=directory) as cache:
            await CacheResolvedLinkRepository(cache=cache, clock=clock).put(
                movie_request, "http://m/dune.mkv", "dune.mkv"
            )
        async with DiskcacheAdapter(directory=directory) as cache:
            link = await CacheResolvedLinkRepository(cache=cache, clock=clock).get(
                "438631", "movie"
            )
        assert link is not None
        assert link.file_name == "dune.mkv"
