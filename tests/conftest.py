"""Shared test fixtures for the resolvarr test suite."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from resolvarr.domain.entities.media import ContentRequest

from fakes import FakeClock, InMemoryCache


# ---------------------------------------------------------------------------
# Domain entity fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def movie_request() -> ContentRequest:
    return ContentRequest(
        content_id="438631",
        media_type="movie",
        title="Dune",
        year=2021,
        runtime_minutes=155,
    )


@pytest.fixture()
def episode_request() -> ContentRequest:
    return ContentRequest(
        content_id="4607",
        media_type="episode",
        title="Lost",
        year=2004,
        season=1,
        episode=5,
        runtime_minutes=22,
    )


# ---------------------------------------------------------------------------
# Infrastructure fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def memory_cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture()
def mock_cache() -> AsyncMock:
    """Mock CachePort."""
    cache = AsyncMock()
    cache.get = AsyncMock(return_value=None)
    cache.set = AsyncMock()
    cache.delete = AsyncMock(return_value=True)
    cache.keys = AsyncMock(return_value=[])
    cache.clear = AsyncMock()
    cache.aclose = AsyncMock()
    return cache
