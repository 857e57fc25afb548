"""Shared fixtures for integration tests.

These tests use real infrastructure components (DiskcacheAdapter,
MountLocalIndex, ResolutionJobManager) with mocked HTTP via respx.
"""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest
import respx

from resolvarr.infrastructure.cache.diskcache_adapter import DiskcacheAdapter


@pytest.fixture()
async def http_client() -> httpx.AsyncClient:
    """Real httpx.AsyncClient for use with respx mocking."""
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture()
async def diskcache(tmp_path: Path) -> DiskcacheAdapter:
    """Real DiskcacheAdapter backed by tmp_path (auto-cleaned)."""
    adapter = DiskcacheAdapter(
        directory=tmp_path / "cache",
        ttl_seconds=3600,
        max_concurrent=5,
    )
    async with adapter:
        yield adapter


@pytest.fixture()
def respx_mock() -> respx.MockRouter:
    """Explicit respx mock router for request interception."""
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture()
def media_root(tmp_path: Path) -> Path:
    """Mount directory with one sizeable 1080p episode file."""
    root = tmp_path / "media"
    episode = root / "Lost" / "Season 01" / "Lost.S01E05.1080p.ENG.mkv"
    episode.parent.mkdir(parents=True)
    with episode.open("wb") as fh:
        # sparse 600 MiB file: size is all the gate looks at
        fh.truncate(600 * 1024 * 1024)
    return root
