"""Tests for the diskcache adapter and the cache factory."""

from __future__ import annotations

from pathlib import Path

import pickle
from unittest.mock import AsyncMock

import pytest
from diskcache import Timeout as DiskcacheTimeout

from resolvarr.domain.entities.errors import CacheUnavailableError
from resolvarr.infrastructure.cache.cache_factory import create_cache
from resolvarr.infrastructure.cache.diskcache_adapter import DiskcacheAdapter
from resolvarr.infrastructure.cache.redis_adapter import RedisAdapter
from resolvarr.infrastructure.config.schema import CacheConfig


class TestDiskcacheAdapter:
    async def test_set_get_delete(self, tmp_path: Path) -> None:
        async with DiskcacheAdapter(directory=tmp_path / "c", ttl_seconds=60) as cache:
            await cache.set("k", {"a": 1})
            assert await cache.get("k") == {"a": 1}
            assert await cache.delete("k") is True
            assert await cache.get("k") is None
            assert await cache.delete("k") is False

    async def test_keys_by_prefix(self, tmp_path: Path) -> None:
        async with DiskcacheAdapter(directory=tmp_path / "c") as cache:
            await cache.set("resolvedlink:1", "x")
            await cache.set("resolvedlink:2", "y")
            await cache.set("other", "z")
            assert sorted(await cache.keys("resolvedlink:")) == [
                "resolvedlink:1",
                "resolvedlink:2",
            ]

    async def test_clear(self, tmp_path: Path) -> None:
        async with DiskcacheAdapter(directory=tmp_path / "c") as cache:
            await cache.set("k", 1)
            await cache.clear()
            assert await cache.get("k") is None

    async def test_requires_open(self, tmp_path: Path) -> None:
        cache = DiskcacheAdapter(directory=tmp_path / "c")
        with pytest.raises(RuntimeError):
            await cache.get("k")
        assert await cache.delete("k") is False

    async def test_os_error_becomes_cache_unavailable(self, tmp_path: Path) -> None:
        async with DiskcacheAdapter(directory=tmp_path / "c") as cache:

            def _broken(*args: object, **kwargs: object) -> None:
                raise OSError("disk full")

            with pytest.raises(CacheUnavailableError):
                await cache._run("set", _broken)

    async def test_lock_timeout_becomes_cache_unavailable(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async with DiskcacheAdapter(directory=tmp_path / "c") as cache:

            def _locked(*args: object, **kwargs: object) -> None:
                raise DiskcacheTimeout("database is locked")

            monkeypatch.setattr(cache._cache, "get", _locked)
            with pytest.raises(CacheUnavailableError, match="diskcache get failed"):
                await cache.get("k")

    async def test_unpickling_error_becomes_cache_unavailable(self, tmp_path: Path) -> None:
        async with DiskcacheAdapter(directory=tmp_path / "c") as cache:

            def _corrupt(*args: object, **kwargs: object) -> None:
                raise pickle.UnpicklingError("invalid load key")

            with pytest.raises(CacheUnavailableError):
                await cache._run("get", _corrupt)


class TestRedisAdapter:
    def _open(self, stored: object) -> RedisAdapter:
        adapter = RedisAdapter()
        client = AsyncMock()
        client.get = AsyncMock(return_value=stored)
        adapter._client = client
        return adapter

    async def test_roundtrip_value(self) -> None:
        adapter = self._open(pickle.dumps(["row"]))
        assert await adapter.get("k") == ["row"]

    async def test_miss(self) -> None:
        assert await self._open(None).get("k") is None

    async def test_unreadable_value_becomes_cache_unavailable(self) -> None:
        adapter = self._open(b"\x00not-a-pickle")
        with pytest.raises(CacheUnavailableError, match="unreadable"):
            await adapter.get("resolvedlink:1:movie:-:-")

    async def test_truncated_value_becomes_cache_unavailable(self) -> None:
        adapter = self._open(pickle.dumps({"a": 1})[:5])
        with pytest.raises(CacheUnavailableError):
            await adapter.get("k")


class TestCreateCache:
    def test_diskcache_backend(self, tmp_path: Path) -> None:
        cache = create_cache(CacheConfig(backend="diskcache", directory=tmp_path, link_ttl_hours=48))
        assert isinstance(cache, DiskcacheAdapter)
        assert cache.default_ttl == 48 * 3600
        assert cache.directory == tmp_path

    def test_redis_backend(self) -> None:
        cache = create_cache(CacheConfig(backend="redis", redis_url="redis://cache:6379/1"))
        assert isinstance(cache, RedisAdapter)

    def test_unknown_backend(self) -> None:
        config = CacheConfig.model_construct(backend="memcached", link_ttl_hours=1.0)
        with pytest.raises(ValueError, match="Unknown cache backend"):
            create_cache(config)
