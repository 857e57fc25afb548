"""Diskcache adapter: SQLite-backed key/value store, no daemon process."""

from __future__ import annotations

import asyncio
import pickle
import sqlite3
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

import structlog
from diskcache import Cache as DiskCache
from diskcache import Timeout as DiskcacheTimeout

from resolvarr.domain.entities.errors import CacheUnavailableError

log = structlog.get_logger(__name__)

T = TypeVar("T")


class DiskcacheAdapter:
    """Async facade over ``diskcache.Cache``.

    diskcache is synchronous, so every call runs in ``asyncio.to_thread``.
    A semaphore bounds parallel disk operations to limit SQLite lock
    contention. SQLite, filesystem, lock-timeout and unpickling failures
    surface as ``CacheUnavailableError``.

    Args:
        directory: SQLite cache directory.
        ttl_seconds: Default TTL for ``set()`` without an explicit value.
        max_concurrent: Max parallel disk operations.
    """

    def __init__(
        self,
        directory: str | Path = "./cache",
        ttl_seconds: int = 3600,
        max_concurrent: int = 10,
    ) -> None:
        self.directory = Path(directory)
        self.default_ttl = ttl_seconds
        self._cache: DiskCache | None = None
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def __aenter__(self) -> DiskcacheAdapter:
        if self._cache is None:
            self._cache = await asyncio.to_thread(DiskCache, str(self.directory))
            log.info("diskcache_opened", directory=str(self.directory))
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._cache is not None:
            await asyncio.to_thread(self._cache.close)
            self._cache = None
            log.info("diskcache_closed", directory=str(self.directory))

    def _require_open(self) -> DiskCache:
        if self._cache is None:
            raise RuntimeError(
                "Cache not initialized. Use 'async with cache:' first."
            )
        return self._cache

    async def _run(self, op: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        async with self._semaphore:
            try:
                return await asyncio.to_thread(fn, *args, **kwargs)
            except (sqlite3.Error, OSError, DiskcacheTimeout, pickle.UnpicklingError) as e:
                raise CacheUnavailableError(f"diskcache {op} failed: {e}") from e

    async def get(self, key: str) -> Optional[Any]:
        cache = self._require_open()
        value = await self._run("get", cache.get, key, default=None)
        log.debug("cache_get", key=key, hit=value is not None)
        return value

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        cache = self._require_open()
        expire = ttl if ttl is not None else self.default_ttl
        await self._run("set", cache.set, key, value, expire=expire)
        log.debug("cache_set", key=key, ttl=expire)

    async def delete(self, key: str) -> bool:
        if self._cache is None:
            return False
        deleted = await self._run("delete", self._cache.delete, key)
        log.debug("cache_delete", key=key, deleted=deleted)
        return bool(deleted)

    async def keys(self, prefix: str) -> list[str]:
        """Keys starting with *prefix*; expired entries are skipped."""
        cache = self._require_open()

        def _scan() -> list[str]:
            return [
                key
                for key in cache.iterkeys()
                if isinstance(key, str) and key.startswith(prefix) and key in cache
            ]

        return await self._run("keys", _scan)

    async def clear(self) -> None:
        if self._cache is None:
            return
        await self._run("clear", self._cache.clear)
        log.warning("cache_cleared", directory=str(self.directory))
