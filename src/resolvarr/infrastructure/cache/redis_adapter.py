"""Redis adapter built on ``redis.asyncio``."""

from __future__ import annotations

import asyncio
import pickle
from typing import Any

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from resolvarr.domain.entities.errors import CacheUnavailableError

log = structlog.get_logger(__name__)


class RedisAdapter:
    """Async Redis key/value store.

    Values are pickled, matching what diskcache stores natively. Redis
    failures and unreadable values surface as ``CacheUnavailableError`` so
    callers can degrade to a fresh resolution.

    Args:
        url: Redis URL (e.g. ``redis://localhost:6379/0``).
        ttl_seconds: Default TTL.
        max_concurrent: Max parallel Redis operations.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        ttl_seconds: int = 3600,
        max_concurrent: int = 50,
    ) -> None:
        self.url = url
        self.default_ttl = ttl_seconds
        self._client: Redis | None = None
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def __aenter__(self) -> RedisAdapter:
        if self._client is None:
            self._client = Redis.from_url(self.url, decode_responses=False)
            try:
                await self._client.ping()
            except RedisError as e:
                log.error("redis_connection_failed", url=self.url, error=str(e))
                raise
            log.info("redis_connected", url=self.url)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            log.info("redis_closed")

    def _require_open(self) -> Redis:
        if self._client is None:
            raise RuntimeError("Redis not initialized. Use 'async with cache:'")
        return self._client

    async def get(self, key: str) -> Any | None:
        client = self._require_open()
        async with self._semaphore:
            try:
                raw = await client.get(key)
            except RedisError as e:
                raise CacheUnavailableError(f"redis get failed: {e}") from e
        if raw is None:
            log.debug("cache_get", key=key, hit=False)
            return None
        log.debug("cache_get", key=key, hit=True)
        try:
            return pickle.loads(raw)
        except (pickle.UnpicklingError, EOFError, AttributeError, ImportError) as e:
            raise CacheUnavailableError(f"redis value for {key!r} is unreadable: {e}") from e

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        client = self._require_open()
        expire = ttl if ttl is not None else self.default_ttl
        packed = pickle.dumps(value)
        async with self._semaphore:
            try:
                await client.setex(key, expire, packed)
            except RedisError as e:
                raise CacheUnavailableError(f"redis set failed: {e}") from e
        log.debug("cache_set", key=key, ttl=expire, size_bytes=len(packed))

    async def delete(self, key: str) -> bool:
        if self._client is None:
            return False
        async with self._semaphore:
            try:
                deleted = await self._client.delete(key)
            except RedisError as e:
                raise CacheUnavailableError(f"redis delete failed: {e}") from e
        return deleted > 0

    async def keys(self, prefix: str) -> list[str]:
        client = self._require_open()
        found: list[str] = []
        async with self._semaphore:
            try:
                async for raw in client.scan_iter(match=f"{prefix}*"):
                    found.append(raw.decode() if isinstance(raw, bytes) else raw)
            except RedisError as e:
                raise CacheUnavailableError(f"redis scan failed: {e}") from e
        return found

    async def clear(self) -> None:
        if self._client is None:
            return
        async with self._semaphore:
            try:
                await self._client.flushdb()
            except RedisError as e:
                raise CacheUnavailableError(f"redis flush failed: {e}") from e
        log.warning("redis_flushed")
