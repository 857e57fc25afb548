"""Builds the configured ``CachePort`` adapter."""

from __future__ import annotations

import structlog

from resolvarr.domain.ports.cache import CachePort
from resolvarr.infrastructure.cache.diskcache_adapter import DiskcacheAdapter
from resolvarr.infrastructure.cache.redis_adapter import RedisAdapter
from resolvarr.infrastructure.config.schema import CacheConfig

log = structlog.get_logger(__name__)


def create_cache(config: CacheConfig) -> CachePort:
    """Return an unopened adapter for ``config.backend``.

    Raises:
        ValueError: Unknown backend name.
    """
    ttl_seconds = int(config.link_ttl_hours * 3600)
    if config.backend == "diskcache":
        log.info(
            "cache_factory_create",
            backend=config.backend,
            directory=str(config.directory),
            max_concurrent=config.max_concurrent,
        )
        return DiskcacheAdapter(
            directory=config.directory,
            ttl_seconds=ttl_seconds,
            max_concurrent=config.max_concurrent,
        )
    if config.backend == "redis":
        log.info("cache_factory_create", backend=config.backend, url=config.redis_url)
        return RedisAdapter(url=config.redis_url, ttl_seconds=ttl_seconds)
    raise ValueError(
        f"Unknown cache backend: {config.backend!r}. Must be 'diskcache' or 'redis'."
    )
