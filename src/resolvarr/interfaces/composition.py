"""Composition root: dependency injection via FastAPI lifespan."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

import httpx
import structlog
from fastapi import FastAPI

from resolvarr.application.use_cases.resolve_source import SourceResolver
from resolvarr.infrastructure.bandwidth import BandwidthMonitor, TestStreamGenerator
from resolvarr.infrastructure.cache.cache_factory import create_cache
from resolvarr.infrastructure.cloud import HttpxCloudBackend
from resolvarr.infrastructure.jobs import ResolutionJobManager
from resolvarr.infrastructure.local_index import MountLocalIndex
from resolvarr.infrastructure.periodic import PeriodicTask
from resolvarr.infrastructure.persistence import CacheResolvedLinkRepository
from resolvarr.infrastructure.sources import CandidateEvaluator, generate_title_variants
from resolvarr.interfaces.app_state import AppState

log = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create every shared resource on startup and tear it down on shutdown.

    Order matters:
        1. Cache + resolved-link repository (+ hourly sweep)
        2. HTTP client (cloud backend)
        3. Job manager (+ reaper)
        4. Bandwidth monitor
        5. Source resolver
    """
    state = cast(AppState, app.state)
    config = state.config

    # 1) Cache
    cache = create_cache(config.cache)
    await cache.__aenter__()
    state.cache = cache
    log.info("cache_initialized", backend=config.cache.backend)

    state.link_repo = CacheResolvedLinkRepository(
        cache=cache,
        ttl_seconds=int(config.cache.link_ttl_hours * 3600),
    )
    state.link_sweeper = PeriodicTask(
        "resolved_link_sweep",
        state.link_repo.sweep_expired,
        config.cache.sweep_interval_seconds,
    )
    state.link_sweeper.start()

    # 2) HTTP client
    state.http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(config.http_timeout_seconds),
        headers={"User-Agent": config.http_user_agent},
        follow_redirects=True,
    )
    log.info("http_client_initialized")

    cloud = None
    if config.cloud.enabled:
        cloud = HttpxCloudBackend(
            http_client=state.http_client,
            base_url=config.cloud.base_url,
            api_token=config.cloud.api_token,
            timeout_seconds=config.cloud.timeout_seconds,
        )
        log.info("cloud_backend_initialized", base_url=config.cloud.base_url)

    local_index = None
    if config.local_index.enabled:
        local_index = MountLocalIndex(config.local_index)
        log.info("local_index_initialized", mount_path=str(config.local_index.mount_path))

    # 3) Job manager
    state.job_manager = ResolutionJobManager(
        max_age_seconds=config.jobs.max_age_seconds,
        reap_interval_seconds=config.jobs.reap_interval_seconds,
    )
    state.job_manager.start()

    # 4) Bandwidth
    state.bandwidth_monitor = BandwidthMonitor(config.bandwidth)
    state.test_stream = TestStreamGenerator(config.bandwidth)

    # 5) Resolver
    state.resolver = SourceResolver(
        links=state.link_repo,
        jobs=state.job_manager,
        evaluator=CandidateEvaluator(
            min_mb_per_minute=config.resolver.min_mb_per_minute,
            default_runtime_minutes=config.resolver.default_runtime_minutes,
        ),
        variants_fn=generate_title_variants,
        resolver_config=config.resolver,
        job_config=config.jobs,
        local_index=local_index,
        cloud=cloud,
        bandwidth=state.bandwidth_monitor,
    )

    log.info("app_startup_complete")

    try:
        yield
    finally:
        await state.job_manager.shutdown()
        log.info("job_manager_stopped")

        await state.link_sweeper.stop()
        log.info("resolved_link_sweep_stopped")

        await state.http_client.aclose()
        log.info("http_client_closed")

        await state.cache.aclose()
        log.info("cache_closed")

        log.info("app_shutdown_complete")
