"""Application state container for FastAPI dependency injection."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from starlette.datastructures import State

from resolvarr.infrastructure.config import AppConfig

if TYPE_CHECKING:
    from resolvarr.application.use_cases.resolve_source import SourceResolver
    from resolvarr.domain.ports import CachePort, ResolvedLinkRepository
    from resolvarr.infrastructure.bandwidth import BandwidthMonitor, TestStreamGenerator
    from resolvarr.infrastructure.jobs import ResolutionJobManager
    from resolvarr.infrastructure.periodic import PeriodicTask


class AppState(State):
    """FastAPI application state with all DI resources.

    Lifecycle managed by composition.py::lifespan().
    """

    # Configuration
    config: AppConfig

    # Infrastructure
    cache: CachePort
    http_client: httpx.AsyncClient
    link_sweeper: PeriodicTask

    # Domain ports / services
    link_repo: ResolvedLinkRepository
    job_manager: ResolutionJobManager
    bandwidth_monitor: BandwidthMonitor
    test_stream: TestStreamGenerator

    # Use cases
    resolver: SourceResolver
