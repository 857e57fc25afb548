"""FastAPI application factory (create_app)."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from fastapi import FastAPI, Request
from starlette.responses import Response

from resolvarr.infrastructure.config import AppConfig
from resolvarr.interfaces.app_state import AppState
from resolvarr.interfaces.composition import lifespan

log = structlog.get_logger(__name__)


def create_app(config: AppConfig) -> FastAPI:
    """Create FastAPI app: configuration only, no resource initialization.

    Resources (cache, HTTP client, job manager) are created in lifespan().
    """
    app = FastAPI(
        title="Resolvarr",
        description="Media source resolver with bandwidth-aware fallback",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state = AppState()
    app.state.config = config

    from resolvarr.interfaces.api.bandwidth.router import router as bandwidth_router
    from resolvarr.interfaces.api.resolve.router import router as resolve_router

    app.include_router(resolve_router, prefix="/api/v1")
    app.include_router(bandwidth_router, prefix="/api/v1")

    @app.get("/api/v1/healthz")
    async def healthz() -> dict[str, Any]:
        """Liveness check: 200 as long as the process is running."""
        jobs = getattr(app.state, "job_manager", None)
        return {"status": "ok", "activeJobs": jobs.active_count if jobs else 0}

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ):
        start = time.perf_counter()
        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            status_code = getattr(locals().get("response", None), "status_code", 500)

            log.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=round(duration_ms, 2),
                client_host=(request.client.host if request.client else None),
            )

    return app
