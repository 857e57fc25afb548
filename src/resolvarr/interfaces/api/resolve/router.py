"""Resolve, job poll/cancel and fallback endpoints."""

from __future__ import annotations

from typing import Any, cast

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from resolvarr.domain.entities.errors import (
    JobNotFoundError,
    NotFoundError,
    ResolutionError,
)
from resolvarr.domain.entities.jobs import ResolutionJob
from resolvarr.domain.entities.media import ImmediateSource, JobHandle
from resolvarr.interfaces.api.deps import user_id
from resolvarr.interfaces.api.resolve.schemas import (
    ContentRequestBody,
    FallbackRequestBody,
)
from resolvarr.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(tags=["resolve"])


def _job_payload(job: ResolutionJob) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "jobId": job.job_id,
        "status": job.status.value,
        "progress": job.progress,
        "message": job.message,
        "attemptedSources": list(job.attempted_sources),
        "createdAt": job.created_at.isoformat(),
    }
    if job.result is not None:
        payload["streamUrl"] = job.result.stream_url
        payload["fileName"] = job.result.file_name
        payload["sourceKind"] = job.result.source_kind.value
        payload["estimatedBitrateMbps"] = job.result.estimated_bitrate_mbps
    if job.error is not None:
        payload["error"] = job.error
    if job.completed_at is not None:
        payload["completedAt"] = job.completed_at.isoformat()
    return payload


def _error_response(status_code: int, error: ResolutionError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error.code, "message": error.message},
    )


@router.post("/resolve")
async def resolve(
    body: ContentRequestBody,
    request: Request,
    uid: str = Depends(user_id),
) -> JSONResponse:
    """Immediate source (cache/local index) or a job id for the cloud path."""
    state = cast(AppState, request.app.state)
    content = body.to_domain()

    try:
        outcome = await state.resolver.resolve(content, user_id=uid)
    except NotFoundError as e:
        return _error_response(404, e)
    except ResolutionError as e:
        log.error("resolve_failed", content=content.describe(), error=e.code)
        return _error_response(502, e)

    if isinstance(outcome, JobHandle):
        return JSONResponse(
            status_code=202, content={"immediate": False, "jobId": outcome.job_id}
        )

    source = cast(ImmediateSource, outcome)
    return JSONResponse(
        {
            "immediate": True,
            "streamUrl": source.stream_url,
            "fileName": source.file_name,
            "sourceKind": source.source_kind.value,
            "estimatedBitrateMbps": source.estimated_bitrate_mbps,
        }
    )


@router.get("/resolve/jobs/{job_id}")
async def poll_job(job_id: str, request: Request) -> JSONResponse:
    """Job snapshot; 404 once the job is absent or reaped."""
    state = cast(AppState, request.app.state)
    try:
        job = state.job_manager.get(job_id)
    except JobNotFoundError as e:
        log.debug("job_poll_not_found", job_id=job_id)
        return _error_response(404, e)
    return JSONResponse(_job_payload(job))


@router.delete("/resolve/jobs/{job_id}")
async def cancel_job(job_id: str, request: Request) -> dict[str, bool]:
    """Cancel a job. Idempotent: unknown or finished jobs are not an error."""
    state = cast(AppState, request.app.state)
    state.job_manager.cancel(job_id)
    return {"cancelled": True}


@router.post("/fallback")
async def fallback(
    body: FallbackRequestBody,
    request: Request,
    uid: str = Depends(user_id),
) -> dict[str, Any]:
    """Lower-bitrate alternate for the content being played, if any.

    Missing title, runtime and current file come from the cached row that
    resolved this content.
    """
    state = cast(AppState, request.app.state)
    recalled = await state.resolver.recall(
        body.content_id, body.media_type, body.season, body.episode
    )
    content = body.to_domain(recalled)
    if content is None:
        log.info("fallback_unknown_content", content_id=body.content_id)
        return {"streamUrl": None}

    current_file_name = body.current_file_name or (
        recalled.file_name if recalled is not None else None
    )
    alternate = await state.resolver.find_alternate(
        content,
        current_bitrate=body.current_bitrate,
        current_file_name=current_file_name,
        user_id=uid,
    )
    if alternate is None:
        return {"streamUrl": None}
    return {
        "streamUrl": alternate.stream_url,
        "fileName": alternate.file_name,
        "estimatedBitrateMbps": alternate.estimated_bitrate_mbps,
    }
