"""Bandwidth test, report and status endpoints plus playback settings."""

from __future__ import annotations

from typing import Any, Literal, Optional, cast

import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from resolvarr.interfaces.api.deps import user_id
from resolvarr.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(tags=["bandwidth"])


class BandwidthReportBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    measured_mbps: Any
    duration_ms: Optional[int] = Field(default=None, ge=0)
    trigger: Optional[Literal["startup", "episode-end", "bandwidth-retest", "manual"]] = None


@router.get("/bandwidth/test-stream")
async def test_stream(
    request: Request,
    duration: float = Query(default=5, ge=1, le=10),
    uid: str = Depends(user_id),
) -> StreamingResponse:
    """Random bytes for roughly ``duration`` seconds."""
    state = cast(AppState, request.app.state)
    seconds = state.test_stream.clamp(duration)
    log.info("bandwidth_test_started", user_id=uid, duration=seconds)
    return StreamingResponse(
        state.test_stream.stream(seconds),
        media_type="application/octet-stream",
        headers={"Cache-Control": "no-store", "X-Test-Duration-Seconds": str(seconds)},
    )


@router.post("/bandwidth/report")
async def report(
    body: BandwidthReportBody,
    request: Request,
    uid: str = Depends(user_id),
) -> JSONResponse:
    state = cast(AppState, request.app.state)
    try:
        result = state.bandwidth_monitor.record(
            uid,
            body.measured_mbps,
            duration_ms=body.duration_ms,
            trigger=body.trigger,
        )
    except ValueError as e:
        log.warning("bandwidth_report_rejected", user_id=uid, error=str(e))
        return JSONResponse(status_code=400, content={"error": str(e)})

    return JSONResponse(
        {
            "recorded": result.recorded,
            "reliable": result.reliable,
            "needsTest": result.needs_test,
            "suggestRetest": result.suggest_retest,
            "maxBitrateMbps": round(result.max_bitrate_mbps, 1),
        }
    )


@router.get("/bandwidth/status")
async def status(request: Request, uid: str = Depends(user_id)) -> dict[str, Any]:
    state = cast(AppState, request.app.state)
    s = state.bandwidth_monitor.status(uid)
    payload: dict[str, Any] = {
        "hasMeasurement": s.has_measurement,
        "needsTest": s.needs_test,
        "suggestRetest": s.suggest_retest,
        "safetyMargin": s.safety_margin,
        "sampleCount": s.sample_count,
    }
    if s.has_measurement:
        payload["measuredMbps"] = s.measured_mbps
        payload["measuredAt"] = s.measured_at.isoformat() if s.measured_at else None
        payload["maxBitrateMbps"] = (
            round(s.max_bitrate_mbps, 1) if s.max_bitrate_mbps is not None else None
        )
    return payload


@router.get("/settings/playback")
async def playback_settings(request: Request) -> dict[str, int]:
    """Stutter thresholds the client detector should use."""
    state = cast(AppState, request.app.state)
    settings = state.bandwidth_monitor.stutter_settings()
    return {
        "stutterBufferLowThreshold": settings.low_threshold,
        "stutterConsecutiveThreshold": settings.consecutive_threshold,
        "stutterTimeWindowMs": settings.window_ms,
    }
