"""Thin async client for the resolvarr HTTP API."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from resolvarr.domain.entities.bandwidth import StutterSettings
from resolvarr.domain.entities.media import ContentRequest

log = structlog.get_logger(__name__)

_API_PREFIX = "/api/v1"


def _request_body(request: ContentRequest) -> dict[str, Any]:
    body: dict[str, Any] = {
        "contentId": request.content_id,
        "mediaType": request.media_type,
        "title": request.title,
        "year": request.year,
        "season": request.season,
        "episode": request.episode,
        "runtimeMinutes": request.runtime_minutes,
    }
    return {k: v for k, v in body.items() if v is not None}


class ResolvarrApiClient:
    """Async API client used by playback clients.

    HTTP errors propagate as ``httpx.HTTPError``; callers on the playback
    path decide what to swallow.
    """

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        base_url: str,
        user_id: str = "anonymous",
    ) -> None:
        self._http = http_client
        self._base = base_url.rstrip("/") + _API_PREFIX
        self._headers = {"X-User-Id": user_id}

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._http

    def url(self, path: str) -> str:
        return f"{self._base}{path}"

    async def _json(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        resp = await self._http.request(
            method, self.url(path), headers=self._headers, **kwargs
        )
        resp.raise_for_status()
        return resp.json()

    # --- resolution ---

    async def resolve(self, request: ContentRequest) -> dict[str, Any]:
        return await self._json("POST", "/resolve", json=_request_body(request))

    async def poll_job(self, job_id: str) -> dict[str, Any] | None:
        """Job snapshot, or None once the job is gone (restart resolution)."""
        resp = await self._http.get(
            self.url(f"/resolve/jobs/{job_id}"), headers=self._headers
        )
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    async def cancel_job(self, job_id: str) -> None:
        await self._json("DELETE", f"/resolve/jobs/{job_id}")

    async def request_fallback(
        self,
        request: ContentRequest,
        *,
        current_bitrate: float | None = None,
        current_file_name: str | None = None,
    ) -> dict[str, Any]:
        body = _request_body(request)
        if current_bitrate is not None:
            body["currentBitrate"] = current_bitrate
        if current_file_name:
            body["currentFileName"] = current_file_name
        return await self._json("POST", "/fallback", json=body)

    # --- bandwidth ---

    def test_stream_url(self, duration: int) -> str:
        return self.url(f"/bandwidth/test-stream?duration={duration}")

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._headers)

    async def report_bandwidth(
        self,
        measured_mbps: float,
        *,
        duration_ms: int | None = None,
        trigger: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"measuredMbps": measured_mbps}
        if duration_ms is not None:
            body["durationMs"] = duration_ms
        if trigger is not None:
            body["trigger"] = trigger
        return await self._json("POST", "/bandwidth/report", json=body)

    async def bandwidth_status(self) -> dict[str, Any]:
        return await self._json("GET", "/bandwidth/status")

    async def playback_settings(self) -> StutterSettings:
        data = await self._json("GET", "/settings/playback")
        return StutterSettings(
            low_threshold=int(data["stutterBufferLowThreshold"]),
            consecutive_threshold=int(data["stutterConsecutiveThreshold"]),
            window_ms=int(data["stutterTimeWindowMs"]),
        )
