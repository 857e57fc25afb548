"""Cloud resolution backend client: async httpx implementation."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from resolvarr.domain.entities.backends import CloudFile, CloudLink, CloudStatus
from resolvarr.domain.entities.errors import (
    AuthFailureError,
    NotFoundError,
    QuotaExceededError,
    ResolutionError,
    TransientNetworkError,
)
from resolvarr.domain.entities.jobs import CancellationToken
from resolvarr.domain.entities.media import ContentRequest

log = structlog.get_logger(__name__)

_AUTH_STATUSES = frozenset({401, 403})
_QUOTA_STATUSES = frozenset({429, 509})
_READY_STATES = frozenset({"ready", "downloaded", "completed"})
_FAILED_STATES = frozenset({"failed", "error", "dead"})


def _number(value: Any, field: str) -> int | None:
    """Whole part of a numeric JSON field, which may arrive as ``"42.5"``."""
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError) as e:
        raise TransientNetworkError(f"cloud backend sent non-numeric {field}: {value!r}") from e


class HttpxCloudBackend:
    """Implements ``CloudBackendPort`` over a small JSON API.

    Endpoints (relative to ``base_url``):

    - ``POST /jobs`` submits a request, answers ``{"id": ...}``
    - ``GET /jobs/{id}`` answers ``{"status", "progress", "files": [...]}``
    - ``POST /jobs/{id}/links`` with ``{"fileId"}`` answers
      ``{"streamUrl", "fileName"}``
    - ``DELETE /jobs/{id}`` cancels remotely

    The token is checked before and after every round-trip.
    """

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        base_url: str,
        api_token: str | None = None,
        timeout_seconds: float = 15.0,
    ) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {api_token}"} if api_token else {}
        self._timeout = httpx.Timeout(timeout_seconds)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _raise_for_status(resp: httpx.Response, *, op: str) -> None:
        status = resp.status_code
        if status < 400:
            return
        if status in _AUTH_STATUSES:
            raise AuthFailureError(f"cloud backend rejected credentials ({status})")
        if status in _QUOTA_STATUSES:
            raise QuotaExceededError(f"cloud backend quota exceeded ({status})")
        if status == 404 and op in ("submit", "link"):
            raise NotFoundError(f"cloud backend has no source for this content ({op})")
        if status >= 500:
            raise TransientNetworkError(f"cloud backend {op} failed ({status})")
        raise ResolutionError(f"cloud backend {op} rejected ({status})")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        op: str,
        token: CancellationToken | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if token is not None:
            token.raise_if_cancelled()
        try:
            resp = await self._http.request(
                method,
                f"{self._base_url}{path}",
                json=json,
                headers=self._headers,
                timeout=self._timeout,
            )
        except (httpx.TransportError, httpx.TimeoutException) as e:
            log.warning("cloud_backend_network_error", op=op, error=str(e))
            raise TransientNetworkError(f"cloud backend {op}: {e}") from e
        if token is not None:
            token.raise_if_cancelled()

        self._raise_for_status(resp, op=op)
        if not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError as e:
            raise TransientNetworkError(f"cloud backend {op}: invalid JSON") from e
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _parse_files(raw: Any) -> list[CloudFile]:
        files = []
        for item in raw or []:
            if not isinstance(item, dict) or "id" not in item:
                continue
            size = item.get("size", item.get("bytes"))
            files.append(
                CloudFile(
                    file_id=str(item["id"]),
                    name=str(item.get("name") or item.get("path") or item["id"]),
                    size_bytes=_number(size, "size"),
                )
            )
        return files

    # ------------------------------------------------------------------
    # Public API (CloudBackendPort)
    # ------------------------------------------------------------------

    async def submit(self, request: ContentRequest, token: CancellationToken) -> str:
        body = {
            "contentId": request.content_id,
            "mediaType": request.media_type,
            "title": request.title,
            "year": request.year,
            "season": request.season,
            "episode": request.episode,
        }
        data = await self._request("POST", "/jobs", op="submit", token=token, json=body)
        remote_id = data.get("id")
        if not remote_id:
            raise TransientNetworkError("cloud backend submit returned no id")
        log.info("cloud_submitted", remote_id=remote_id, content=request.describe())
        return str(remote_id)

    async def poll(self, remote_id: str, token: CancellationToken) -> CloudStatus:
        data = await self._request("GET", f"/jobs/{remote_id}", op="poll", token=token)
        state = str(data.get("status", "")).lower()
        if state in _FAILED_STATES:
            raise NotFoundError(
                str(data.get("message") or "cloud backend could not fetch content")
            )
        files = self._parse_files(data.get("files"))
        progress = _number(data.get("progress"), "progress") or 0
        return CloudStatus(
            ready=state in _READY_STATES,
            progress=max(0, min(100, progress)),
            files=files,
        )

    async def link(
        self, remote_id: str, file_id: str, token: CancellationToken
    ) -> CloudLink:
        data = await self._request(
            "POST",
            f"/jobs/{remote_id}/links",
            op="link",
            token=token,
            json={"fileId": file_id},
        )
        stream_url = data.get("streamUrl")
        if not stream_url:
            raise TransientNetworkError("cloud backend link returned no streamUrl")
        return CloudLink(stream_url=str(stream_url), file_name=str(data.get("fileName", "")))

    async def cancel(self, remote_id: str) -> None:
        try:
            await self._request("DELETE", f"/jobs/{remote_id}", op="cancel")
        except ResolutionError as e:
            log.warning("cloud_cancel_failed", remote_id=remote_id, error=e.code)
            return
        log.info("cloud_cancelled", remote_id=remote_id)
