"""Asks the server for a lower-bitrate source, once per session."""

from __future__ import annotations

import httpx
import structlog

from resolvarr.client.api_client import ResolvarrApiClient
from resolvarr.client.session import PlaybackSession

log = structlog.get_logger(__name__)


class FallbackController:
    """Requests at most one active fallback per playback session.

    A trigger while a fallback is active is a no-op. The flag is only
    cleared by ``PlaybackSession.reset()`` or new content.
    """

    def __init__(self, api: ResolvarrApiClient) -> None:
        self._api = api

    async def maybe_fallback(self, session: PlaybackSession) -> str | None:
        """Switch *session* to an alternate source; returns its URL or None."""
        if session.fallback.active:
            log.debug("fallback_already_active", content=session.request.describe())
            return None

        try:
            data = await self._api.request_fallback(
                session.request,
                current_bitrate=session.current_bitrate_mbps,
                current_file_name=session.file_name or None,
            )
        except httpx.HTTPError as e:
            log.warning("fallback_request_failed", error=str(e))
            return None

        stream_url = data.get("streamUrl")
        if not stream_url:
            log.info("fallback_unavailable", content=session.request.describe())
            return None

        session.fallback.active = True
        session.switch_source(
            stream_url, data.get("fileName", ""), data.get("estimatedBitrateMbps")
        )
        log.info("fallback_activated", content=session.request.describe(), file_name=session.file_name)
        return stream_url

    async def on_buffering(self, session: PlaybackSession) -> str | None:
        """Record a buffering event and fall back when the detector says so."""
        if not session.on_buffering():
            return None
        return await self.maybe_fallback(session)
