"""Port for the resolved-link cache."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from resolvarr.domain.entities.media import ContentRequest, ResolvedLink


@runtime_checkable
class ResolvedLinkRepository(Protocol):
    """Append-only store of resolved stream links, freshest row wins."""

    async def get(
        self,
        content_id: str,
        media_type: str,
        season: int | None = None,
        episode: int | None = None,
    ) -> ResolvedLink | None: ...

    async def put(
        self,
        request: ContentRequest,
        stream_url: str,
        file_name: str,
        *,
        estimated_bitrate_mbps: float | None = None,
    ) -> ResolvedLink: ...

    async def sweep_expired(self) -> int: ...
