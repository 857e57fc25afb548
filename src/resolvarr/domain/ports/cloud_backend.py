"""Port for the slow, quota-limited cloud resolution backend."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from resolvarr.domain.entities.backends import CloudLink, CloudStatus
from resolvarr.domain.entities.jobs import CancellationToken
from resolvarr.domain.entities.media import ContentRequest


@runtime_checkable
class CloudBackendPort(Protocol):
    """Async interface to the cloud backend.

    Every call takes the job's cancellation token. Implementations raise
    the ``ResolutionError`` subclasses from ``domain.entities.errors``.
    """

    async def submit(
        self, request: ContentRequest, token: CancellationToken
    ) -> str:
        """Submit *request*; returns the remote submission id."""
        ...

    async def poll(self, remote_id: str, token: CancellationToken) -> CloudStatus:
        ...

    async def link(
        self, remote_id: str, file_id: str, token: CancellationToken
    ) -> CloudLink:
        """Turn one offered file into a final playable link."""
        ...

    async def cancel(self, remote_id: str) -> None:
        """Best-effort remote cancellation."""
        ...
