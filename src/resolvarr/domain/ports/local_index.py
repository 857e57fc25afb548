"""Port for the fast local media index."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from resolvarr.domain.entities.backends import LocalFile
from resolvarr.domain.entities.media import ContentRequest


@runtime_checkable
class LocalIndexPort(Protocol):
    """Searches already-available media files."""

    async def find(
        self, request: ContentRequest, variants: list[str]
    ) -> list[LocalFile]:
        """Return files matching the first title variant that matches anything.

        Files are returned in discovery order and are already constrained
        by media type, season and episode.
        """
        ...
