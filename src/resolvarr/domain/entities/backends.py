"""Value objects exchanged with the local index and the cloud backend."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class LocalFile:
    """A video file found in the local index."""

    path: str
    file_name: str
    size_bytes: int | None
    stream_url: str = ""


@dataclass(frozen=True)
class CloudFile:
    """A file offered by the cloud backend for a submitted request."""

    file_id: str
    name: str
    size_bytes: int | None = None


@dataclass(frozen=True)
class CloudStatus:
    """Result of polling a cloud submission."""

    ready: bool
    progress: int = 0
    files: list[CloudFile] = field(default_factory=list)


@dataclass(frozen=True)
class CloudLink:
    """Final playable link produced by the cloud backend."""

    stream_url: str
    file_name: str
