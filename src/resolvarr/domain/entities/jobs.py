"""Resolution job entity and its status state machine."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from resolvarr.domain.entities.errors import JobCancelledError
from resolvarr.domain.entities.media import ContentRequest, ImmediateSource


class JobStatus(str, Enum):
    SEARCHING = "searching"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset({JobStatus.COMPLETED, JobStatus.ERROR, JobStatus.CANCELLED})

# Allowed forward moves. Staying in the same non-terminal state is allowed
# (progress/message updates); terminal states accept nothing.
_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.SEARCHING: frozenset(
        {
            JobStatus.SEARCHING,
            JobStatus.DOWNLOADING,
            JobStatus.COMPLETED,
            JobStatus.ERROR,
            JobStatus.CANCELLED,
        }
    ),
    JobStatus.DOWNLOADING: frozenset(
        {
            JobStatus.DOWNLOADING,
            JobStatus.COMPLETED,
            JobStatus.ERROR,
            JobStatus.CANCELLED,
        }
    ),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.ERROR: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    """Return True if *current* may move to *target*."""
    return target in _TRANSITIONS[current]


@dataclass(frozen=True)
class ResolutionJob:
    """Snapshot of an in-flight cloud resolution.

    Snapshots are immutable; the job manager swaps in a new snapshot on
    every accepted update.
    """

    job_id: str
    content_info: ContentRequest
    created_at: datetime
    status: JobStatus = JobStatus.SEARCHING
    progress: int = 0
    message: str = "Searching for content..."
    result: ImmediateSource | None = None
    error: str | None = None
    attempted_sources: tuple[str, ...] = field(default_factory=tuple)
    completed_at: datetime | None = None


class CancellationToken:
    """Cooperative cancellation flag handed to every backend call of a job.

    Cancellation is checkpoint-based: workers call :meth:`raise_if_cancelled`
    before and after each network round-trip. An in-flight call is never
    aborted by the token itself.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise JobCancelledError("job cancelled")

    async def sleep(self, seconds: float) -> None:
        """Sleep up to *seconds*, waking early (and raising) on cancel."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise JobCancelledError("job cancelled")
