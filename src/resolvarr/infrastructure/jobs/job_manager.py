"""In-memory resolution job table with a periodic reaper."""

from __future__ import annotations

import asyncio
import uuid
from contextlib import suppress
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

import structlog

from resolvarr.domain.entities.errors import (
    JobCancelledError,
    JobNotFoundError,
    ResolutionError,
)
from resolvarr.domain.entities.jobs import (
    CancellationToken,
    JobStatus,
    ResolutionJob,
    can_transition,
)
from resolvarr.domain.entities.media import ContentRequest
from resolvarr.infrastructure.periodic import PeriodicTask

log = structlog.get_logger(__name__)

JobWork = Callable[[str, CancellationToken], Awaitable[None]]

_UPDATABLE_FIELDS = frozenset(
    {"status", "progress", "message", "result", "error", "attempted_sources"}
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_job_id() -> str:
    return uuid.uuid4().hex


class ResolutionJobManager:
    """Owns the job table, per-job cancellation tokens and worker tasks.

    All mutations happen synchronously between awaits, so each create,
    update or removal is atomic with respect to other coroutines. Job
    snapshots are immutable and replaced wholesale.

    Construct once per process; call :meth:`start` to begin reaping and
    :meth:`shutdown` to stop everything.
    """

    def __init__(
        self,
        *,
        max_age_seconds: float = 300,
        reap_interval_seconds: float = 300,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_job_id,
    ) -> None:
        self._max_age = timedelta(seconds=max_age_seconds)
        self._clock = clock
        self._id_factory = id_factory
        self._jobs: dict[str, ResolutionJob] = {}
        self._tokens: dict[str, CancellationToken] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._reaper = PeriodicTask("job_reaper", self._reap_tick, reap_interval_seconds)

    # --- lifecycle ---

    def start(self) -> None:
        self._reaper.start()

    async def shutdown(self) -> None:
        await self._reaper.stop()
        for token in self._tokens.values():
            token.cancel()
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        log.info("job_manager_shutdown", cancelled_workers=len(tasks))

    # --- table operations ---

    @property
    def active_count(self) -> int:
        return sum(1 for job in self._jobs.values() if not job.status.is_terminal)

    def create(self, content_info: ContentRequest) -> str:
        job_id = self._id_factory()
        self._jobs[job_id] = ResolutionJob(
            job_id=job_id,
            content_info=content_info,
            created_at=self._clock(),
        )
        self._tokens[job_id] = CancellationToken()
        log.info("job_created", job_id=job_id, content=content_info.describe())
        return job_id

    def get(self, job_id: str) -> ResolutionJob:
        """Return the current snapshot.

        Raises:
            JobNotFoundError: Unknown or already reaped job.
        """
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(f"job {job_id} not found")
        return job

    def token(self, job_id: str) -> CancellationToken:
        token = self._tokens.get(job_id)
        if token is None:
            raise JobNotFoundError(f"job {job_id} not found")
        return token

    def update(self, job_id: str, **changes: Any) -> ResolutionJob | None:
        """Apply *changes* to a live job.

        No-op (returns None) when the job is absent, already terminal, or the
        requested status move is not allowed by the state machine.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise TypeError(f"cannot update job fields: {sorted(unknown)}")

        current = self._jobs.get(job_id)
        if current is None or current.status.is_terminal:
            return None

        target = JobStatus(changes.get("status", current.status))
        if not can_transition(current.status, target):
            log.warning(
                "job_transition_rejected",
                job_id=job_id,
                current=current.status.value,
                target=target.value,
            )
            return None
        changes["status"] = target

        if "progress" in changes:
            changes["progress"] = max(current.progress, min(100, int(changes["progress"])))
        if target.is_terminal:
            changes.setdefault("completed_at", self._clock())
            if target is JobStatus.COMPLETED:
                changes.setdefault("progress", 100)

        updated = replace(current, **changes)
        self._jobs[job_id] = updated
        if target is not current.status:
            log.info(
                "job_status_changed",
                job_id=job_id,
                status=target.value,
                error=updated.error,
            )
        return updated

    def fail(self, job_id: str, error: ResolutionError) -> ResolutionJob | None:
        return self.update(
            job_id,
            status=JobStatus.ERROR,
            error=error.code,
            message=error.message,
        )

    def cancel(self, job_id: str) -> bool:
        """Cancel a live job and drop it from the table.

        Idempotent: absent or terminal jobs return False. The worker is only
        signalled; it stops at its next checkpoint.
        """
        current = self._jobs.get(job_id)
        if current is None or current.status.is_terminal:
            return False

        self._jobs.pop(job_id, None)
        token = self._tokens.pop(job_id, None)
        if token is not None:
            token.cancel()
        log.info("job_cancelled", job_id=job_id, status=current.status.value)
        return True

    def reap(self, now: datetime | None = None) -> int:
        """Remove every job older than the max age, whatever its status."""
        now = now or self._clock()
        cutoff = now - self._max_age
        expired = [jid for jid, job in list(self._jobs.items()) if job.created_at < cutoff]
        for job_id in expired:
            self._jobs.pop(job_id, None)
            token = self._tokens.pop(job_id, None)
            if token is not None:
                token.cancel()
        if expired:
            log.info("jobs_reaped", count=len(expired), remaining=len(self._jobs))
        return len(expired)

    async def _reap_tick(self) -> None:
        self.reap()

    # --- workers ---

    def spawn(self, job_id: str, work: JobWork) -> asyncio.Task[None]:
        """Run *work* for *job_id* as a background task.

        Errors escaping *work* are recorded on the job: resolution errors
        keep their code, anything else becomes a generic failure.
        """
        token = self.token(job_id)

        async def _run() -> None:
            try:
                await work(job_id, token)
            except JobCancelledError:
                log.info("job_worker_stopped", job_id=job_id)
            except ResolutionError as e:
                self.fail(job_id, e)
            except asyncio.CancelledError:
                raise
            except Exception:
                log.error("job_worker_error", job_id=job_id, exc_info=True)
                self.fail(job_id, ResolutionError("unexpected resolution failure"))

        task = asyncio.create_task(_run(), name=f"resolution-job-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda _t: self._tasks.pop(job_id, None))
        return task

    async def wait(self, job_id: str) -> None:
        """Await the worker of *job_id* if one is running."""
        task = self._tasks.get(job_id)
        if task is not None:
            with suppress(asyncio.CancelledError):
                await task
