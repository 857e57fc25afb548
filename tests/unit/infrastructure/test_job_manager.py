"""Tests for ResolutionJobManager."""

from __future__ import annotations

import asyncio

import pytest

from resolvarr.domain.entities.errors import (
    JobNotFoundError,
    NotFoundError,
    ResolutionError,
)
from resolvarr.domain.entities.jobs import CancellationToken, JobStatus
from resolvarr.domain.entities.media import ContentRequest, ImmediateSource, SourceKind
from resolvarr.infrastructure.jobs.job_manager import ResolutionJobManager

from fakes import FakeClock


def _make_manager(clock: FakeClock) -> ResolutionJobManager:
    counter = iter(range(1, 1000))
    return ResolutionJobManager(clock=clock, id_factory=lambda: f"job-{next(counter)}")


class TestJobTable:
    def test_create_starts_searching(
        self, clock: FakeClock, movie_request: ContentRequest
    ) -> None:
        jm = _make_manager(clock)
        job_id = jm.create(movie_request)

        job = jm.get(job_id)
        assert job_id == "job-1"
        assert job.status is JobStatus.SEARCHING
        assert job.progress == 0
        assert job.created_at == clock.now
        assert jm.active_count == 1

    def test_get_unknown_raises(self, clock: FakeClock) -> None:
        with pytest.raises(JobNotFoundError):
            _make_manager(clock).get("nope")

    def test_lifecycle_searching_downloading_completed(
        self, clock: FakeClock, episode_request: ContentRequest
    ) -> None:
        jm = _make_manager(clock)
        job_id = jm.create(episode_request)

        jm.update(job_id, status=JobStatus.DOWNLOADING, progress=40)
        assert jm.get(job_id).status is JobStatus.DOWNLOADING

        result = ImmediateSource("http://c/x.mkv", "x.mkv", SourceKind.CLOUD_BACKEND)
        jm.update(job_id, status=JobStatus.COMPLETED, result=result)
        job = jm.get(job_id)
        assert job.status is JobStatus.COMPLETED
        assert job.progress == 100
        assert job.completed_at == clock.now
        assert job.result == result

        # terminal snapshots never change again
        assert jm.update(job_id, status=JobStatus.ERROR, error="x") is None
        assert jm.update(job_id, message="late") is None
        assert jm.get(job_id).status is JobStatus.COMPLETED
        assert jm.active_count == 0

    def test_progress_is_monotonic_and_clamped(
        self, clock: FakeClock, movie_request: ContentRequest
    ) -> None:
        jm = _make_manager(clock)
        job_id = jm.create(movie_request)
        jm.update(job_id, status=JobStatus.DOWNLOADING, progress=60)
        jm.update(job_id, progress=30)
        assert jm.get(job_id).progress == 60
        jm.update(job_id, progress=250)
        assert jm.get(job_id).progress == 100

    def test_illegal_transition_rejected(
        self, clock: FakeClock, movie_request: ContentRequest
    ) -> None:
        jm = _make_manager(clock)
        job_id = jm.create(movie_request)
        jm.update(job_id, status=JobStatus.DOWNLOADING)
        assert jm.update(job_id, status=JobStatus.SEARCHING) is None
        assert jm.get(job_id).status is JobStatus.DOWNLOADING

    def test_unknown_field_raises(self, clock: FakeClock, movie_request: ContentRequest) -> None:
        jm = _make_manager(clock)
        job_id = jm.create(movie_request)
        with pytest.raises(TypeError):
            jm.update(job_id, created_at=clock.now)

    def test_fail_records_code(self, clock: FakeClock, movie_request: ContentRequest) -> None:
        jm = _make_manager(clock)
        job_id = jm.create(movie_request)
        jm.fail(job_id, NotFoundError("nothing"))
        job = jm.get(job_id)
        assert job.status is JobStatus.ERROR
        assert job.error == "not_found"
        assert job.message == "nothing"


class TestCancelAndReap:
    def test_cancel_removes_and_signals(
        self, clock: FakeClock, movie_request: ContentRequest
    ) -> None:
        jm = _make_manager(clock)
        job_id = jm.create(movie_request)
        token = jm.token(job_id)

        assert jm.cancel(job_id) is True
        assert token.cancelled
        with pytest.raises(JobNotFoundError):
            jm.get(job_id)

    def test_cancel_is_idempotent(self, clock: FakeClock, movie_request: ContentRequest) -> None:
        jm = _make_manager(clock)
        job_id = jm.create(movie_request)
        assert jm.cancel(job_id) is True
        assert jm.cancel(job_id) is False
        assert jm.cancel("unknown") is False

    def test_cancel_terminal_job_is_noop(
        self, clock: FakeClock, movie_request: ContentRequest
    ) -> None:
        jm = _make_manager(clock)
        job_id = jm.create(movie_request)
        jm.update(job_id, status=JobStatus.COMPLETED)
        assert jm.cancel(job_id) is False
        assert jm.get(job_id).status is JobStatus.COMPLETED

    def test_reap_removes_old_jobs_regardless_of_status(
        self, clock: FakeClock, movie_request: ContentRequest
    ) -> None:
        jm = _make_manager(clock)
        done = jm.create(movie_request)
        jm.update(done, status=JobStatus.COMPLETED)
        live = jm.create(movie_request)
        clock.advance(minutes=4)
        young = jm.create(movie_request)
        clock.advance(minutes=1, seconds=1)

        assert jm.reap() == 2
        with pytest.raises(JobNotFoundError):
            jm.get(done)
        with pytest.raises(JobNotFoundError):
            jm.get(live)
        assert jm.get(young).status is JobStatus.SEARCHING


class TestWorkers:
    async def test_spawn_records_resolution_error(
        self, clock: FakeClock, movie_request: ContentRequest
    ) -> None:
        jm = _make_manager(clock)
        job_id = jm.create(movie_request)

        async def work(jid: str, token: CancellationToken) -> None:
            raise NotFoundError("gone")

        jm.spawn(job_id, work)
        await jm.wait(job_id)
        assert jm.get(job_id).error == "not_found"

    async def test_spawn_records_unexpected_error_generically(
        self, clock: FakeClock, movie_request: ContentRequest
    ) -> None:
        jm = _make_manager(clock)
        job_id = jm.create(movie_request)

        async def work(jid: str, token: CancellationToken) -> None:
            raise RuntimeError("boom")

        jm.spawn(job_id, work)
        await jm.wait(job_id)
        job = jm.get(job_id)
        assert job.status is JobStatus.ERROR
        assert job.error == ResolutionError.code

    async def test_cancel_stops_worker_at_checkpoint(
        self, clock: FakeClock, movie_request: ContentRequest
    ) -> None:
        jm = _make_manager(clock)
        job_id = jm.create(movie_request)
        reached: list[str] = []

        async def work(jid: str, token: CancellationToken) -> None:
            await token.sleep(30)
            reached.append("after-sleep")

        task = jm.spawn(job_id, work)
        await asyncio.sleep(0)
        jm.cancel(job_id)
        await asyncio.wait_for(task, timeout=5)
        assert reached == []

    async def test_shutdown_cancels_workers(
        self, clock: FakeClock, movie_request: ContentRequest
    ) -> None:
        jm = _make_manager(clock)
        jm.start()
        job_id = jm.create(movie_request)

        async def work(jid: str, token: CancellationToken) -> None:
            await asyncio.sleep(30)

        task = jm.spawn(job_id, work)
        await asyncio.sleep(0)
        await jm.shutdown()
        assert task.done()
