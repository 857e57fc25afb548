"""Tests for PlaybackSession and FallbackController."""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx

from resolvarr.client.fallback import FallbackController
from resolvarr.client.session import PlaybackSession
from resolvarr.client.stutter import StutterDetector
from resolvarr.domain.entities.media import ContentRequest


def _make_session(request: ContentRequest) -> PlaybackSession:
    return PlaybackSession(
        request=request,
        stream_url="http://m/dune.2160p.mkv",
        file_name="dune.2160p.mkv",
        current_bitrate_mbps=30.0,
        detector=StutterDetector(clock_ms=lambda: 0),
    )


def _make_api(response: dict | None = None) -> AsyncMock:
    api = AsyncMock()
    api.request_fallback = AsyncMock(
        return_value=response
        if response is not None
        else {
            "streamUrl": "http://m/dune.1080p.mkv",
            "fileName": "dune.1080p.mkv",
            "estimatedBitrateMbps": 12.0,
        }
    )
    return api


class TestFallbackController:
    async def test_switches_source_and_marks_active(self, movie_request: ContentRequest) -> None:
        api = _make_api()
        session = _make_session(movie_request)

        url = await FallbackController(api).maybe_fallback(session)

        assert url == "http://m/dune.1080p.mkv"
        assert session.fallback.active
        assert session.stream_url == "http://m/dune.1080p.mkv"
        assert session.current_bitrate_mbps == 12.0
        api.request_fallback.assert_awaited_once_with(
            movie_request,
            current_bitrate=30.0,
            current_file_name="dune.2160p.mkv",
        )

    async def test_second_trigger_is_noop_while_active(
        self, movie_request: ContentRequest
    ) -> None:
        api = _make_api()
        session = _make_session(movie_request)
        controller = FallbackController(api)

        await controller.maybe_fallback(session)
        assert await controller.maybe_fallback(session) is None
        assert api.request_fallback.await_count == 1

    async def test_reset_allows_new_fallback(self, movie_request: ContentRequest) -> None:
        api = _make_api()
        session = _make_session(movie_request)
        controller = FallbackController(api)

        await controller.maybe_fallback(session)
        session.reset()
        assert not session.fallback.active
        await controller.maybe_fallback(session)
        assert api.request_fallback.await_count == 2

    async def test_no_alternate_leaves_flag_clear(self, movie_request: ContentRequest) -> None:
        session = _make_session(movie_request)
        url = await FallbackController(_make_api({"streamUrl": None})).maybe_fallback(session)
        assert url is None
        assert not session.fallback.active
        assert session.file_name == "dune.2160p.mkv"

    async def test_http_error_swallowed(self, movie_request: ContentRequest) -> None:
        api = _make_api()
        api.request_fallback.side_effect = httpx.ConnectError("offline")
        session = _make_session(movie_request)
        assert await FallbackController(api).maybe_fallback(session) is None
        assert not session.fallback.active

    async def test_buffering_burst_triggers_fallback(
        self, movie_request: ContentRequest
    ) -> None:
        api = _make_api()
        session = _make_session(movie_request)
        controller = FallbackController(api)

        assert await controller.on_buffering(session) is None
        assert await controller.on_buffering(session) == "http://m/dune.1080p.mkv"


class TestPlaybackSession:
    def test_start_new_content_resets(self, movie_request: ContentRequest, episode_request: ContentRequest) -> None:
        session = _make_session(movie_request)
        session.fallback.active = True
        session.on_buffering()

        session.start(episode_request, "http://m/lost.mkv", "lost.mkv", 4.0)

        assert session.request == episode_request
        assert session.stream_url == "http://m/lost.mkv"
        assert session.current_bitrate_mbps == 4.0
        assert not session.fallback.active
        assert session.detector.events == []

    def test_resolve_answer_sets_bitrate(self, movie_request: ContentRequest) -> None:
        session = PlaybackSession.from_response(
            movie_request,
            {
                "type": "immediate",
                "streamUrl": "http://m/dune.2160p.mkv",
                "fileName": "dune.2160p.mkv",
                "estimatedBitrateMbps": 31.5,
            },
        )
        assert session is not None
        assert session.file_name == "dune.2160p.mkv"
        assert session.current_bitrate_mbps == 31.5

    def test_pending_job_answer_has_no_session(self, movie_request: ContentRequest) -> None:
        assert (
            PlaybackSession.from_response(movie_request, {"type": "job", "jobId": "j-1"})
            is None
        )

    def test_finished_job_replaces_source(
        self, movie_request: ContentRequest, episode_request: ContentRequest
    ) -> None:
        session = _make_session(movie_request)
        session.fallback.active = True

        started = session.start_from_response(
            episode_request,
            {
                "jobId": "j-1",
                "status": "completed",
                "streamUrl": "http://c/lost.s01e05.mkv",
                "fileName": "lost.s01e05.mkv",
                "estimatedBitrateMbps": 8.5,
            },
        )

        assert started
        assert session.request == episode_request
        assert session.current_bitrate_mbps == 8.5
        assert not session.fallback.active

    async def test_bitrate_from_resolve_sent_on_fallback(
        self, movie_request: ContentRequest
    ) -> None:
        api = _make_api()
        session = PlaybackSession.from_response(
            movie_request,
            {"streamUrl": "http://m/dune.2160p.mkv", "fileName": "dune.2160p.mkv", "estimatedBitrateMbps": 31.5},
            detector=StutterDetector(clock_ms=lambda: 0),
        )
        assert session is not None

        await FallbackController(api).maybe_fallback(session)

        api.request_fallback.assert_awaited_once_with(
            movie_request,
            current_bitrate=31.5,
            current_file_name="dune.2160p.mkv",
        )
