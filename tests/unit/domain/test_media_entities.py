"""Tests for media value objects."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from resolvarr.domain.entities.errors import NotFoundError, ResolutionError
from resolvarr.domain.entities.media import ContentRequest, ResolvedLink, SourceKind


class TestContentRequest:
    def test_movie_cache_key_ignores_season_episode(self) -> None:
        req = ContentRequest(
            content_id="1", media_type="movie", title="Heat", season=1, episode=2
        )
        assert req.cache_key == ("1", "movie", None, None)

    def test_episode_cache_key_keeps_numbers(self) -> None:
        req = ContentRequest(
            content_id="9", media_type="episode", title="Lost", season=1, episode=5
        )
        assert req.cache_key == ("9", "episode", 1, 5)

    def test_describe(self, movie_request: ContentRequest, episode_request: ContentRequest) -> None:
        assert movie_request.describe() == "Dune (2021)"
        assert episode_request.describe() == "Lost S01E05"

    def test_describe_without_year(self) -> None:
        req = ContentRequest(content_id="1", media_type="movie", title="Heat")
        assert req.describe() == "Heat"


class TestResolvedLink:
    def test_expired_at_boundary(self) -> None:
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        link = ResolvedLink(
            content_id="1",
            media_type="movie",
            stream_url="http://x/a.mkv",
            file_name="a.mkv",
            created_at=now,
            expires_at=now + timedelta(hours=48),
            last_accessed_at=now,
        )
        assert not link.is_expired(now + timedelta(hours=47, minutes=59))
        assert link.is_expired(now + timedelta(hours=48))


class TestSourceKindAndErrors:
    def test_wire_values(self) -> None:
        assert SourceKind.LOCAL_INDEX.value == "localIndex"
        assert SourceKind.CLOUD_BACKEND.value == "cloudBackend"

    def test_error_code_and_default_message(self) -> None:
        err = NotFoundError()
        assert isinstance(err, ResolutionError)
        assert err.code == "not_found"
        assert err.message == "not_found"
        assert NotFoundError("nothing").message == "nothing"
