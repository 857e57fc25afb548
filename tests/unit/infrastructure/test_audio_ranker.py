"""Tests for audio scoring and candidate ranking."""

from __future__ import annotations

import pytest

from resolvarr.domain.entities.media import Candidate, ResolutionTier, SourceKind
from resolvarr.infrastructure.sources.audio_ranker import rank_candidates, score_audio


def _make_candidate(
    name: str,
    *,
    tier: ResolutionTier = ResolutionTier.P1080,
    size: int | None = 1_000,
    order: int = 0,
    bitrate: float | None = None,
    over: bool = False,
) -> Candidate:
    return Candidate(
        identifier=f"id-{name}",
        name=name,
        size_bytes=size,
        resolution_tier=tier,
        audio_score=score_audio(name),
        source_kind=SourceKind.LOCAL_INDEX,
        order=order,
        estimated_bitrate_mbps=bitrate,
        over_bandwidth=over,
    )


class TestScoreAudio:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("Movie.2021.ENG.DUAL.1080p.mkv", 50),
            ("Movie.2021.MULTI.1080p.mkv", 50),
            ("Movie.2021.ITA.1080p.mkv", -30),
            ("Movie.2021.ITA.ENG.1080p.mkv", 50),
            ("Movie.2021.ENG.SUBS.mkv", 70),
            ("Movie.2021.GERMAN.SUBBED.mkv", -10),
            ("Movie.2021.1080p.mkv", 0),
        ],
    )
    def test_scores(self, name: str, expected: int) -> None:
        assert score_audio(name) == expected

    def test_underscore_separated_markers(self) -> None:
        assert score_audio("Movie_ITA_1080p.mkv") == -30

    def test_marker_inside_word_ignored(self) -> None:
        assert score_audio("Benglish.Story.mkv") == 0


class TestRankCandidates:
    def test_english_beats_foreign_at_same_tier(self) -> None:
        eng = _make_candidate("Movie.ENG.DUAL.1080p.mkv", order=1)
        ita = _make_candidate("Movie.ITA.1080p.mkv", order=0)
        assert rank_candidates([ita, eng]) == [eng, ita]

    def test_audio_beats_resolution(self) -> None:
        eng_720 = _make_candidate("Movie.ENG.720p.mkv", tier=ResolutionTier.P720)
        ita_2160 = _make_candidate("Movie.ITA.2160p.mkv", tier=ResolutionTier.P2160)
        assert rank_candidates([ita_2160, eng_720])[0] is eng_720

    def test_tier_then_size_then_order(self) -> None:
        a = _make_candidate("A.1080p.mkv", size=100, order=0)
        b = _make_candidate("B.1080p.mkv", size=200, order=1)
        c = _make_candidate("C.2160p.mkv", tier=ResolutionTier.P2160, size=50, order=2)
        d = _make_candidate("D.1080p.mkv", size=200, order=3)
        assert rank_candidates([a, b, c, d]) == [c, b, d, a]

    def test_over_bandwidth_sorted_last_by_bitrate(self) -> None:
        fit = _make_candidate("Fit.720p.mkv", tier=ResolutionTier.P720, bitrate=3.0)
        big = _make_candidate("Big.ENG.2160p.mkv", tier=ResolutionTier.P2160, bitrate=40.0, over=True)
        mid = _make_candidate("Mid.ENG.1080p.mkv", bitrate=12.0, over=True)
        assert rank_candidates([big, mid, fit]) == [fit, mid, big]

    def test_accepts_generator(self) -> None:
        items = (_make_candidate(n) for n in ("A.mkv", "B.mkv"))
        assert len(rank_candidates(items)) == 2
