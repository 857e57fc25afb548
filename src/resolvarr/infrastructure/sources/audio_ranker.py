"""Audio-language scoring and deterministic candidate ranking."""

from __future__ import annotations

import re
from typing import Iterable

from resolvarr.domain.entities.media import Candidate

_ENGLISH_RE = re.compile(
    r"\b(ENG|ENGLISH|DUAL[\s._-]?AUDIO|MULTI[\s._-]?AUDIO|DUAL|MULTI)\b",
    re.IGNORECASE,
)
_SUBTITLE_RE = re.compile(r"\b(SUBS|SUBTITLES|SUBBED)\b", re.IGNORECASE)
_FOREIGN_RE = re.compile(
    r"\b(ITA|ITALIAN|FRE|FRENCH|GER|GERMAN|SPA|SPANISH|JPN|JAPANESE"
    r"|KOR|KOREAN|RUS|RUSSIAN|CHI|CHINESE)\b",
    re.IGNORECASE,
)

ENGLISH_BONUS = 50
SUBTITLE_BONUS = 20
FOREIGN_ONLY_PENALTY = -30

# Underscores are word characters, so "ITA_1080p" would hide the marker.
_WORD_SPLIT_RE = re.compile(r"[_]+")


def score_audio(text: str) -> int:
    """Score a file/release name by its language markers.

    +50 for an English, dual or multi-audio marker, +20 for subtitles,
    -30 when only foreign-language markers are present.
    """
    text = _WORD_SPLIT_RE.sub(" ", text)
    has_english = bool(_ENGLISH_RE.search(text))
    score = 0
    if has_english:
        score += ENGLISH_BONUS
    if _SUBTITLE_RE.search(text):
        score += SUBTITLE_BONUS
    if not has_english and _FOREIGN_RE.search(text):
        score += FOREIGN_ONLY_PENALTY
    return score


def _preference_key(c: Candidate) -> tuple[int, int, int, int]:
    return (-c.audio_score, -int(c.resolution_tier), -(c.size_bytes or 0), c.order)


def rank_candidates(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Best first: audio score, then tier, then size, then discovery order.

    Over-bandwidth candidates are kept but placed after every candidate
    that fits, lowest estimated bitrate first.
    """
    candidates = list(candidates)
    fitting = [c for c in candidates if not c.over_bandwidth]
    over = [c for c in candidates if c.over_bandwidth]
    fitting.sort(key=_preference_key)
    over.sort(
        key=lambda c: (
            c.estimated_bitrate_mbps
            if c.estimated_bitrate_mbps is not None
            else float("inf"),
            _preference_key(c),
        )
    )
    return fitting + over
