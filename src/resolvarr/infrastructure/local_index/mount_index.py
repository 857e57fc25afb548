"""Local index over a mounted media directory (rclone/WebDAV mount).

The directory walk is blocking and runs in a worker thread. A walk is
reused for ``rescan_interval_seconds``; guessit parses each file at most
once per (path, size) and the parse is kept across scans.
"""

from __future__ import annotations

import asyncio
import os
import re
import threading
import time
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Mapping
from urllib.parse import quote

import structlog
from guessit import guessit
from rapidfuzz import fuzz

from resolvarr.domain.entities.backends import LocalFile
from resolvarr.domain.entities.media import ContentRequest
from resolvarr.infrastructure.config.schema import LocalIndexConfig
from resolvarr.infrastructure.sources.title_variants import normalize_title

log = structlog.get_logger(__name__)

_YEAR_RE = re.compile(r"\b((?:19|20)\d{2})\b")
_EPISODE_MARKER_RE = re.compile(r"(?i)\bs\d{1,2}[ ._-]?e\d{1,3}\b|\b\d{1,2}x\d{2}\b")

# Share of significant words that must appear in the path.
_WORD_MATCH_RATIO = 0.7


def significant_words(text: str) -> list[str]:
    words = normalize_title(text).split()
    return [w for w in words if len(w) > 2] or words


def words_match(expected: list[str], path_words: set[str] | frozenset[str]) -> bool:
    if not expected:
        return False
    hits = sum(1 for w in expected if w in path_words)
    return hits / len(expected) >= _WORD_MATCH_RATIO


def fuzzy_title_match(variant_norm: str, parsed_title_norm: str, threshold: float) -> bool:
    if not variant_norm or not parsed_title_norm:
        return False
    score = fuzz.token_set_ratio(variant_norm, parsed_title_norm, processor=None)
    return score / 100.0 >= threshold


def title_matches(path_text: str, variant: str, *, fuzzy_threshold: float = 0.85) -> bool:
    """True if *path_text* plausibly names *variant*.

    At least 70 % of the variant's significant words must occur in the
    normalized path, or the guessit-parsed title must fuzzy-match the
    variant with ``token_set_ratio`` at or above *fuzzy_threshold*.
    """
    if words_match(significant_words(variant), set(normalize_title(path_text).split())):
        return True
    parsed = guessit(PurePosixPath(path_text).name).get("title")
    return fuzzy_title_match(
        normalize_title(variant), normalize_title(str(parsed or "")), fuzzy_threshold
    )


def _as_set(value: object) -> set[int]:
    if value is None:
        return set()
    if isinstance(value, list):
        return {int(v) for v in value}
    return {int(value)}  # type: ignore[arg-type]


def episode_in_guess(guess: Mapping[str, Any], season: int | None, episode: int | None) -> bool:
    if season is None or episode is None:
        return False
    return season in _as_set(guess.get("season")) and episode in _as_set(guess.get("episode"))


def matches_episode(file_name: str, season: int | None, episode: int | None) -> bool:
    """guessit season/episode must equal the requested ones."""
    if season is None or episode is None:
        return False
    return episode_in_guess(guessit(file_name, {"type": "episode"}), season, episode)


def matches_movie(file_name: str, request: ContentRequest, variant: str) -> bool:
    """Reject episode files and files carrying a different year.

    Years that are part of the title itself (``Blade Runner 2049``) do not
    count as the release year.
    """
    if _EPISODE_MARKER_RE.search(file_name):
        return False
    if request.year is None:
        return True
    title_years = set(_YEAR_RE.findall(variant)) | set(_YEAR_RE.findall(request.title))
    file_years = set(_YEAR_RE.findall(file_name)) - title_years
    return not file_years or str(request.year) in file_years


@dataclass(frozen=True)
class _Entry:
    file: LocalFile
    path_words: frozenset[str]


class _ParsedTitle:
    """guessit result of one file, reduced to what matching needs."""

    __slots__ = ("title_norm", "season", "episode")

    def __init__(self, guess: Mapping[str, Any]) -> None:
        self.title_norm = normalize_title(str(guess.get("title") or ""))
        self.season = guess.get("season")
        self.episode = guess.get("episode")

    def has_episode(self, season: int | None, episode: int | None) -> bool:
        return episode_in_guess({"season": self.season, "episode": self.episode}, season, episode)


class MountLocalIndex:
    """``LocalIndexPort`` backed by a filesystem walk."""

    def __init__(
        self,
        config: LocalIndexConfig,
        *,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._root = Path(config.mount_path)
        self._base_url = config.stream_base_url.rstrip("/")
        self._extensions = frozenset(e.lower() for e in config.video_extensions)
        self._threshold = config.title_match_threshold
        self._rescan_interval = config.rescan_interval_seconds
        self._monotonic = monotonic

        self._lock = threading.Lock()
        self._snapshot: list[_Entry] | None = None
        self._snapshot_at = 0.0
        # (path, size, guess type) -> parsed title
        self._parsed: dict[tuple[str, int | None, str], _ParsedTitle] = {}

    def stream_url(self, relative_path: str) -> str:
        return f"{self._base_url}/{quote(relative_path)}"

    def _walk(self) -> list[LocalFile]:
        files: list[LocalFile] = []
        for dirpath, dirnames, filenames in os.walk(self._root):
            dirnames.sort()
            for name in sorted(filenames):
                if Path(name).suffix.lower() not in self._extensions:
                    continue
                full = Path(dirpath) / name
                try:
                    size = full.stat().st_size
                except OSError:
                    size = None
                rel = full.relative_to(self._root).as_posix()
                files.append(
                    LocalFile(
                        path=rel,
                        file_name=name,
                        size_bytes=size,
                        stream_url=self.stream_url(rel),
                    )
                )
        return files

    def _entries(self) -> list[_Entry]:
        now = self._monotonic()
        with self._lock:
            if self._snapshot is not None and now - self._snapshot_at < self._rescan_interval:
                return self._snapshot

        entries = [
            _Entry(file=f, path_words=frozenset(normalize_title(f.path).split()))
            for f in self._walk()
        ]
        live = {(e.file.path, e.file.size_bytes) for e in entries}
        with self._lock:
            self._snapshot = entries
            self._snapshot_at = now
            self._parsed = {k: v for k, v in self._parsed.items() if k[:2] in live}
        log.debug("local_index_scanned", files=len(entries), mount_path=str(self._root))
        return entries

    def _parse(self, entry: _Entry, guess_type: str) -> _ParsedTitle:
        key = (entry.file.path, entry.file.size_bytes, guess_type)
        parsed = self._parsed.get(key)
        if parsed is None:
            options = {"type": guess_type} if guess_type == "episode" else None
            parsed = _ParsedTitle(guessit(entry.file.file_name, options))
            with self._lock:
                self._parsed[key] = parsed
        return parsed

    def _search(self, request: ContentRequest, variants: list[str]) -> list[LocalFile]:
        if not self._root.is_dir():
            log.warning("local_index_mount_missing", mount_path=str(self._root))
            return []

        entries = self._entries()
        guess_type = "episode" if request.media_type == "episode" else "movie"
        for variant in variants:
            expected = significant_words(variant)
            variant_norm = normalize_title(variant)
            matched = []
            for entry in entries:
                if not words_match(expected, entry.path_words):
                    parsed = self._parse(entry, guess_type)
                    if not fuzzy_title_match(variant_norm, parsed.title_norm, self._threshold):
                        continue
                if request.media_type == "episode":
                    ok = self._parse(entry, guess_type).has_episode(
                        request.season, request.episode
                    )
                else:
                    ok = matches_movie(entry.file.file_name, request, variant)
                if ok:
                    matched.append(entry.file)
            if matched:
                log.info(
                    "local_index_match",
                    content=request.describe(),
                    variant=variant,
                    files=len(matched),
                )
                return matched

        log.debug("local_index_no_match", content=request.describe(), scanned=len(entries))
        return []

    async def find(self, request: ContentRequest, variants: list[str]) -> list[LocalFile]:
        return await asyncio.to_thread(self._search, request, variants)
