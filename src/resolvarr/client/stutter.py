"""Buffering-event based stutter detection (one instance per session)."""

from __future__ import annotations

import time
from typing import Callable

from resolvarr.domain.entities.bandwidth import StutterSettings


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class StutterDetector:
    """Decides when repeated buffering warrants a quality fallback.

    Fallback is warranted when the events inside the window reach
    ``low_threshold``, or when the last ``consecutive_threshold`` events
    span less than a third of the window. With a threshold of one, any
    single event is a burst.
    """

    def __init__(
        self,
        settings: StutterSettings | None = None,
        *,
        clock_ms: Callable[[], int] = _monotonic_ms,
    ) -> None:
        self.settings = settings or StutterSettings()
        self._clock_ms = clock_ms
        self._events: list[int] = []

    @property
    def events(self) -> list[int]:
        return list(self._events)

    def _prune(self, now: int) -> None:
        cutoff = now - self.settings.window_ms
        self._events = [t for t in self._events if t >= cutoff]

    def _burst(self) -> bool:
        n = self.settings.consecutive_threshold
        if n < 1 or len(self._events) < n:
            return False
        recent = self._events[-n:]
        return recent[-1] - recent[0] < self.settings.window_ms / 3

    def record_buffering(self) -> bool:
        """Record one buffering event; True if fallback is warranted."""
        now = self._clock_ms()
        self._events.append(now)
        self._prune(now)
        return len(self._events) >= self.settings.low_threshold or self._burst()

    def should_fallback(self) -> bool:
        self._prune(self._clock_ms())
        return len(self._events) >= self.settings.low_threshold or self._burst()

    def reset(self) -> None:
        self._events.clear()
