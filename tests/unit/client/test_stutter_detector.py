"""Tests for StutterDetector."""

from __future__ import annotations

from resolvarr.client.stutter import StutterDetector
from resolvarr.domain.entities.bandwidth import StutterSettings


class _Clock:
    def __init__(self) -> None:
        self.ms = 0

    def __call__(self) -> int:
        return self.ms


class TestStutterDetector:
    def test_three_events_within_window_trigger(self) -> None:
        clock = _Clock()
        detector = StutterDetector(clock_ms=clock)

        assert detector.record_buffering() is False
        clock.ms = 12_000
        assert detector.record_buffering() is False
        clock.ms = 24_000
        assert detector.record_buffering() is True

    def test_two_events_35s_apart_do_not_trigger(self) -> None:
        clock = _Clock()
        detector = StutterDetector(clock_ms=clock)

        detector.record_buffering()
        clock.ms = 35_000
        assert detector.record_buffering() is False
        assert detector.events == [35_000]

    def test_burst_of_two_triggers(self) -> None:
        clock = _Clock()
        detector = StutterDetector(clock_ms=clock)

        detector.record_buffering()
        clock.ms = 5_000
        assert detector.record_buffering() is True

    def test_burst_boundary(self) -> None:
        clock = _Clock()
        detector = StutterDetector(clock_ms=clock)

        detector.record_buffering()
        clock.ms = 10_000
        assert detector.record_buffering() is False

    def test_should_fallback_prunes_old_events(self) -> None:
        clock = _Clock()
        detector = StutterDetector(clock_ms=clock)
        detector.record_buffering()
        clock.ms = 2_000
        detector.record_buffering()
        assert detector.should_fallback() is True

        clock.ms = 40_000
        assert detector.should_fallback() is False

    def test_reset(self) -> None:
        clock = _Clock()
        detector = StutterDetector(clock_ms=clock)
        detector.record_buffering()
        detector.reset()
        assert detector.events == []

    def test_custom_settings(self) -> None:
        clock = _Clock()
        detector = StutterDetector(
            StutterSettings(low_threshold=2, consecutive_threshold=5, window_ms=60_000),
            clock_ms=clock,
        )
        detector.record_buffering()
        clock.ms = 50_000
        assert detector.record_buffering() is True

    def test_consecutive_threshold_of_one_triggers_on_first_event(self) -> None:
        detector = StutterDetector(
            StutterSettings(low_threshold=10, consecutive_threshold=1),
            clock_ms=_Clock(),
        )
        assert detector.record_buffering() is True

    def test_consecutive_threshold_of_zero_disables_bursts(self) -> None:
        detector = StutterDetector(
            StutterSettings(low_threshold=10, consecutive_threshold=0),
            clock_ms=_Clock(),
        )
        assert detector.record_buffering() is False
