"""Per-user rolling bandwidth status (in-memory, single process)."""

from __future__ import annotations

import math
from collections import defaultdict, deque
from datetime import datetime, timedelta, timezone
from typing import Callable

import structlog

from resolvarr.domain.entities.bandwidth import (
    BANDWIDTH_TRIGGERS,
    BandwidthReportResult,
    BandwidthSample,
    BandwidthStatus,
    StutterSettings,
)
from resolvarr.infrastructure.config.schema import BandwidthConfig

log = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BandwidthMonitor:
    """Ingests client bandwidth reports and derives retest flags.

    Keeps the last ``max_samples`` samples per user. The measured value is
    the latest reliable sample, or the latest sample when none is reliable.
    """

    def __init__(
        self,
        config: BandwidthConfig,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config
        self._clock = clock
        self._samples: defaultdict[str, deque[BandwidthSample]] = defaultdict(
            lambda: deque(maxlen=config.max_samples)
        )

    def _is_reliable(self, duration_ms: int | None) -> bool:
        return duration_ms is not None and duration_ms >= self._config.min_reliable_duration_ms

    def record(
        self,
        user_id: str,
        measured_mbps: float,
        *,
        duration_ms: int | None = None,
        trigger: str | None = None,
    ) -> BandwidthReportResult:
        """Store one sample and return the updated flags.

        Raises:
            ValueError: Non-finite or non-positive mbps, negative duration,
                or an unknown trigger.
        """
        if (
            isinstance(measured_mbps, bool)
            or not isinstance(measured_mbps, (int, float))
            or not math.isfinite(measured_mbps)
            or measured_mbps <= 0
        ):
            raise ValueError("measuredMbps must be a finite number > 0")
        if duration_ms is not None and duration_ms < 0:
            raise ValueError("durationMs must be >= 0")
        if trigger is not None and trigger not in BANDWIDTH_TRIGGERS:
            raise ValueError(f"unknown trigger {trigger!r}")

        capped = min(float(measured_mbps), self._config.max_recorded_mbps)
        sample = BandwidthSample(
            mbps=capped,
            duration_ms=duration_ms,
            trigger=trigger,  # type: ignore[arg-type]
            observed_at=self._clock(),
            reliable=self._is_reliable(duration_ms),
        )
        self._samples[user_id].append(sample)

        status = self.status(user_id)
        log.info(
            "bandwidth_recorded",
            user_id=user_id,
            mbps=capped,
            trigger=trigger,
            reliable=sample.reliable,
        )
        return BandwidthReportResult(
            recorded=capped,
            reliable=sample.reliable,
            needs_test=status.needs_test,
            suggest_retest=status.suggest_retest,
            max_bitrate_mbps=capped / self._config.safety_margin,
        )

    def status(self, user_id: str) -> BandwidthStatus:
        samples = self._samples.get(user_id)
        margin = self._config.safety_margin
        if not samples:
            return BandwidthStatus(
                has_measurement=False,
                needs_test=True,
                suggest_retest=False,
                safety_margin=margin,
            )

        latest = samples[-1]
        reliable = [s for s in samples if s.reliable]
        measured = reliable[-1] if reliable else latest

        stale_after = timedelta(hours=self._config.stale_after_hours)
        needs_test = self._clock() - latest.observed_at > stale_after

        suggest_retest = not latest.reliable
        if len(samples) >= 2:
            previous = samples[-2]
            change = abs(latest.mbps - previous.mbps) / max(previous.mbps, latest.mbps)
            if change > self._config.retest_divergence:
                suggest_retest = True

        return BandwidthStatus(
            has_measurement=True,
            needs_test=needs_test,
            suggest_retest=suggest_retest,
            measured_mbps=measured.mbps,
            measured_at=measured.observed_at,
            max_bitrate_mbps=measured.mbps / margin,
            safety_margin=margin,
            sample_count=len(samples),
        )

    def max_bitrate_mbps(self, user_id: str) -> float | None:
        return self.status(user_id).max_bitrate_mbps

    def stutter_settings(self) -> StutterSettings:
        return StutterSettings(
            low_threshold=self._config.stutter_low_threshold,
            consecutive_threshold=self._config.stutter_consecutive_threshold,
            window_ms=self._config.stutter_window_ms,
        )
