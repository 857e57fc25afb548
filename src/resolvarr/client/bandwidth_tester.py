"""Client-side throughput measurement against the test-stream endpoint."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from resolvarr.client.api_client import ResolvarrApiClient

log = structlog.get_logger(__name__)

# Seconds added to the test duration before the measurement is abandoned.
HARD_TIMEOUT_GRACE = 10.0


@dataclass(frozen=True)
class BandwidthTestResult:
    mbps: float
    duration_ms: int
    total_bytes: int


class BandwidthTester:
    """Measures download speed and reports it to the server.

    The clock starts at the first received byte, so connection and TLS
    setup are excluded. Every failure is logged and turned into ``None``.
    """

    def __init__(self, api: ResolvarrApiClient, *, default_duration: int = 5) -> None:
        self._api = api
        self._default_duration = default_duration

    async def _download(self, url: str) -> BandwidthTestResult | None:
        total = 0
        started: float | None = None
        async with self._api.http_client.stream(
            "GET", url, headers=self._api.headers
        ) as resp:
            resp.raise_for_status()
            async for chunk in resp.aiter_bytes():
                if started is None:
                    started = time.perf_counter()
                total += len(chunk)
        if started is None or total == 0:
            return None
        elapsed = time.perf_counter() - started
        if elapsed <= 0:
            return None
        return BandwidthTestResult(
            mbps=total * 8 / elapsed / 1_000_000,
            duration_ms=int(elapsed * 1000),
            total_bytes=total,
        )

    async def measure(self, duration: int | None = None) -> BandwidthTestResult | None:
        duration = duration or self._default_duration
        url = self._api.test_stream_url(duration)
        try:
            async with asyncio.timeout(duration + HARD_TIMEOUT_GRACE):
                result = await self._download(url)
        except TimeoutError:
            log.warning("bandwidth_test_timeout", duration=duration)
            return None
        except httpx.HTTPError as e:
            log.warning("bandwidth_test_failed", error=str(e))
            return None
        if result is not None:
            log.info(
                "bandwidth_measured",
                mbps=round(result.mbps, 2),
                duration_ms=result.duration_ms,
            )
        return result

    async def report(
        self, result: BandwidthTestResult, trigger: str
    ) -> dict[str, Any] | None:
        try:
            return await self._api.report_bandwidth(
                result.mbps, duration_ms=result.duration_ms, trigger=trigger
            )
        except httpx.HTTPError as e:
            log.warning("bandwidth_report_failed", error=str(e))
            return None

    async def status(self) -> dict[str, Any] | None:
        try:
            return await self._api.bandwidth_status()
        except httpx.HTTPError as e:
            log.warning("bandwidth_status_failed", error=str(e))
            return None

    async def needs_test(self) -> bool:
        """True when the server has no fresh measurement or suggests a retest."""
        status = await self.status()
        if status is None:
            return False
        return bool(status.get("needsTest") or status.get("suggestRetest"))

    async def test_and_report(
        self, trigger: str = "manual", duration: int | None = None
    ) -> dict[str, Any] | None:
        result = await self.measure(duration)
        if result is None:
            return None
        return await self.report(result, trigger)
