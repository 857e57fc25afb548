"""Tests for the random-byte bandwidth test stream."""

from __future__ import annotations

import time

import pytest

from resolvarr.infrastructure.bandwidth.test_stream import TestStreamGenerator
from resolvarr.infrastructure.config.schema import BandwidthConfig


class TestClamp:
    @pytest.mark.parametrize(
        ("requested", "expected"),
        [(None, 5.0), (0.2, 1.0), (3, 3.0), (60, 10.0)],
    )
    def test_clamp(self, requested: float | None, expected: float) -> None:
        assert TestStreamGenerator(BandwidthConfig()).clamp(requested) == expected


class TestStream:
    async def test_yields_fixed_size_chunks_until_deadline(self) -> None:
        gen = TestStreamGenerator(BandwidthConfig(chunk_size=1024))
        started = time.monotonic()
        chunks = 0
        async for chunk in gen.stream(1):
            assert len(chunk) == 1024
            chunks += 1
        elapsed = time.monotonic() - started

        assert chunks > 0
        assert 0.9 <= elapsed < 5
