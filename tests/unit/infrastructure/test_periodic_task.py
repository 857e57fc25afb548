"""Tests for PeriodicTask."""

from __future__ import annotations

import asyncio

from resolvarr.infrastructure.periodic import PeriodicTask


class TestPeriodicTask:
    async def test_runs_action_repeatedly(self) -> None:
        calls: list[int] = []

        async def action() -> None:
            calls.append(1)

        task = PeriodicTask("tick", action, 0.01)
        task.start()
        await asyncio.sleep(0.1)
        await task.stop()

        assert len(calls) >= 2
        assert not task.running

    async def test_failing_tick_does_not_stop_loop(self) -> None:
        calls: list[int] = []

        async def action() -> None:
            calls.append(1)
            raise RuntimeError("tick failed")

        task = PeriodicTask("flaky", action, 0.01)
        task.start()
        await asyncio.sleep(0.1)
        assert task.running
        await task.stop()
        assert len(calls) >= 2

    async def test_start_twice_keeps_one_task(self) -> None:
        async def action() -> None:
            return None

        task = PeriodicTask("once", action, 10)
        task.start()
        first = task._task
        task.start()
        assert task._task is first
        await task.stop()

    async def test_stop_without_start(self) -> None:
        async def action() -> None:
            return None

        await PeriodicTask("idle", action, 10).stop()
