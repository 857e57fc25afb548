"""Cancellable fixed-interval background task."""

from __future__ import annotations

import asyncio
from contextlib import suppress
from typing import Awaitable, Callable

import structlog

log = structlog.get_logger(__name__)


class PeriodicTask:
    """Runs ``action`` every ``interval_seconds`` until stopped.

    Call :meth:`start` during app lifespan and :meth:`stop` on shutdown.
    A failing tick is logged as ``<name>_tick_error`` and the loop goes on.
    """

    def __init__(
        self,
        name: str,
        action: Callable[[], Awaitable[object]],
        interval_seconds: float,
    ) -> None:
        self.name = name
        self._action = action
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_forever(self) -> None:
        log.info(f"{self.name}_started", interval_seconds=self._interval)
        try:
            while True:
                await asyncio.sleep(self._interval)
                try:
                    await self._action()
                except Exception:
                    log.error(f"{self.name}_tick_error", exc_info=True)
        except asyncio.CancelledError:
            log.info(f"{self.name}_cancelled")
            raise

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self.run_forever(), name=self.name)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None
