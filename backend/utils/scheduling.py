from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class RecurringTask:
    """Calls ``callback`` every ``interval`` seconds until cancelled.

    Each tick runs as its own task. A tick is skipped while the previous one is
    still running, and ``cancel`` only stops the schedule: a run already in
    flight is left to finish.
    """

    def __init__(self, interval: float, callback: Callable[[], Awaitable[object]], name: str = "recurring-task"):
        self.interval = interval
        self.callback = callback
        self.name = name
        self._loop_task: asyncio.Task | None = None
        self._current: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self) -> None:
        if self.running:
            return
        self._loop_task = asyncio.create_task(self._run(), name=self.name)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self._current is not None and not self._current.done():
                logger.debug("%s: previous run still in flight, skipping tick", self.name)
                continue
            self._current = asyncio.create_task(self._invoke(), name=f"{self.name}-run")

    async def _invoke(self) -> None:
        try:
            await self.callback()
        except Exception:
            logger.exception("%s: scheduled run failed", self.name)

    def cancel(self) -> None:
        if self._loop_task is not None:
            self._loop_task.cancel()
            self._loop_task = None

    async def wait_idle(self) -> None:
        """Wait for a run that is currently in flight, if any."""
        if self._current is not None:
            await asyncio.shield(self._current)
