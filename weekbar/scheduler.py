from __future__ import annotations

import asyncio
import contextlib

from .constants import LOGGER


class RecurringTask:
    """Run ``callback`` now and then every ``interval_seconds``.

    An interval of zero runs the callback a single time.
    """

    def __init__(self, callback, interval_seconds: float, *, sleep=asyncio.sleep) -> None:
        if interval_seconds < 0:
            raise ValueError("interval_seconds must not be negative.")
        self._callback = callback
        self._interval = interval_seconds
        self._sleep = sleep
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_forever(self) -> None:
        while True:
            await self._callback()
            if not self._interval:
                return
            LOGGER.debug("Next scheduled run in %ss", self._interval)
            await self._sleep(self._interval)

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._task = asyncio.get_running_loop().create_task(self.run_forever())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        LOGGER.info("Recurring post schedule stopped")
