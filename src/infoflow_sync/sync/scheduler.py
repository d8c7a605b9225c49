"""Periodic sync scheduling.

The scheduler is process state: the settings record only holds the
desired frequency, the running task lives here and is cancelled and
recreated whenever the frequency changes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

SECONDS_PER_MINUTE = 60


class SyncScheduler:
    """Run *trigger* every ``frequency`` minutes on the running event loop.

    Args:
        trigger: Coroutine function starting a (scheduled) sync.
    """

    def __init__(self, trigger: Callable[[], Awaitable[Any]]) -> None:
        self._trigger = trigger
        self._task: asyncio.Task | None = None
        self.frequency = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, frequency: int) -> None:
        """(Re)start the periodic task; a frequency of 0 only cancels.

        Must be called from within the event loop.
        """
        self.cancel()
        self.frequency = frequency
        if frequency <= 0:
            logger.debug("Scheduled sync disabled")
            return
        interval = frequency * SECONDS_PER_MINUTE
        self._task = asyncio.get_running_loop().create_task(
            self._loop(interval), name="infoflow-scheduled-sync"
        )
        logger.info("Scheduled sync every %d minute(s)", frequency)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def aclose(self) -> None:
        """Cancel the task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self._trigger()
            except Exception:
                logger.exception("Scheduled sync failed")
