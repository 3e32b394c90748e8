"""Interval timer that feeds PollDue events into the worker queue.

The timer never runs a poll itself. It only enqueues an event, so polls are
serialized with every other session event on the single worker.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from core.events import PollDue, SessionEvent

LOGGER = logging.getLogger(__name__)


class PollTimer:
    """Fires immediately on arm, then every ``interval_seconds``."""

    def __init__(self, post: Callable[[SessionEvent], None]) -> None:
        self._post = post
        self._task: Optional[asyncio.Task] = None

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    def arm(self, interval_seconds: float) -> None:
        self.disarm()
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._tick(interval_seconds))
        LOGGER.debug("Poll timer armed (every %ss)", interval_seconds)

    def disarm(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        LOGGER.debug("Poll timer disarmed")

    async def _tick(self, interval_seconds: float) -> None:
        while True:
            self._post(PollDue())
            await asyncio.sleep(interval_seconds)
