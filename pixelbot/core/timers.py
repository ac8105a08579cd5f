from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTicker:
    """Calls `on_tick` every `interval` seconds until stopped."""

    def __init__(self, name: str, interval: float, on_tick: Callable[[], None]) -> None:
        self.name = name
        self.interval = interval
        self.on_tick = on_tick
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if not self.running:
            self._task = asyncio.create_task(self._run(), name=self.name)

    async def stop(self) -> None:
        if self._task:
            task, self._task = self._task, None
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.on_tick()
            except Exception as exc:
                logger.exception("%s tick failed: %s", self.name, exc)
