from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable, Optional

from pixelbot.core.events import ProbeFailed, Tick, TickKind
from pixelbot.core.network import RealtimeChannel
from pixelbot.core.timers import PeriodicTicker

logger = logging.getLogger(__name__)


class KeepAlive:
    """Periodic ping over the open channel.

    Ticks go through the supervisor loop, which only calls `probe` while the
    connection is open. A failed probe is reported as ProbeFailed so the loop
    can close the socket.
    """

    def __init__(self, post: Callable[[object], None], interval: float = 10.0, timeout: float = 10.0) -> None:
        self.interval = interval
        self.timeout = timeout
        self._post = post
        self._generation = 0
        self._ticker = PeriodicTicker("canvas-keepalive", interval, self._on_tick)
        self._probe_task: Optional[asyncio.Task] = None

    @property
    def probing(self) -> bool:
        return self._probe_task is not None and not self._probe_task.done()

    async def restart(self, generation: int) -> None:
        await self.stop()
        self._generation = generation
        self._ticker.start()

    async def stop(self) -> None:
        await self._ticker.stop()
        if self._probe_task:
            task, self._probe_task = self._probe_task, None
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def probe(self, channel: RealtimeChannel, generation: int) -> None:
        if self.probing:
            return
        self._probe_task = asyncio.create_task(self._probe(channel, generation), name="canvas-ping")

    def _on_tick(self) -> None:
        self._post(Tick(TickKind.KEEPALIVE, self._generation))

    async def _probe(self, channel: RealtimeChannel, generation: int) -> None:
        if not await channel.ping(self.timeout):
            logger.warning("Websocket ping got no answer within %.1fs", self.timeout)
            self._post(ProbeFailed(generation))
