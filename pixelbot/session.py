from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Union

from pixelbot.config import CLIENT_CONFIG
from pixelbot.core.api import CommandClient
from pixelbot.core.events import ConnectionState
from pixelbot.core.network import ChunkLike, Connector, PixelListener
from pixelbot.core.supervisor import ReconnectSupervisor, StatusListener
from pixelbot.features.chunks import ChunkSnapshot, ChunkSnapshotFetcher
from shared.protocol.messages import ChunkCoordinate, PlacementResult
from shared.protocol.palette import Color

logger = logging.getLogger(__name__)


class CanvasSession:
    """Everything a bot needs from the canvas service behind one object.

    Construction verifies the fingerprint synchronously and raises IdentityError
    when the service refuses it. Blocking HTTP calls are offered as coroutines
    that run in a worker thread.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        api: Optional[CommandClient] = None,
        connector: Optional[Connector] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config or CLIENT_CONFIG
        self.api = api or CommandClient(self.config)
        try:
            self.supervisor = ReconnectSupervisor(self.api, self.config, connector=connector, log=log)
        except Exception:
            self.api.close()
            raise
        self.channel = self.supervisor.channel
        self.chunks = ChunkSnapshotFetcher(self.api.http, self.config)
        self._closed = False

    async def __aenter__(self) -> "CanvasSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def state(self) -> ConnectionState:
        return self.supervisor.state

    @property
    def subscriptions(self) -> List[ChunkCoordinate]:
        return self.supervisor.registry.snapshot()

    async def start(self) -> None:
        await self.supervisor.start()

    async def wait_ready(self, timeout: Optional[float] = None) -> None:
        await self.supervisor.wait_ready(timeout)

    def subscribe(self, chunk: ChunkLike) -> None:
        self.channel.subscribe(chunk)

    def unsubscribe(self, chunk: ChunkLike) -> None:
        self.channel.unsubscribe(chunk)

    def on_pixel_changed(self, listener: PixelListener) -> None:
        self.channel.add_listener(listener)

    def on_status_changed(self, listener: StatusListener) -> None:
        self.supervisor.add_status_listener(listener)

    async def place_pixel(self, x: int, y: int, color: Union[int, Color]) -> PlacementResult:
        return await asyncio.to_thread(self.api.place_pixel, x, y, color)

    async def fetch_chunk(self, chunk: ChunkLike) -> ChunkSnapshot:
        return await asyncio.to_thread(self.chunks.fetch, chunk)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.supervisor.close()
        self.api.close()
        logger.info("Canvas session closed")
