from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Dict, List, Optional, Tuple, Union

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, WebSocketException

from pixelbot.core.events import ChannelError, Closed, FrameReceived, Opened, SubscribeRequested, UnsubscribeRequested
from shared.protocol import framing
from shared.protocol.commands import is_opcode
from shared.protocol.errors import ProtocolError, StatusCode
from shared.protocol.messages import ChunkCoordinate, PixelChangeEvent

logger = logging.getLogger(__name__)

Connector = Callable[..., Awaitable[Any]]
PixelListener = Callable[[PixelChangeEvent], None]
ChunkLike = Union[ChunkCoordinate, Tuple[int, int]]


class NetworkError(ProtocolError):
    """Network level error surfaced to higher layers."""

    pass


def as_chunk(chunk: ChunkLike) -> ChunkCoordinate:
    if isinstance(chunk, ChunkCoordinate):
        return chunk
    x, y = chunk
    return ChunkCoordinate(x, y)


class RealtimeChannel:
    """WebSocket wrapper that pumps inbound frames, sends binary frames, and routes pixel updates.

    Socket events are not handled here; they are posted to the supervisor loop
    through `post`, which owns every state transition.
    """

    def __init__(
        self,
        url: str,
        post: Callable[[object], None],
        headers: Optional[Dict[str, str]] = None,
        user_agent: Optional[str] = None,
        open_timeout: float = 10.0,
        connector: Optional[Connector] = None,
    ) -> None:
        self.url = url
        self.headers: Dict[str, str] = dict(headers or {})
        self.user_agent = user_agent
        self.open_timeout = open_timeout
        self._post = post
        self._connector: Connector = connector or websockets.connect
        self._ws: Any = None
        self._receive_task: Optional[asyncio.Task] = None
        self._listeners: List[PixelListener] = []

    @property
    def connected(self) -> bool:
        return self._ws is not None

    # Public API for collaborators -------------------------------------------------

    def subscribe(self, chunk: ChunkLike) -> None:
        """Start receiving updates for `chunk`; kept across reconnects."""
        self._post(SubscribeRequested(as_chunk(chunk)))

    def unsubscribe(self, chunk: ChunkLike) -> None:
        """Stop receiving updates for `chunk`; no-op when not subscribed."""
        self._post(UnsubscribeRequested(as_chunk(chunk)))

    def add_listener(self, listener: PixelListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: PixelListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def clear_listeners(self) -> None:
        self._listeners.clear()

    # Transport, driven by the supervisor ------------------------------------------

    async def open(self, generation: int) -> None:
        """Open the socket and start the receive pump; raises NetworkError on failure."""
        try:
            ws = await self._connector(
                self.url,
                additional_headers=self.headers,
                user_agent_header=self.user_agent,
                ping_interval=None,
                open_timeout=self.open_timeout,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            raise NetworkError(StatusCode.SERVICE_UNAVAILABLE, message=f"Websocket connect failed: {exc}") from exc
        self._ws = ws
        self._post(Opened(generation))
        self._receive_task = asyncio.create_task(self._receive_loop(ws, generation), name=f"canvas-recv-{generation}")

    async def send(self, frame: bytes) -> None:
        ws = self._ws
        if ws is None:
            raise NetworkError(StatusCode.SERVICE_UNAVAILABLE, message="Websocket is not connected")
        try:
            await ws.send(frame)
            logger.debug("Sent frame %s", frame.hex())
        except (ConnectionClosed, OSError) as exc:
            raise NetworkError(StatusCode.SERVICE_UNAVAILABLE, message=f"Connection lost: {exc}") from exc

    async def ping(self, timeout: float) -> bool:
        """Transport-level liveness probe; True when the pong arrives in time."""
        ws = self._ws
        if ws is None:
            return False
        try:
            pong_waiter = await ws.ping()
            await asyncio.wait_for(pong_waiter, timeout)
            return True
        except (asyncio.TimeoutError, ConnectionClosed, OSError) as exc:
            logger.debug("Ping failed: %r", exc)
            return False

    async def close(self) -> None:
        """Close the socket; the receive pump then reports Closed."""
        ws, self._ws = self._ws, None
        if ws is None:
            return
        try:
            await ws.close()
        except (ConnectionClosed, OSError) as exc:
            logger.debug("Error while closing websocket: %s", exc)

    async def shutdown(self) -> None:
        await self.close()
        if self._receive_task:
            task, self._receive_task = self._receive_task, None
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def dispatch(self, data: bytes) -> Optional[PixelChangeEvent]:
        """Decode an inbound frame and hand the pixel change to listeners."""
        try:
            event = framing.decode_frame(data)
        except ProtocolError as exc:
            logger.warning("Dropping malformed frame %s: %s", data.hex(), exc.message)
            return None
        if event is None:
            if data and not is_opcode(data[0]):
                logger.debug("Ignoring frame with unknown opcode %s", data[0])
            return None
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:
                logger.exception("Pixel listener failed: %s", exc)
        return event

    async def _receive_loop(self, ws: Any, generation: int) -> None:
        reason = "closed"
        try:
            async for message in ws:
                if isinstance(message, str):
                    logger.debug("Ignoring text frame: %.80s", message)
                    continue
                self._post(FrameReceived(generation, bytes(message)))
        except ConnectionClosedError as exc:
            reason = str(exc)
            self._post(ChannelError(generation, reason))
        except OSError as exc:
            reason = str(exc)
            self._post(ChannelError(generation, reason))
        finally:
            if self._ws is ws:
                self._ws = None
            self._post(Closed(generation, reason))
