from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from pixelbot.config import CLIENT_CONFIG
from pixelbot.core.api import CommandClient, build_headers
from pixelbot.core.events import (
    ChannelError,
    Closed,
    ConnectionState,
    ConnectRequested,
    FrameReceived,
    Opened,
    ProbeFailed,
    SubscribeRequested,
    Tick,
    TickKind,
    UnsubscribeRequested,
)
from pixelbot.core.keepalive import KeepAlive
from pixelbot.core.network import Connector, NetworkError, RealtimeChannel
from pixelbot.core.subscriptions import ChunkSubscriptionRegistry
from pixelbot.core.timers import PeriodicTicker
from shared.protocol import framing
from shared.protocol.errors import StatusCode

logger = logging.getLogger(__name__)

StatusListener = Callable[[ConnectionState], None]


class ReconnectSupervisor:
    """Keeps the realtime channel connected.

    Every socket callback, timer tick and subscription request arrives as an
    event on one queue and is applied by a single consumer task, so state,
    subscriptions and outbound traffic never race each other. After each
    successful open the whole subscription set is replayed before anything
    else is sent on that connection.
    """

    def __init__(
        self,
        api: CommandClient,
        config: Optional[Dict[str, Any]] = None,
        connector: Optional[Connector] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config or CLIENT_CONFIG
        self.log = log or logger
        self.api = api
        self.reconnect_interval = float(self.config["reconnect_interval"])
        self.error_cooldown = float(self.config["error_cooldown"])

        # Fatal when the service does not know our fingerprint.
        self.api.verify_identity()

        self.state = ConnectionState.DISCONNECTED
        self.registry = ChunkSubscriptionRegistry()
        self.generation = 0
        self.ready = asyncio.Event()
        self._events: asyncio.Queue[object] = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop_task: Optional[asyncio.Task] = None
        self._connect_task: Optional[asyncio.Task] = None
        self._last_error: Optional[Tuple[int, float]] = None
        self._status_listeners: List[StatusListener] = []
        self._disposed = False

        url = self.config["ws_url_template"].format(fingerprint=api.fingerprint)
        headers = build_headers(self.config)
        user_agent = headers.pop("User-Agent")
        headers.pop("Content-Type")
        self.channel = RealtimeChannel(
            url,
            self.post,
            headers=headers,
            user_agent=user_agent,
            open_timeout=float(self.config["open_timeout"]),
            connector=connector,
        )
        self.keepalive = KeepAlive(
            self.post,
            interval=float(self.config["ping_interval"]),
            timeout=float(self.config["ping_timeout"]),
        )
        self._reconnect_check = PeriodicTicker(
            "canvas-reconnect-check", self.reconnect_interval, lambda: self.post(Tick(TickKind.RECONNECT))
        )

    @property
    def disposed(self) -> bool:
        return self._disposed

    def add_status_listener(self, listener: StatusListener) -> None:
        if listener not in self._status_listeners:
            self._status_listeners.append(listener)

    def remove_status_listener(self, listener: StatusListener) -> None:
        if listener in self._status_listeners:
            self._status_listeners.remove(listener)

    async def start(self) -> None:
        if self._disposed:
            raise NetworkError(StatusCode.SERVICE_UNAVAILABLE, message="Supervisor already closed")
        if self._loop_task is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._loop_task = asyncio.create_task(self._run(), name="canvas-supervisor")
        self.post(ConnectRequested())

    async def wait_ready(self, timeout: Optional[float] = None) -> None:
        """Block until the channel is open and subscriptions are replayed."""
        await asyncio.wait_for(self.ready.wait(), timeout)

    async def wait_idle(self) -> None:
        """Wait until every queued event has been applied."""
        await self._events.join()

    def post(self, event: object) -> None:
        """Queue an event for the supervisor loop; safe from any thread."""
        if self._disposed:
            return
        loop = self._loop
        if loop is None or self._in_loop_thread(loop):
            self._events.put_nowait(event)
        else:
            loop.call_soon_threadsafe(self._events.put_nowait, event)

    async def close(self) -> None:
        """Stop timers, drop listeners, close the socket. Safe to call twice."""
        if self._disposed:
            return
        self._disposed = True
        self._set_state(ConnectionState.CLOSING)
        # Stop the consumer first so no queued event can restart a timer.
        for task in (self._loop_task, self._connect_task):
            if task is not None and task is not asyncio.current_task():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                except Exception as exc:
                    self.log.warning("Task %s ended with error during close: %r", task.get_name(), exc)
        self._loop_task = self._connect_task = None
        await self._reconnect_check.stop()
        await self.keepalive.stop()
        self._status_listeners.clear()
        self.channel.clear_listeners()
        await self.channel.shutdown()
        self.ready.clear()
        self.log.info("Websocket client closed")

    # Event loop -------------------------------------------------------------------

    async def _run(self) -> None:
        while True:
            event = await self._events.get()
            try:
                await self._handle(event)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self.log.exception("Supervisor failed handling %r: %s", event, exc)
            finally:
                self._events.task_done()

    async def _handle(self, event: object) -> None:
        if self._disposed:
            return
        if isinstance(event, FrameReceived):
            if event.generation == self.generation:
                self.channel.dispatch(event.data)
        elif isinstance(event, ConnectRequested):
            await self._on_reconnect_check()
        elif isinstance(event, Tick):
            if event.kind == TickKind.RECONNECT:
                await self._on_reconnect_check()
            else:
                self._on_keepalive_tick(event)
        elif isinstance(event, Opened):
            await self._on_opened(event)
        elif isinstance(event, ChannelError):
            await self._on_error(event)
        elif isinstance(event, ProbeFailed):
            await self._on_probe_failed(event)
        elif isinstance(event, Closed):
            await self._on_closed(event)
        elif isinstance(event, SubscribeRequested):
            await self._on_subscribe(event)
        elif isinstance(event, UnsubscribeRequested):
            await self._on_unsubscribe(event)
        else:
            self.log.debug("Ignoring unknown event %r", event)

    async def _on_reconnect_check(self) -> None:
        if self._disposed:
            return
        if self.state == ConnectionState.OPEN:
            await self._reconnect_check.stop()
            return
        if self.state != ConnectionState.DISCONNECTED:
            return
        self.generation += 1
        self._set_state(ConnectionState.CONNECTING)
        self.log.info("Connecting via websocket...")
        self._connect_task = asyncio.create_task(self._attempt_connect(self.generation), name="canvas-connect")

    async def _attempt_connect(self, generation: int) -> None:
        try:
            await self.channel.open(generation)
        except NetworkError as exc:
            self.log.warning("Websocket connect failed: %s", exc.message)
            self.post(Closed(generation, exc.message))
        except Exception as exc:
            self.log.exception("Unexpected error while connecting: %s", exc)
            self.post(Closed(generation, repr(exc)))

    async def _on_opened(self, event: Opened) -> None:
        if event.generation != self.generation or self.state != ConnectionState.CONNECTING:
            return
        self._set_state(ConnectionState.OPEN)
        await self._reconnect_check.stop()
        await self.keepalive.restart(event.generation)
        try:
            for chunk in self.registry:
                await self.channel.send(framing.encode_subscribe(chunk))
        except NetworkError as exc:
            await self._on_error(ChannelError(event.generation, exc.message))
            return
        self.ready.set()
        self.log.info("Listening for changes via websocket")

    async def _on_error(self, event: ChannelError) -> None:
        if event.generation != self.generation:
            return
        now = asyncio.get_running_loop().time()
        recent = (
            self._last_error is not None
            and self._last_error[0] == event.generation
            and now - self._last_error[1] < self.error_cooldown
        )
        if self.state == ConnectionState.CLOSING or recent:
            self.log.debug("Suppressing repeated websocket error: %s", event.reason)
            return
        self._last_error = (event.generation, now)
        self.log.error("Error on websocket: %s", event.reason)
        if self.state == ConnectionState.OPEN:
            self._set_state(ConnectionState.CLOSING)
        await self.channel.close()

    async def _on_probe_failed(self, event: ProbeFailed) -> None:
        if event.generation != self.generation or self.state != ConnectionState.OPEN:
            return
        self._set_state(ConnectionState.CLOSING)
        await self.channel.close()

    def _on_keepalive_tick(self, event: Tick) -> None:
        if self.state == ConnectionState.OPEN and event.generation == self.generation:
            self.keepalive.probe(self.channel, self.generation)

    async def _on_closed(self, event: Closed) -> None:
        if self._disposed or event.generation != self.generation or self.state == ConnectionState.DISCONNECTED:
            return
        await self.keepalive.stop()
        self.ready.clear()
        self._set_state(ConnectionState.DISCONNECTED)
        self.log.warning("Websocket connection closed, trying to reconnect...")
        self._reconnect_check.start()

    async def _on_subscribe(self, event: SubscribeRequested) -> None:
        if self.registry.add(event.chunk) and self.state == ConnectionState.OPEN:
            await self._send_or_close(framing.encode_subscribe(event.chunk))

    async def _on_unsubscribe(self, event: UnsubscribeRequested) -> None:
        if self.registry.discard(event.chunk) and self.state == ConnectionState.OPEN:
            await self._send_or_close(framing.encode_unsubscribe(event.chunk))

    async def _send_or_close(self, frame: bytes) -> None:
        try:
            await self.channel.send(frame)
        except NetworkError as exc:
            await self._on_error(ChannelError(self.generation, exc.message))

    # Helpers ----------------------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        if state == self.state:
            return
        self.log.debug("Connection state %s -> %s", self.state.value, state.value)
        self.state = state
        for listener in list(self._status_listeners):
            try:
                listener(state)
            except Exception as exc:
                self.log.exception("Status listener failed: %s", exc)

    @staticmethod
    def _in_loop_thread(loop: asyncio.AbstractEventLoop) -> bool:
        try:
            return asyncio.get_running_loop() is loop
        except RuntimeError:
            return False
