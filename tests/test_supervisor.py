from __future__ import annotations

import asyncio
import logging

import pytest

from conftest import FakeConnector, make_response
from pixelbot.core.api import CommandClient, IdentityError
from pixelbot.core.events import ChannelError, ConnectionState
from pixelbot.core.supervisor import ReconnectSupervisor
from shared.protocol import ChunkCoordinate, Color, PixelOffset


def _supervisor(config, http, connector):
    return ReconnectSupervisor(CommandClient(config, http=http), config, connector=connector)


def test_identity_failure_is_fatal(config, http, connector):
    http.route("/api/me", make_response(403))
    with pytest.raises(IdentityError):
        _supervisor(config, http, connector)
    assert connector.calls == []


def test_start_opens_socket_with_browser_headers(config, http, connector):
    async def scenario():
        supervisor = _supervisor(config, http, connector)
        await supervisor.start()
        await supervisor.wait_ready(1)

        assert supervisor.state == ConnectionState.OPEN
        url, kwargs = connector.calls[0]
        assert url == "wss://canvas.test/ws?fingerprint=fp-123"
        assert kwargs["additional_headers"] == {"Origin": "https://canvas.test", "Referer": "https://canvas.test"}
        assert "Mozilla" in kwargs["user_agent_header"]
        assert kwargs["ping_interval"] is None
        await supervisor.close()

    asyncio.run(scenario())


def test_subscribe_and_unsubscribe_frames(config, http, connector):
    async def scenario():
        supervisor = _supervisor(config, http, connector)
        await supervisor.start()
        await supervisor.wait_ready(1)
        conn = connector.connections[0]

        supervisor.channel.subscribe((3, 4))
        supervisor.channel.unsubscribe((9, 9))
        await supervisor.wait_idle()
        assert conn.sent == [bytes([161, 3, 4])]

        supervisor.channel.unsubscribe(ChunkCoordinate(3, 4))
        await supervisor.wait_idle()
        assert conn.sent == [bytes([161, 3, 4]), bytes([162, 3, 4])]
        assert ChunkCoordinate(3, 4) not in supervisor.registry
        await supervisor.close()

    asyncio.run(scenario())


def test_subscriptions_made_offline_are_sent_on_open(config, http, connector):
    async def scenario():
        supervisor = _supervisor(config, http, connector)
        supervisor.channel.subscribe((2, 2))
        await supervisor.start()
        await supervisor.wait_ready(1)
        assert connector.connections[0].sent == [bytes([161, 2, 2])]
        await supervisor.close()

    asyncio.run(scenario())


def test_reconnect_replays_every_subscription_once(config, http, connector, eventually):
    async def scenario():
        supervisor = _supervisor(config, http, connector)
        await supervisor.start()
        await supervisor.wait_ready(1)
        supervisor.channel.subscribe((1, 2))
        supervisor.channel.subscribe((0, 5))
        await supervisor.wait_idle()

        connector.connections[0].drop()
        await eventually(lambda: len(connector.connections) == 2)
        await supervisor.wait_ready(1)

        second = connector.connections[1]
        assert sorted(second.sent) == sorted([bytes([161, 1, 2]), bytes([161, 0, 5])])
        assert len(second.sent) == 2
        assert second.pings == 0
        await supervisor.close()

    asyncio.run(scenario())


def test_connect_failures_are_retried(config, http):
    connector = FakeConnector(failures=2)

    async def scenario():
        supervisor = _supervisor(config, http, connector)
        await supervisor.start()
        await supervisor.wait_ready(2)
        assert len(connector.calls) == 3
        assert supervisor.state == ConnectionState.OPEN
        await supervisor.close()

    asyncio.run(scenario())


def test_keepalive_failure_forces_reconnect(config, http, eventually):
    config.update(ping_interval=0.02, ping_timeout=0.02)
    connector = FakeConnector(pongs=[False, True])
    states = []

    async def scenario():
        supervisor = _supervisor(config, http, connector)
        supervisor.add_status_listener(states.append)
        await supervisor.start()
        await eventually(lambda: len(connector.connections) == 2)
        await supervisor.wait_ready(1)

        first = connector.connections[0]
        assert first.pings >= 1
        assert first.closed
        assert states[:6] == [
            ConnectionState.CONNECTING,
            ConnectionState.OPEN,
            ConnectionState.CLOSING,
            ConnectionState.DISCONNECTED,
            ConnectionState.CONNECTING,
            ConnectionState.OPEN,
        ]
        await supervisor.close()

    asyncio.run(scenario())


def test_repeated_errors_close_socket_once(config, http, connector, eventually):
    async def scenario():
        supervisor = _supervisor(config, http, connector)
        await supervisor.start()
        await supervisor.wait_ready(1)
        first = connector.connections[0]

        supervisor.post(ChannelError(supervisor.generation, "boom"))
        supervisor.post(ChannelError(supervisor.generation, "boom again"))
        await supervisor.wait_idle()

        assert first.close_calls == 1
        await eventually(lambda: len(connector.connections) == 2)
        await supervisor.close()

    asyncio.run(scenario())


def test_pixel_updates_reach_listeners(config, http, connector, eventually):
    received = []

    async def scenario():
        supervisor = _supervisor(config, http, connector)
        supervisor.channel.add_listener(received.append)
        await supervisor.start()
        await supervisor.wait_ready(1)
        conn = connector.connections[0]

        conn.feed(bytes([193, 0, 1, 0, 2]))
        conn.feed("text frames are ignored")
        conn.feed(bytes([42, 1, 2, 3, 4, 5, 6, 7]))
        conn.feed(bytes([193, 0, 7, 0, 9, 3, 4, Color.RED]))
        await eventually(lambda: len(received) == 1)
        await supervisor.wait_idle()

        event = received[0]
        assert event.chunk == ChunkCoordinate(7, 9)
        assert event.offset == PixelOffset(4, 3)
        assert event.color is Color.RED
        assert supervisor.state == ConnectionState.OPEN
        await supervisor.close()

    asyncio.run(scenario())


def test_subscribe_from_another_thread(config, http, connector, eventually):
    async def scenario():
        supervisor = _supervisor(config, http, connector)
        await supervisor.start()
        await supervisor.wait_ready(1)

        await asyncio.to_thread(supervisor.channel.subscribe, (8, 8))
        await eventually(lambda: ChunkCoordinate(8, 8) in supervisor.registry)
        await supervisor.wait_idle()
        assert connector.connections[0].sent == [bytes([161, 8, 8])]
        await supervisor.close()

    asyncio.run(scenario())


def test_close_is_idempotent(config, http, connector):
    states = []

    async def scenario():
        supervisor = _supervisor(config, http, connector)
        await supervisor.start()
        await supervisor.wait_ready(1)
        supervisor.add_status_listener(states.append)
        supervisor.channel.add_listener(lambda event: None)

        await supervisor.close()
        await supervisor.close()

        conn = connector.connections[0]
        assert conn.close_calls == 1
        assert supervisor.disposed
        assert supervisor.state == ConnectionState.CLOSING
        assert not supervisor.channel.connected
        assert not supervisor.ready.is_set()
        assert supervisor.channel._listeners == []

        supervisor.channel.subscribe((1, 1))
        assert ChunkCoordinate(1, 1) not in supervisor.registry

    asyncio.run(scenario())
    assert states == [ConnectionState.CLOSING]


def test_close_right_after_drop_stops_every_timer(config, http, connector):
    async def scenario():
        supervisor = _supervisor(config, http, connector)
        await supervisor.start()
        await supervisor.wait_ready(1)

        connector.connections[0].drop()
        await asyncio.sleep(0)
        await supervisor.close()
        assert not supervisor._reconnect_check.running

        await asyncio.sleep(0.1)
        assert not supervisor._reconnect_check.running
        assert not supervisor.keepalive._ticker.running
        assert len(connector.calls) == 1

    asyncio.run(scenario())


class _BrokenFirstConnector(FakeConnector):
    async def __call__(self, url, **kwargs):
        if not self.calls:
            self.calls.append((url, kwargs))
            raise RuntimeError("unexpected")
        return await super().__call__(url, **kwargs)


def test_unexpected_connect_error_is_retried(config, http):
    connector = _BrokenFirstConnector()

    async def scenario():
        supervisor = _supervisor(config, http, connector)
        await supervisor.start()
        await supervisor.wait_ready(1)
        assert len(connector.calls) == 2
        assert supervisor.state == ConnectionState.OPEN
        await supervisor.close()

    asyncio.run(scenario())


def test_errors_within_cooldown_are_logged_once(config, http, connector, eventually, caplog):
    config.update(reconnect_interval=10.0, error_cooldown=0.05)
    caplog.set_level(logging.DEBUG, logger="pixelbot.core.supervisor")

    async def scenario():
        supervisor = _supervisor(config, http, connector)
        await supervisor.start()
        await supervisor.wait_ready(1)
        connector.connections[0].drop()
        await eventually(lambda: supervisor.state == ConnectionState.DISCONNECTED)

        supervisor.post(ChannelError(supervisor.generation, "first"))
        supervisor.post(ChannelError(supervisor.generation, "second"))
        await supervisor.wait_idle()
        await asyncio.sleep(0.1)
        supervisor.post(ChannelError(supervisor.generation, "third"))
        await supervisor.wait_idle()
        await supervisor.close()

    asyncio.run(scenario())
    logged = [r.getMessage() for r in caplog.records if r.getMessage().startswith("Error on websocket")]
    assert logged == ["Error on websocket: first", "Error on websocket: third"]
