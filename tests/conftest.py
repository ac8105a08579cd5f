from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import pytest
import requests

from pixelbot.config import DEFAULT_CONFIG


def make_response(status: int = 200, content: Union[bytes, dict] = b"", url: str = "") -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(content).encode("utf-8") if isinstance(content, dict) else content
    response.url = url
    return response


class FakeHttp:
    """Stands in for requests.Session; routes by URL suffix."""

    def __init__(self) -> None:
        self.headers: Dict[str, str] = {}
        self.routes: Dict[str, List[Union[requests.Response, Exception]]] = {}
        self.requests: List[Tuple[str, str, Optional[bytes]]] = []
        self.closed = False

    def route(self, suffix: str, *outcomes: Union[requests.Response, Exception]) -> None:
        self.routes[suffix] = list(outcomes)

    def post(self, url: str, data: Optional[bytes] = None, timeout: Optional[float] = None) -> requests.Response:
        self.requests.append(("POST", url, data))
        return self._next(url)

    def get(self, url: str, timeout: Optional[float] = None) -> requests.Response:
        self.requests.append(("GET", url, None))
        return self._next(url)

    def close(self) -> None:
        self.closed = True

    def bodies(self, suffix: str) -> List[dict]:
        return [json.loads(data) for _, url, data in self.requests if url.endswith(suffix) and data]

    def _next(self, url: str) -> requests.Response:
        for suffix, outcomes in self.routes.items():
            if url.endswith(suffix):
                outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome
        return make_response(404, b"", url)


class FakeConnection:
    """Minimal websocket connection: async iteration, send, ping, close."""

    def __init__(self, pong: bool = True) -> None:
        self.pong = pong
        self.sent: List[bytes] = []
        self.pings = 0
        self.close_calls = 0
        self.closed = False
        self._inbound: asyncio.Queue = asyncio.Queue()

    def feed(self, data: Union[bytes, str]) -> None:
        self._inbound.put_nowait(data)

    def drop(self) -> None:
        """Server side close."""
        if not self.closed:
            self.closed = True
            self._inbound.put_nowait(None)

    async def send(self, data: bytes) -> None:
        if self.closed:
            raise OSError("connection is closed")
        self.sent.append(bytes(data))

    async def ping(self) -> asyncio.Future:
        self.pings += 1
        waiter = asyncio.get_running_loop().create_future()
        if self.pong:
            waiter.set_result(0.0)
        return waiter

    async def close(self) -> None:
        self.close_calls += 1
        self.drop()

    def __aiter__(self) -> "FakeConnection":
        return self

    async def __anext__(self) -> Union[bytes, str]:
        item = await self._inbound.get()
        if item is None:
            raise StopAsyncIteration
        return item


class FakeConnector:
    def __init__(self, failures: int = 0, pongs: Optional[List[bool]] = None) -> None:
        self.failures = failures
        self.pongs = list(pongs or [])
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.connections: List[FakeConnection] = []

    async def __call__(self, url: str, **kwargs: Any) -> FakeConnection:
        self.calls.append((url, kwargs))
        if self.failures > 0:
            self.failures -= 1
            raise OSError("connection refused")
        pong = self.pongs.pop(0) if self.pongs else True
        connection = FakeConnection(pong=pong)
        self.connections.append(connection)
        return connection


@pytest.fixture()
def config() -> Dict[str, Any]:
    cfg = DEFAULT_CONFIG.copy()
    cfg.update(
        base_url="https://canvas.test",
        ws_url_template="wss://canvas.test/ws?fingerprint={fingerprint}",
        fingerprint="fp-123",
        reconnect_interval=0.02,
        ping_interval=10.0,
        ping_timeout=0.05,
        open_timeout=1.0,
    )
    return cfg


@pytest.fixture()
def http() -> FakeHttp:
    fake = FakeHttp()
    fake.route("/api/me", make_response(200, {"name": "bot"}))
    return fake


@pytest.fixture()
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture()
def eventually() -> Callable[..., Any]:
    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition was not met in time")
            await asyncio.sleep(0.005)

    return _wait
