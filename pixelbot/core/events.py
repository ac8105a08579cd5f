"""Tagged events consumed by the reconnect supervisor loop."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from shared.protocol.messages import ChunkCoordinate


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"


class TickKind(str, Enum):
    RECONNECT = "reconnect"
    KEEPALIVE = "keepalive"


@dataclass(frozen=True)
class ConnectRequested:
    pass


@dataclass(frozen=True)
class Opened:
    generation: int


@dataclass(frozen=True)
class FrameReceived:
    generation: int
    data: bytes


@dataclass(frozen=True)
class ChannelError:
    generation: int
    reason: str


@dataclass(frozen=True)
class Closed:
    generation: int
    reason: str = ""


@dataclass(frozen=True)
class Tick:
    kind: TickKind
    generation: int = 0


@dataclass(frozen=True)
class ProbeFailed:
    generation: int


@dataclass(frozen=True)
class SubscribeRequested:
    chunk: ChunkCoordinate


@dataclass(frozen=True)
class UnsubscribeRequested:
    chunk: ChunkCoordinate


__all__ = [
    "ConnectionState",
    "TickKind",
    "ConnectRequested",
    "Opened",
    "FrameReceived",
    "ChannelError",
    "Closed",
    "Tick",
    "ProbeFailed",
    "SubscribeRequested",
    "UnsubscribeRequested",
]
