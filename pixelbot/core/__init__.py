from .api import CommandClient, CommandError, IdentityError
from .events import ConnectionState
from .keepalive import KeepAlive
from .network import NetworkError, RealtimeChannel
from .subscriptions import ChunkSubscriptionRegistry
from .supervisor import ReconnectSupervisor

__all__ = [
    "ChunkSubscriptionRegistry",
    "CommandClient",
    "CommandError",
    "ConnectionState",
    "IdentityError",
    "KeepAlive",
    "NetworkError",
    "RealtimeChannel",
    "ReconnectSupervisor",
]
