from __future__ import annotations

import logging
import os
from typing import Any, Dict, List

from dotenv import load_dotenv

from shared.protocol.constants import (
    DEFAULT_BASE_URL,
    DEFAULT_ERROR_COOLDOWN,
    DEFAULT_PING_INTERVAL,
    DEFAULT_PLACEMENT_WAIT,
    DEFAULT_RECONNECT_INTERVAL,
    DEFAULT_USER_AGENT,
    DEFAULT_WS_URL_TEMPLATE,
)
from shared.protocol.errors import ProtocolError
from shared.protocol.messages import ChunkCoordinate

ENV_PREFIX = "PIXELBOT_"

DEFAULT_CONFIG: Dict[str, Any] = {
    "base_url": DEFAULT_BASE_URL,
    "ws_url_template": DEFAULT_WS_URL_TEMPLATE,
    "fingerprint": "",
    "token": "null",
    "reconnect_interval": DEFAULT_RECONNECT_INTERVAL,
    "ping_interval": DEFAULT_PING_INTERVAL,
    "ping_timeout": 10.0,
    "error_cooldown": DEFAULT_ERROR_COOLDOWN,
    "open_timeout": 10.0,
    "request_timeout": 15.0,
    "default_wait_seconds": DEFAULT_PLACEMENT_WAIT,
    "user_agent": DEFAULT_USER_AGENT,
    "log_level": "INFO",
    "watch_chunks": "",
}

CLIENT_CONFIG: Dict[str, Any] = DEFAULT_CONFIG.copy()

_POSITIVE_KEYS = (
    "reconnect_interval",
    "ping_interval",
    "ping_timeout",
    "open_timeout",
    "request_timeout",
)


class ConfigError(Exception):
    """Raised when configuration values are invalid."""

    pass


def load_config(env_path: str = ".env") -> Dict[str, Any]:
    """Load client configuration from env file/environment variables."""
    if os.path.exists(env_path):
        load_dotenv(env_path)

    for key, default_value in DEFAULT_CONFIG.items():
        env_key = f"{ENV_PREFIX}{key.upper()}"
        value = os.getenv(env_key, default_value)
        CLIENT_CONFIG[key] = _coerce_type(value, type(default_value))

    validate_config(CLIENT_CONFIG)
    logging.getLogger().setLevel(CLIENT_CONFIG["log_level"])
    return CLIENT_CONFIG


def _coerce_type(value: Any, target_type: type) -> Any:
    if isinstance(value, target_type):
        return value
    try:
        if target_type is bool:
            return str(value).lower() in ("1", "true", "yes", "on")
        return target_type(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Cannot convert {value} to {target_type}") from exc


def validate_config(config: Dict[str, Any]) -> None:
    for key in _POSITIVE_KEYS:
        if float(config[key]) <= 0:
            raise ConfigError(f"{key} must be positive")
    if float(config["error_cooldown"]) < 0 or float(config["default_wait_seconds"]) < 0:
        raise ConfigError("error_cooldown and default_wait_seconds must not be negative")
    if not config["base_url"]:
        raise ConfigError("base_url must not be empty")
    if "{fingerprint}" not in config["ws_url_template"]:
        raise ConfigError("ws_url_template must contain a {fingerprint} placeholder")
    parse_chunk_list(config["watch_chunks"])


def parse_chunk_list(text: str) -> List[ChunkCoordinate]:
    """Parse "x,y;x,y" into chunk coordinates."""
    chunks: List[ChunkCoordinate] = []
    for item in filter(None, (part.strip() for part in text.split(";"))):
        try:
            x_text, y_text = item.split(",")
            chunks.append(ChunkCoordinate(int(x_text), int(y_text)))
        except (ValueError, ProtocolError) as exc:
            raise ConfigError(f"Invalid chunk coordinate {item!r}") from exc
    return chunks


def get(key: str, default: Any = None) -> Any:
    return CLIENT_CONFIG.get(key, default)


__all__ = ["CLIENT_CONFIG", "DEFAULT_CONFIG", "ConfigError", "get", "load_config", "parse_chunk_list", "validate_config"]
