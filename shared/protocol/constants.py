"""Protocol-wide constants shared by every component."""

ENCODING = "utf-8"

# Binary realtime channel
SUBSCRIBE_OPCODE = 161
UNSUBSCRIBE_OPCODE = 162
PIXEL_UPDATE_OPCODE = 193
PIXEL_UPDATE_FRAME_SIZE = 8

CHUNK_SIZE = 256  # side length of a chunk in pixels
CHUNK_BYTES = CHUNK_SIZE * CHUNK_SIZE
MAX_BYTE = 255

# Service endpoints
DEFAULT_BASE_URL = "https://pixelplanet.fun"
DEFAULT_WS_URL_TEMPLATE = "wss://pixelplanet.fun/ws?fingerprint={fingerprint}"
IDENTITY_ENDPOINT = "api/me"
PIXEL_ENDPOINT = "api/pixel"
CHUNK_ENDPOINT_TEMPLATE = "chunks/{x}/{y}.bin"
DEFAULT_USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64; rv:57.0) Gecko/20100101 Firefox/57.0"

# Timing (seconds)
DEFAULT_RECONNECT_INTERVAL = 5.0
DEFAULT_PING_INTERVAL = 10.0
DEFAULT_ERROR_COOLDOWN = 1.0
DEFAULT_PLACEMENT_WAIT = 30.0

CHECKSUM_OFFSET = 8

__all__ = [
    "ENCODING",
    "SUBSCRIBE_OPCODE",
    "UNSUBSCRIBE_OPCODE",
    "PIXEL_UPDATE_OPCODE",
    "PIXEL_UPDATE_FRAME_SIZE",
    "CHUNK_SIZE",
    "CHUNK_BYTES",
    "MAX_BYTE",
    "DEFAULT_BASE_URL",
    "DEFAULT_WS_URL_TEMPLATE",
    "IDENTITY_ENDPOINT",
    "PIXEL_ENDPOINT",
    "CHUNK_ENDPOINT_TEMPLATE",
    "DEFAULT_USER_AGENT",
    "DEFAULT_RECONNECT_INTERVAL",
    "DEFAULT_PING_INTERVAL",
    "DEFAULT_ERROR_COOLDOWN",
    "DEFAULT_PLACEMENT_WAIT",
    "CHECKSUM_OFFSET",
]
