"""
Shared protocol package that centralizes opcodes, palette, value types, binary
framing and response validation for the canvas realtime and HTTP channels.
"""

from .commands import Opcode, is_opcode
from .constants import CHUNK_BYTES, CHUNK_SIZE, ENCODING
from .errors import ErrorCode, ProtocolError, StatusCode
from .framing import decode_chunk, decode_frame, decode_json, encode_json, encode_subscribe, encode_unsubscribe
from .messages import (
    ChunkCoordinate,
    IdentityRequest,
    PixelChangeEvent,
    PixelOffset,
    PlacementResponse,
    PlacementResult,
    PlacePixelRequest,
    placement_checksum,
)
from .palette import DEFAULT_COLOR, Color
from .validator import load_schema, validate_body

__all__ = [
    "Opcode",
    "is_opcode",
    "CHUNK_BYTES",
    "CHUNK_SIZE",
    "ENCODING",
    "ErrorCode",
    "ProtocolError",
    "StatusCode",
    "encode_subscribe",
    "encode_unsubscribe",
    "decode_frame",
    "encode_json",
    "decode_json",
    "decode_chunk",
    "ChunkCoordinate",
    "PixelOffset",
    "PixelChangeEvent",
    "PlacementResult",
    "PlacementResponse",
    "PlacePixelRequest",
    "IdentityRequest",
    "placement_checksum",
    "Color",
    "DEFAULT_COLOR",
    "load_schema",
    "validate_body",
]
