from __future__ import annotations

import json
from typing import Optional

from .commands import Opcode
from .constants import CHUNK_BYTES, ENCODING, PIXEL_UPDATE_FRAME_SIZE
from .errors import ErrorCode, ProtocolError, StatusCode
from .messages import ChunkCoordinate, PixelChangeEvent, PixelOffset
from .palette import DEFAULT_COLOR, Color


def _chunk_frame(opcode: Opcode, chunk: ChunkCoordinate) -> bytes:
    return bytes([opcode, chunk.x, chunk.y])


def encode_subscribe(chunk: ChunkCoordinate) -> bytes:
    """Frame asking the server to stream updates for `chunk`."""
    return _chunk_frame(Opcode.SUBSCRIBE, chunk)


def encode_unsubscribe(chunk: ChunkCoordinate) -> bytes:
    """Frame asking the server to stop streaming updates for `chunk`."""
    return _chunk_frame(Opcode.UNSUBSCRIBE, chunk)


def decode_frame(data: bytes) -> Optional[PixelChangeEvent]:
    """
    Decode one inbound binary frame.

    Returns None for empty frames and opcodes other than pixel-update.
    Raises ProtocolError for a pixel-update frame that is truncated or names
    a color outside the palette.
    """
    if not data:
        return None
    if data[0] != Opcode.PIXEL_UPDATE:
        return None
    if len(data) < PIXEL_UPDATE_FRAME_SIZE:
        raise ProtocolError(
            StatusCode.BAD_REQUEST,
            ErrorCode.MALFORMED_FRAME,
            f"Pixel update frame has {len(data)} bytes, expected {PIXEL_UPDATE_FRAME_SIZE}",
        )
    # byte 1 and byte 3 are reserved
    chunk_x, chunk_y = data[2], data[4]
    rel_y, rel_x, color = data[5], data[6], data[7]
    try:
        color_value = Color(color)
    except ValueError as exc:
        raise ProtocolError(StatusCode.BAD_REQUEST, ErrorCode.MALFORMED_FRAME, f"Unknown color {color}") from exc
    return PixelChangeEvent(
        chunk=ChunkCoordinate(chunk_x, chunk_y),
        offset=PixelOffset(rel_x, rel_y),
        color=color_value,
    )


def encode_json(body: dict) -> bytes:
    """Encode a request body dict into JSON bytes."""
    try:
        return json.dumps(body, ensure_ascii=False, separators=(",", ":")).encode(ENCODING)
    except (TypeError, ValueError) as exc:
        raise ProtocolError(StatusCode.BAD_REQUEST, message=f"Encode failed: {exc}") from exc


def decode_json(data: bytes) -> dict:
    """Decode a response body into a dictionary."""
    try:
        decoded = json.loads(data.decode(ENCODING))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ProtocolError(StatusCode.BAD_REQUEST, ErrorCode.MALFORMED_RESPONSE, f"Decode failed: {exc}") from exc
    if not isinstance(decoded, dict):
        raise ProtocolError(StatusCode.BAD_REQUEST, ErrorCode.MALFORMED_RESPONSE, "Response body is not an object")
    return decoded


def decode_chunk(data: bytes) -> bytes:
    """
    Validate a chunk snapshot body: row-major palette indices, one byte per pixel.
    An empty body stands for a chunk where every pixel has the default color.
    """
    if len(data) == 0:
        return bytes([DEFAULT_COLOR]) * CHUNK_BYTES
    if len(data) != CHUNK_BYTES:
        raise ProtocolError(
            StatusCode.BAD_REQUEST,
            ErrorCode.CHUNK_DOWNLOAD_FAILED,
            f"Chunk body has {len(data)} bytes, expected {CHUNK_BYTES}",
        )
    return bytes(data)
