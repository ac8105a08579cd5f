from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from pixelbot.config import CLIENT_CONFIG
from pixelbot.core.network import ChunkLike, NetworkError, as_chunk
from shared.protocol import framing
from shared.protocol.constants import CHUNK_ENDPOINT_TEMPLATE, CHUNK_SIZE
from shared.protocol.errors import ErrorCode, ProtocolError, StatusCode
from shared.protocol.messages import ChunkCoordinate, PixelOffset
from shared.protocol.palette import Color

logger = logging.getLogger(__name__)


class ChunkDownloadError(NetworkError):
    pass


@dataclass(frozen=True)
class ChunkSnapshot:
    """Palette indices of one chunk, row-major, CHUNK_SIZE x CHUNK_SIZE."""

    chunk: ChunkCoordinate
    data: bytes

    def index_at(self, offset: PixelOffset) -> int:
        return self.data[offset.y * CHUNK_SIZE + offset.x]

    def color_at(self, offset: PixelOffset) -> Color:
        value = self.index_at(offset)
        try:
            return Color(value)
        except ValueError as exc:
            raise ProtocolError(StatusCode.BAD_REQUEST, ErrorCode.INVALID_COLOR, f"Unknown color {value}") from exc

    def rows(self) -> List[bytes]:
        return [self.data[y * CHUNK_SIZE : (y + 1) * CHUNK_SIZE] for y in range(CHUNK_SIZE)]


class ChunkSnapshotFetcher:
    """One-shot download of a chunk's current pixels; no retries of its own."""

    def __init__(self, http: requests.Session, config: Optional[Dict[str, Any]] = None) -> None:
        self.config = config or CLIENT_CONFIG
        self.http = http
        self.base_url: str = self.config["base_url"].rstrip("/")
        self.timeout = float(self.config["request_timeout"])

    def url_for(self, chunk: ChunkCoordinate) -> str:
        return f"{self.base_url}/{CHUNK_ENDPOINT_TEMPLATE.format(x=chunk.x, y=chunk.y)}"

    def fetch(self, chunk: ChunkLike) -> ChunkSnapshot:
        coordinate = as_chunk(chunk)
        try:
            response = self.http.get(self.url_for(coordinate), timeout=self.timeout)
            response.raise_for_status()
            data = framing.decode_chunk(response.content)
        except (requests.RequestException, ProtocolError) as exc:
            logger.warning("Chunk %s download failed: %s", coordinate, exc)
            raise ChunkDownloadError(
                StatusCode.SERVICE_UNAVAILABLE, ErrorCode.CHUNK_DOWNLOAD_FAILED, "Cannot download chunk data"
            ) from exc
        logger.debug("Downloaded chunk %s", coordinate)
        return ChunkSnapshot(coordinate, data)
