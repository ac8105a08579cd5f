from __future__ import annotations

from enum import IntEnum
from typing import Optional


class StatusCode(IntEnum):
    """HTTP status codes the canvas service answers with."""

    SUCCESS = 200
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    TOO_MANY_REQUESTS = 429
    INTERNAL_ERROR = 500
    SERVICE_UNAVAILABLE = 503


class ErrorCode(IntEnum):
    """Domain specific error codes."""

    IDENTITY_REJECTED = 1001
    ACTION_FORBIDDEN = 1002
    SERVER_REJECTED = 1003
    MALFORMED_FRAME = 1004
    MALFORMED_RESPONSE = 1005
    CHUNK_DOWNLOAD_FAILED = 1006
    INVALID_COORDINATE = 1007
    INVALID_COLOR = 1008


class ProtocolError(Exception):
    """Structured protocol exception carrying status + code + message."""

    def __init__(self, status: StatusCode, code: Optional[ErrorCode] = None, message: str = "") -> None:
        self.status = status
        self.code = code
        self.message = message
        super().__init__(f"{status.name} ({int(status)}): {message} (code={code.name if code else 'n/a'})")


__all__ = ["StatusCode", "ErrorCode", "ProtocolError"]
