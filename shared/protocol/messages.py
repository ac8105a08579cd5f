from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .constants import CHECKSUM_OFFSET, MAX_BYTE
from .errors import ErrorCode, ProtocolError, StatusCode
from .palette import Color


def _check_byte(name: str, value: int) -> None:
    if not isinstance(value, int) or not (0 <= value <= MAX_BYTE):
        raise ProtocolError(
            StatusCode.BAD_REQUEST,
            ErrorCode.INVALID_COORDINATE,
            f"{name} must be an integer in 0..{MAX_BYTE}, got {value!r}",
        )


@dataclass(frozen=True, order=True)
class ChunkCoordinate:
    """Address of a chunk; used as the subscription key."""

    x: int
    y: int

    def __post_init__(self) -> None:
        _check_byte("chunk x", self.x)
        _check_byte("chunk y", self.y)

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"


@dataclass(frozen=True, order=True)
class PixelOffset:
    """Position of a pixel inside its chunk."""

    x: int
    y: int

    def __post_init__(self) -> None:
        _check_byte("offset x", self.x)
        _check_byte("offset y", self.y)


@dataclass(frozen=True)
class PixelChangeEvent:
    chunk: ChunkCoordinate
    offset: PixelOffset
    color: Color


@dataclass(frozen=True)
class PlacementResult:
    """Outcome of a placement: accepted with a cooldown, or rejected with a wait."""

    accepted: bool
    cooldown_seconds: Optional[float] = None
    wait_seconds: Optional[float] = None

    def __post_init__(self) -> None:
        if self.accepted and (self.cooldown_seconds is None or self.wait_seconds is not None):
            raise ValueError("accepted result carries cooldown_seconds only")
        if not self.accepted and (self.wait_seconds is None or self.cooldown_seconds is not None):
            raise ValueError("rejected result carries wait_seconds only")

    @classmethod
    def accepted_with(cls, cooldown_seconds: float) -> "PlacementResult":
        return cls(accepted=True, cooldown_seconds=float(cooldown_seconds))

    @classmethod
    def rejected_with(cls, wait_seconds: float) -> "PlacementResult":
        return cls(accepted=False, wait_seconds=float(wait_seconds))

    @property
    def delay(self) -> float:
        """Seconds to wait before the next placement attempt."""
        return self.cooldown_seconds if self.accepted else self.wait_seconds  # type: ignore[return-value]


def placement_checksum(x: int, y: int) -> int:
    """Integrity value the server expects alongside every placement."""
    return x + y - CHECKSUM_OFFSET


class IdentityRequest(BaseModel):
    fingerprint: str


class PlacePixelRequest(BaseModel):
    """JSON body of a pixel placement; `a` is always derived from the target."""

    model_config = ConfigDict(frozen=True)

    x: int
    y: int
    a: int
    color: int = Field(..., ge=0, le=MAX_BYTE)
    fingerprint: str
    token: str = "null"

    @model_validator(mode="after")
    def _checksum_matches(self) -> "PlacePixelRequest":
        if self.a != placement_checksum(self.x, self.y):
            raise ValueError(f"checksum must be x + y - {CHECKSUM_OFFSET}")
        return self

    @classmethod
    def build(cls, x: int, y: int, color: Union[int, Color], fingerprint: str, token: str = "null") -> "PlacePixelRequest":
        try:
            color_value = Color(color)
        except ValueError as exc:
            raise ProtocolError(StatusCode.BAD_REQUEST, ErrorCode.INVALID_COLOR, f"Unknown color {color!r}") from exc
        return cls(
            x=x,
            y=y,
            a=placement_checksum(x, y),
            color=int(color_value),
            fingerprint=fingerprint,
            token=token,
        )


class PlacementResponse(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    success: bool = False
    cooldown_seconds: Optional[float] = Field(default=None, alias="coolDownSeconds")
    wait_seconds: Optional[float] = Field(default=None, alias="waitSeconds")
    errors: List[Any] = Field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "PlacementResponse":
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ProtocolError(
                StatusCode.BAD_REQUEST,
                ErrorCode.MALFORMED_RESPONSE,
                f"Response validation failed: {exc}",
            ) from exc


__all__ = [
    "ChunkCoordinate",
    "PixelOffset",
    "PixelChangeEvent",
    "PlacementResult",
    "placement_checksum",
    "IdentityRequest",
    "PlacePixelRequest",
    "PlacementResponse",
]
