from __future__ import annotations

from enum import IntEnum

from .constants import PIXEL_UPDATE_OPCODE, SUBSCRIBE_OPCODE, UNSUBSCRIBE_OPCODE


class Opcode(IntEnum):
    """
    First byte of every realtime frame.
    Only these opcodes are understood; anything else the server sends is ignored.
    """

    SUBSCRIBE = SUBSCRIBE_OPCODE
    UNSUBSCRIBE = UNSUBSCRIBE_OPCODE
    PIXEL_UPDATE = PIXEL_UPDATE_OPCODE


def is_opcode(value: int) -> bool:
    """Check if `value` is a known opcode."""
    try:
        Opcode(value)
        return True
    except ValueError:
        return False


__all__ = ["Opcode", "is_opcode"]
