from __future__ import annotations

from enum import IntEnum
from typing import Union


class Color(IntEnum):
    """Canvas palette; the value is the byte sent on the wire."""

    UNSET_OCEAN = 0
    UNSET_LAND = 1
    WHITE = 2
    LIGHT_GRAY = 3
    MEDIUM_GRAY = 4
    DARK_GRAY = 5
    BLACK = 6
    PINK = 7
    RED = 8
    DARK_RED = 9
    BEIGE = 10
    ORANGE = 11
    BROWN = 12
    YELLOW = 13
    LIGHT_GREEN = 14
    GREEN = 15
    DARK_GREEN = 16
    AZURE = 17
    LIGHT_BLUE = 18
    BLUE = 19
    DARK_BLUE = 20
    LIGHT_MAGENTA = 21
    MAGENTA = 22
    PURPLE = 23


DEFAULT_COLOR = Color.UNSET_OCEAN


__all__ = ["Color", "DEFAULT_COLOR"]
