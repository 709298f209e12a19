from __future__ import annotations

from typing import Optional

DEFAULT_EMBED_COLOR = 0x5865F2

NAMED_COLORS: dict[str, int] = {
    "red": 0xED4245,
    "green": 0x57F287,
    "blue": 0x3498DB,
    "yellow": 0xFEE75C,
    "orange": 0xE67E22,
    "purple": 0x9B59B6,
    "pink": 0xE91E63,
    "gold": 0xF1C40F,
    "white": 0xFFFFFF,
    "black": 0x000000,
}

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def resolve_color(token: Optional[str]) -> int:
    """Map a user supplied color name or ``#rrggbb`` value to an embed color.

    Never raises; unknown names and malformed hex values yield the default.
    """
    if token is None:
        return DEFAULT_EMBED_COLOR
    value = token.strip()
    if not value:
        return DEFAULT_EMBED_COLOR
    named = NAMED_COLORS.get(value.lower())
    if named is not None:
        return named
    if value.startswith("#"):
        digits = value[1:]
        if len(digits) == 6 and all(ch in _HEX_DIGITS for ch in digits):
            return int(digits, 16)
    return DEFAULT_EMBED_COLOR
