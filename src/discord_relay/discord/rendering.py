from __future__ import annotations

from .constants import DISCORD_MAX_MESSAGE_LENGTH

_ELLIPSIS = "..."


def truncate_for_discord(text: str, max_len: int = DISCORD_MAX_MESSAGE_LENGTH) -> str:
    if not text:
        return ""
    if len(text) <= max_len:
        return text
    if max_len <= len(_ELLIPSIS):
        return text[:max_len]
    return text[: max_len - len(_ELLIPSIS)].rstrip() + _ELLIPSIS


def format_channel_mention(channel_id: str) -> str:
    return f"<#{channel_id}>"
