from __future__ import annotations

from typing import Any

from .constants import CHANNEL_TYPE_GUILD_ANNOUNCEMENT, CHANNEL_TYPE_GUILD_TEXT
from .sessions import SessionKind

# Discord application command option types.
STRING = 3
CHANNEL = 7

OPTION_CHANNEL = "channel"
OPTION_THUMBNAIL = "thumbnail"
OPTION_PING = "ping"


def _channel_option(description: str) -> dict[str, Any]:
    return {
        "type": CHANNEL,
        "name": OPTION_CHANNEL,
        "description": description,
        "required": True,
        "channel_types": [CHANNEL_TYPE_GUILD_TEXT, CHANNEL_TYPE_GUILD_ANNOUNCEMENT],
    }


def build_application_commands() -> list[dict[str, Any]]:
    return [
        {
            "type": 1,
            "name": SessionKind.MESSAGE.command_name,
            "description": "Send a message to a channel as the bot (Staff only)",
            "dm_permission": False,
            "options": [_channel_option("The channel to send the message to")],
        },
        {
            "type": 1,
            "name": SessionKind.ANNOUNCEMENT.command_name,
            "description": "Post an embed announcement to a channel (Staff only)",
            "dm_permission": False,
            "options": [
                _channel_option("The channel to post the announcement in"),
                {
                    "type": STRING,
                    "name": OPTION_THUMBNAIL,
                    "description": "Thumbnail image URL",
                    "required": False,
                },
                {
                    "type": STRING,
                    "name": OPTION_PING,
                    "description": "Text sent above the embed, e.g. a role mention",
                    "required": False,
                    "max_length": 200,
                },
            ],
        },
    ]
