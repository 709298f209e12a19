from __future__ import annotations

DISCORD_API_BASE_URL = "https://discord.com/api/v10"
DISCORD_GATEWAY_URL = "wss://gateway.discord.gg/?v=10&encoding=json"

# Discord hard limits.
DISCORD_MAX_MESSAGE_LENGTH = 2000
DISCORD_MAX_EMBED_TITLE_LENGTH = 256
DISCORD_MAX_EMBED_DESCRIPTION_LENGTH = 4096
DISCORD_MAX_EMBED_FOOTER_LENGTH = 2048
DISCORD_MAX_EMBED_TOTAL_LENGTH = 6000
DISCORD_MAX_MODAL_TITLE_LENGTH = 45

# Gateway intents bitflags (https://discord.com/developers/docs/topics/gateway#gateway-intents).
DISCORD_INTENT_GUILDS = 1 << 0

DISCORD_EPHEMERAL_FLAG = 1 << 6

# Interaction types.
INTERACTION_APPLICATION_COMMAND = 2
INTERACTION_MODAL_SUBMIT = 5

# Interaction callback types.
CALLBACK_CHANNEL_MESSAGE = 4
CALLBACK_DEFERRED_CHANNEL_MESSAGE = 5
CALLBACK_MODAL = 9

# Channel types a relay target may have: GUILD_TEXT and GUILD_ANNOUNCEMENT.
CHANNEL_TYPE_GUILD_TEXT = 0
CHANNEL_TYPE_GUILD_ANNOUNCEMENT = 5
TEXT_CHANNEL_TYPES = frozenset({CHANNEL_TYPE_GUILD_TEXT, CHANNEL_TYPE_GUILD_ANNOUNCEMENT})
