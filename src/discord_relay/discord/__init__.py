"""Discord relay: role-gated /say and /announce through modals."""

from .allowlist import RoleAllowlist, allowlist_allows, parse_role_ids
from .colors import DEFAULT_EMBED_COLOR, NAMED_COLORS, resolve_color
from .command_registry import sync_commands
from .commands import build_application_commands
from .config import (
    DiscordCommandRegistration,
    RelayBotConfig,
    RelayBotConfigError,
)
from .constants import (
    DISCORD_API_BASE_URL,
    DISCORD_GATEWAY_URL,
    DISCORD_INTENT_GUILDS,
    DISCORD_MAX_MESSAGE_LENGTH,
)
from .content import ContentError, OutgoingContent, build_announcement, build_plain_message
from .doctor import DoctorCheck, DoctorReport, relay_doctor_checks
from .errors import DiscordAPIError, DiscordError
from .gateway import (
    DiscordGatewayClient,
    GatewayFrame,
    build_identify_payload,
    calculate_reconnect_backoff,
    parse_gateway_frame,
)
from .modals import build_announcement_modal, build_message_modal, build_modal_for
from .permissions import (
    ChannelHandle,
    DiscordRestPlatform,
    PermissionSet,
    RelayPlatform,
)
from .rest import DiscordRestClient
from .service import RelayBotService, create_relay_bot_service
from .sessions import Session, SessionKind, SessionReaper, SessionRegistry, SessionStore

__all__ = [
    "DEFAULT_EMBED_COLOR",
    "DISCORD_API_BASE_URL",
    "DISCORD_GATEWAY_URL",
    "DISCORD_INTENT_GUILDS",
    "DISCORD_MAX_MESSAGE_LENGTH",
    "NAMED_COLORS",
    "ChannelHandle",
    "ContentError",
    "DiscordAPIError",
    "DiscordCommandRegistration",
    "DiscordError",
    "DiscordGatewayClient",
    "DiscordRestClient",
    "DiscordRestPlatform",
    "DoctorCheck",
    "DoctorReport",
    "GatewayFrame",
    "OutgoingContent",
    "PermissionSet",
    "RelayBotConfig",
    "RelayBotConfigError",
    "RelayBotService",
    "RelayPlatform",
    "RoleAllowlist",
    "Session",
    "SessionKind",
    "SessionReaper",
    "SessionRegistry",
    "SessionStore",
    "allowlist_allows",
    "build_announcement",
    "build_announcement_modal",
    "build_application_commands",
    "build_identify_payload",
    "build_message_modal",
    "build_modal_for",
    "build_plain_message",
    "calculate_reconnect_backoff",
    "create_relay_bot_service",
    "parse_gateway_frame",
    "parse_role_ids",
    "relay_doctor_checks",
    "resolve_color",
    "sync_commands",
]
