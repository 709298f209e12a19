from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .allowlist import parse_role_ids
from .constants import DISCORD_INTENT_GUILDS, DISCORD_MAX_MESSAGE_LENGTH
from .sessions import DEFAULT_REAPER_INTERVAL_SECONDS, DEFAULT_SESSION_TTL_SECONDS

DEFAULT_BOT_TOKEN_ENV = "DISCORD_TOKEN"
DEFAULT_APP_ID_ENV = "DISCORD_APP_ID"
DEFAULT_ALLOWED_ROLES_ENV = "ALLOWED_ROLE_IDS"
DEFAULT_COMMAND_SCOPE = "global"
DEFAULT_INTENTS = DISCORD_INTENT_GUILDS


class RelayBotConfigError(Exception):
    """Raised when discord relay config is invalid."""


@dataclass(frozen=True)
class DiscordCommandRegistration:
    enabled: bool
    scope: str
    guild_ids: tuple[str, ...]


@dataclass(frozen=True)
class RelayBotConfig:
    bot_token_env: str
    app_id_env: str
    allowed_roles_env: str
    bot_token: Optional[str]
    application_id: Optional[str]
    allowed_role_ids: frozenset[str]
    command_registration: DiscordCommandRegistration
    intents: int = DEFAULT_INTENTS
    session_ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS
    reaper_interval_seconds: int = DEFAULT_REAPER_INTERVAL_SECONDS
    max_message_length: int = DISCORD_MAX_MESSAGE_LENGTH

    @classmethod
    def from_raw(
        cls,
        raw: Mapping[str, Any] | None,
        *,
        env: Optional[Mapping[str, str]] = None,
    ) -> "RelayBotConfig":
        cfg: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}
        environ: Mapping[str, str] = os.environ if env is None else env

        bot_token_env = _parse_env_name(cfg, "bot_token_env", DEFAULT_BOT_TOKEN_ENV)
        app_id_env = _parse_env_name(cfg, "app_id_env", DEFAULT_APP_ID_ENV)
        allowed_roles_env = _parse_env_name(
            cfg, "allowed_roles_env", DEFAULT_ALLOWED_ROLES_ENV
        )

        bot_token = (environ.get(bot_token_env) or "").strip() or None
        application_id = (environ.get(app_id_env) or "").strip() or None

        if "allowed_role_ids" in cfg:
            allowed_role_ids = frozenset(_parse_string_ids(cfg.get("allowed_role_ids")))
        else:
            allowed_role_ids = frozenset(parse_role_ids(environ.get(allowed_roles_env)))

        registration_raw = cfg.get("command_registration")
        registration_cfg = (
            registration_raw if isinstance(registration_raw, Mapping) else {}
        )
        scope_raw = (
            str(registration_cfg.get("scope", DEFAULT_COMMAND_SCOPE)).strip().lower()
        )
        if scope_raw not in {"global", "guild"}:
            raise RelayBotConfigError(
                "discord_relay.command_registration.scope must be 'global' or 'guild'"
            )
        command_registration = DiscordCommandRegistration(
            enabled=bool(registration_cfg.get("enabled", True)),
            scope=scope_raw,
            guild_ids=tuple(_parse_string_ids(registration_cfg.get("guild_ids"))),
        )

        intents_value = cfg.get("intents", DEFAULT_INTENTS)
        if not isinstance(intents_value, int) or isinstance(intents_value, bool):
            raise RelayBotConfigError("discord_relay.intents must be an integer")
        if intents_value < 0:
            raise RelayBotConfigError("discord_relay.intents must be >= 0")

        max_message_length_value = cfg.get(
            "max_message_length", DISCORD_MAX_MESSAGE_LENGTH
        )
        if not isinstance(max_message_length_value, int):
            raise RelayBotConfigError(
                "discord_relay.max_message_length must be an integer"
            )
        if max_message_length_value <= 0:
            raise RelayBotConfigError("discord_relay.max_message_length must be > 0")

        return cls(
            bot_token_env=bot_token_env,
            app_id_env=app_id_env,
            allowed_roles_env=allowed_roles_env,
            bot_token=bot_token,
            application_id=application_id,
            allowed_role_ids=allowed_role_ids,
            command_registration=command_registration,
            intents=intents_value,
            session_ttl_seconds=_parse_positive_int_or_default(
                cfg.get("session_ttl_seconds"),
                default=DEFAULT_SESSION_TTL_SECONDS,
                key="discord_relay.session_ttl_seconds",
            ),
            reaper_interval_seconds=_parse_positive_int_or_default(
                cfg.get("reaper_interval_seconds"),
                default=DEFAULT_REAPER_INTERVAL_SECONDS,
                key="discord_relay.reaper_interval_seconds",
            ),
            max_message_length=min(
                max_message_length_value, DISCORD_MAX_MESSAGE_LENGTH
            ),
        )

    def require_credentials(self) -> None:
        if not self.bot_token:
            raise RelayBotConfigError(
                f"Discord relay requires env var {self.bot_token_env} to be set"
            )
        if not self.application_id:
            raise RelayBotConfigError(
                f"Discord relay requires env var {self.app_id_env} to be set"
            )


def _parse_env_name(cfg: Mapping[str, Any], key: str, default: str) -> str:
    value = str(cfg.get(key, default)).strip()
    if not value:
        raise RelayBotConfigError(f"discord_relay.{key} must be non-empty")
    return value


def _parse_string_ids(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return parse_role_ids(value)
    items = value if isinstance(value, (list, tuple, set, frozenset)) else [value]
    parsed: list[str] = []
    for item in items:
        token = str(item).strip()
        if token:
            parsed.append(token)
    return parsed


def _parse_positive_int_or_default(value: Any, *, default: int, key: str) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise RelayBotConfigError(f"{key} must be an integer")
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise RelayBotConfigError(f"{key} must be an integer") from exc
    if parsed <= 0:
        return default
    return parsed
