from __future__ import annotations

import pytest

from discord_relay.discord.config import RelayBotConfig, RelayBotConfigError
from discord_relay.discord.constants import DISCORD_INTENT_GUILDS


def test_defaults_read_standard_env_names() -> None:
    cfg = RelayBotConfig.from_raw(
        {},
        env={
            "DISCORD_TOKEN": " tok ",
            "DISCORD_APP_ID": "123",
            "ALLOWED_ROLE_IDS": "r1, r2,,",
        },
    )

    assert cfg.bot_token == "tok"
    assert cfg.application_id == "123"
    assert cfg.allowed_role_ids == frozenset({"r1", "r2"})
    assert cfg.intents == DISCORD_INTENT_GUILDS
    assert cfg.session_ttl_seconds == 300
    assert cfg.reaper_interval_seconds == 300
    assert cfg.command_registration.scope == "global"
    assert cfg.command_registration.enabled is True


def test_custom_env_names_and_yaml_role_list() -> None:
    cfg = RelayBotConfig.from_raw(
        {
            "bot_token_env": "RELAY_TOKEN",
            "app_id_env": "RELAY_APP",
            "allowed_role_ids": [111, "222"],
            "command_registration": {"scope": "Guild", "guild_ids": [9]},
            "session_ttl_seconds": 60,
        },
        env={"RELAY_TOKEN": "t", "RELAY_APP": "a", "ALLOWED_ROLE_IDS": "ignored"},
    )

    assert cfg.bot_token == "t"
    assert cfg.allowed_role_ids == frozenset({"111", "222"})
    assert cfg.command_registration.scope == "guild"
    assert cfg.command_registration.guild_ids == ("9",)
    assert cfg.session_ttl_seconds == 60


def test_missing_allowlist_is_empty_not_an_error() -> None:
    cfg = RelayBotConfig.from_raw(None, env={})

    assert cfg.allowed_role_ids == frozenset()
    assert cfg.bot_token is None


@pytest.mark.parametrize(
    "raw",
    [
        {"command_registration": {"scope": "everywhere"}},
        {"intents": "1"},
        {"intents": -1},
        {"max_message_length": 0},
        {"session_ttl_seconds": "soon"},
        {"bot_token_env": "  "},
    ],
)
def test_invalid_values_raise(raw: dict) -> None:
    with pytest.raises(RelayBotConfigError):
        RelayBotConfig.from_raw(raw, env={})


def test_require_credentials_names_missing_env() -> None:
    cfg = RelayBotConfig.from_raw({}, env={"DISCORD_TOKEN": "tok"})

    with pytest.raises(RelayBotConfigError, match="DISCORD_APP_ID"):
        cfg.require_credentials()
