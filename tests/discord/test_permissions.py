from __future__ import annotations

import logging
from typing import Any

import pytest

from discord_relay.discord.content import OutgoingContent
from discord_relay.discord.errors import DiscordNotFoundError
from discord_relay.discord.permissions import (
    ADMINISTRATOR,
    ALL_PERMISSIONS,
    SEND_MESSAGES,
    VIEW_CHANNEL,
    ChannelHandle,
    DiscordRestPlatform,
    PermissionOverwrite,
    compute_base_permissions,
    compute_overwrites,
    parse_channel,
)

GUILD = "g1"
BOT = "bot-1"


def _overwrite(target_id: str, target_type: int, *, allow: int = 0, deny: int = 0):
    return PermissionOverwrite(
        target_id=target_id, target_type=target_type, allow=allow, deny=deny
    )


def test_base_permissions_union_everyone_and_member_roles() -> None:
    base = compute_base_permissions(
        guild_id=GUILD,
        owner_id="owner",
        member_id=BOT,
        member_role_ids=["r1"],
        role_permissions={GUILD: VIEW_CHANNEL, "r1": SEND_MESSAGES, "r2": 1 << 4},
    )
    assert base == VIEW_CHANNEL | SEND_MESSAGES


def test_owner_and_administrator_get_everything() -> None:
    assert (
        compute_base_permissions(
            guild_id=GUILD,
            owner_id=BOT,
            member_id=BOT,
            member_role_ids=[],
            role_permissions={},
        )
        == ALL_PERMISSIONS
    )
    admin_base = compute_base_permissions(
        guild_id=GUILD,
        owner_id="owner",
        member_id=BOT,
        member_role_ids=["admin"],
        role_permissions={"admin": ADMINISTRATOR},
    )
    assert admin_base == ALL_PERMISSIONS
    denied_everywhere = [_overwrite(GUILD, 0, deny=VIEW_CHANNEL | SEND_MESSAGES)]
    assert (
        compute_overwrites(
            admin_base,
            guild_id=GUILD,
            member_id=BOT,
            member_role_ids=["admin"],
            overwrites=denied_everywhere,
        )
        == ALL_PERMISSIONS
    )


def test_overwrites_apply_everyone_then_roles_then_member() -> None:
    base = VIEW_CHANNEL | SEND_MESSAGES
    overwrites = [
        _overwrite(GUILD, 0, deny=VIEW_CHANNEL | SEND_MESSAGES),
        _overwrite("r1", 0, allow=VIEW_CHANNEL),
        _overwrite("r2", 0, deny=VIEW_CHANNEL),
        _overwrite(BOT, 1, allow=SEND_MESSAGES),
    ]

    result = compute_overwrites(
        base,
        guild_id=GUILD,
        member_id=BOT,
        member_role_ids=["r1", "r2"],
        overwrites=overwrites,
    )

    # Role allow wins over role deny at the same level.
    assert result & VIEW_CHANNEL
    assert result & SEND_MESSAGES


def test_member_overwrite_deny_removes_send() -> None:
    result = compute_overwrites(
        VIEW_CHANNEL | SEND_MESSAGES,
        guild_id=GUILD,
        member_id=BOT,
        member_role_ids=[],
        overwrites=[_overwrite(BOT, 1, deny=SEND_MESSAGES)],
    )
    assert result == VIEW_CHANNEL


def test_parse_channel_reads_overwrites() -> None:
    channel = parse_channel(
        {
            "id": 10,
            "type": 5,
            "guild_id": GUILD,
            "permission_overwrites": [
                {"id": "r1", "type": 0, "allow": "1024", "deny": "0"},
                {"type": 0},
            ],
        }
    )
    assert channel is not None
    assert channel.id == "10"
    assert channel.is_text_capable is True
    assert channel.overwrites == (_overwrite("r1", 0, allow=VIEW_CHANNEL),)
    assert parse_channel({"id": "x"}) is None


class _FakeRest:
    def __init__(
        self,
        *,
        channels: list[dict[str, Any]],
        member: dict[str, Any] | None = None,
        roles: list[dict[str, Any]] | None = None,
        owner_id: str = "owner",
    ) -> None:
        self.channels = channels
        self.member = member
        self.roles = roles or []
        self.owner_id = owner_id
        self.sent: list[dict[str, Any]] = []
        self.current_user_calls = 0

    async def get_current_user(self) -> dict[str, Any]:
        self.current_user_calls += 1
        return {"id": BOT}

    async def get_guild_channels(self, *, guild_id: str) -> list[dict[str, Any]]:
        return self.channels

    async def get_guild_member(self, *, guild_id: str, user_id: str) -> dict[str, Any]:
        if self.member is None:
            raise DiscordNotFoundError("Unknown Member", status_code=404)
        return self.member

    async def get_guild(self, *, guild_id: str) -> dict[str, Any]:
        return {"id": guild_id, "owner_id": self.owner_id}

    async def get_guild_roles(self, *, guild_id: str) -> list[dict[str, Any]]:
        return self.roles

    async def create_channel_message(
        self, *, channel_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        self.sent.append({"channel_id": channel_id, "payload": payload})
        return {"id": "m1"}


def _platform(rest: _FakeRest, **kwargs: Any) -> DiscordRestPlatform:
    return DiscordRestPlatform(
        rest,  # type: ignore[arg-type]
        logger=logging.getLogger("test.permissions"),
        **kwargs,
    )


@pytest.mark.anyio
async def test_fetch_channel_uses_guild_listing() -> None:
    rest = _FakeRest(channels=[{"id": "c1", "type": 0}, {"id": "c2", "type": 2}])
    platform = _platform(rest)

    channel = await platform.fetch_channel("c1", guild_id=GUILD)
    voice = await platform.fetch_channel("c2", guild_id=GUILD)

    assert channel is not None
    assert channel.guild_id == GUILD
    assert voice is not None and voice.is_text_capable is False
    assert await platform.fetch_channel("c9", guild_id=GUILD) is None


@pytest.mark.anyio
async def test_resolve_permissions_for_hidden_channel() -> None:
    rest = _FakeRest(
        channels=[
            {
                "id": "c1",
                "type": 0,
                "permission_overwrites": [
                    {"id": GUILD, "type": 0, "allow": "0", "deny": str(VIEW_CHANNEL)}
                ],
            }
        ],
        member={"user": {"id": BOT}, "roles": ["bot-role"]},
        roles=[
            {"id": GUILD, "permissions": str(VIEW_CHANNEL | SEND_MESSAGES)},
            {"id": "bot-role", "permissions": "0"},
        ],
    )
    platform = _platform(rest)

    channel = await platform.fetch_channel("c1", guild_id=GUILD)
    assert channel is not None
    permissions = await platform.resolve_permissions(channel, GUILD)

    assert permissions is not None
    assert permissions.can_view() is False
    assert permissions.can_send() is True
    assert rest.current_user_calls == 1


@pytest.mark.anyio
async def test_resolve_permissions_uses_ready_user_id_and_handles_missing_member() -> None:
    rest = _FakeRest(channels=[], member=None)
    platform = _platform(rest)
    platform.set_bot_user_id(BOT)

    result = await platform.resolve_permissions(
        ChannelHandle(id="c1", type=0, guild_id=GUILD), GUILD
    )

    assert result is None
    assert rest.current_user_calls == 0


@pytest.mark.anyio
async def test_send_posts_content_payload() -> None:
    rest = _FakeRest(channels=[])
    platform = _platform(rest, bot_user_id=BOT)

    await platform.send(
        ChannelHandle(id="c1", type=0, guild_id=GUILD), OutgoingContent(text="hi")
    )

    assert rest.sent == [{"channel_id": "c1", "payload": {"content": "hi"}}]
