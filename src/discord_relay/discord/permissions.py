"""Platform capabilities the relay needs: channel lookup, permissions, sending.

The service only talks to ``RelayPlatform``. ``DiscordRestPlatform`` is the
production implementation and computes the bot's effective permissions in a
channel the way Discord does: guild base permissions from ``@everyone`` and
member roles, then channel overwrites for ``@everyone``, roles and the member.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Optional, Protocol

from ..core.logging_utils import log_event
from .constants import TEXT_CHANNEL_TYPES
from .content import OutgoingContent
from .errors import DiscordNotFoundError
from .rest import DiscordRestClient

VIEW_CHANNEL = 1 << 10
SEND_MESSAGES = 1 << 11
ADMINISTRATOR = 1 << 3
ALL_PERMISSIONS = (1 << 53) - 1

_OVERWRITE_ROLE = 0
_OVERWRITE_MEMBER = 1


@dataclass(frozen=True)
class PermissionSet:
    value: int

    def has(self, flag: int) -> bool:
        return self.value & flag == flag

    def can_view(self) -> bool:
        return self.has(VIEW_CHANNEL)

    def can_send(self) -> bool:
        return self.has(SEND_MESSAGES)


@dataclass(frozen=True)
class PermissionOverwrite:
    target_id: str
    target_type: int
    allow: int
    deny: int


@dataclass(frozen=True)
class ChannelHandle:
    id: str
    type: int
    guild_id: Optional[str] = None
    name: Optional[str] = None
    overwrites: tuple[PermissionOverwrite, ...] = field(default_factory=tuple)

    @property
    def is_text_capable(self) -> bool:
        return self.type in TEXT_CHANNEL_TYPES


class RelayPlatform(Protocol):
    async def fetch_channel(
        self, channel_id: str, *, guild_id: str
    ) -> Optional[ChannelHandle]: ...

    async def resolve_permissions(
        self, channel: ChannelHandle, guild_id: str
    ) -> Optional[PermissionSet]: ...

    async def send(self, channel: ChannelHandle, content: OutgoingContent) -> None: ...


def _parse_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def parse_overwrites(raw: Any) -> tuple[PermissionOverwrite, ...]:
    if not isinstance(raw, list):
        return ()
    overwrites: list[PermissionOverwrite] = []
    for item in raw:
        if not isinstance(item, dict) or item.get("id") is None:
            continue
        overwrites.append(
            PermissionOverwrite(
                target_id=str(item["id"]),
                target_type=_parse_int(item.get("type")),
                allow=_parse_int(item.get("allow")),
                deny=_parse_int(item.get("deny")),
            )
        )
    return tuple(overwrites)


def parse_channel(payload: dict[str, Any]) -> Optional[ChannelHandle]:
    channel_id = payload.get("id")
    channel_type = payload.get("type")
    if channel_id is None or not isinstance(channel_type, int):
        return None
    guild_id = payload.get("guild_id")
    name = payload.get("name")
    return ChannelHandle(
        id=str(channel_id),
        type=channel_type,
        guild_id=str(guild_id) if guild_id is not None else None,
        name=name if isinstance(name, str) else None,
        overwrites=parse_overwrites(payload.get("permission_overwrites")),
    )


def compute_base_permissions(
    *,
    guild_id: str,
    owner_id: Optional[str],
    member_id: str,
    member_role_ids: Iterable[str],
    role_permissions: dict[str, int],
) -> int:
    if owner_id is not None and owner_id == member_id:
        return ALL_PERMISSIONS
    permissions = role_permissions.get(guild_id, 0)
    for role_id in member_role_ids:
        permissions |= role_permissions.get(role_id, 0)
    if permissions & ADMINISTRATOR:
        return ALL_PERMISSIONS
    return permissions


def compute_overwrites(
    base_permissions: int,
    *,
    guild_id: str,
    member_id: str,
    member_role_ids: Iterable[str],
    overwrites: Iterable[PermissionOverwrite],
) -> int:
    if base_permissions & ADMINISTRATOR:
        return ALL_PERMISSIONS
    by_target = {(ow.target_type, ow.target_id): ow for ow in overwrites}
    permissions = base_permissions

    everyone = by_target.get((_OVERWRITE_ROLE, guild_id))
    if everyone is not None:
        permissions &= ~everyone.deny
        permissions |= everyone.allow

    role_allow = 0
    role_deny = 0
    for role_id in member_role_ids:
        overwrite = by_target.get((_OVERWRITE_ROLE, role_id))
        if overwrite is not None:
            role_allow |= overwrite.allow
            role_deny |= overwrite.deny
    permissions &= ~role_deny
    permissions |= role_allow

    member = by_target.get((_OVERWRITE_MEMBER, member_id))
    if member is not None:
        permissions &= ~member.deny
        permissions |= member.allow
    return permissions


class DiscordRestPlatform:
    """``RelayPlatform`` backed by ``DiscordRestClient``.

    Permissions are fetched fresh on every call; nothing is cached between
    a command and its modal submission.
    """

    def __init__(
        self,
        rest: DiscordRestClient,
        *,
        logger: logging.Logger,
        bot_user_id: Optional[str] = None,
    ) -> None:
        self._rest = rest
        self._logger = logger
        self._bot_user_id = bot_user_id

    def set_bot_user_id(self, user_id: str) -> None:
        self._bot_user_id = user_id

    async def _resolve_bot_user_id(self) -> Optional[str]:
        if self._bot_user_id:
            return self._bot_user_id
        user = await self._rest.get_current_user()
        user_id = user.get("id")
        if user_id is not None:
            self._bot_user_id = str(user_id)
        return self._bot_user_id

    async def fetch_channel(
        self, channel_id: str, *, guild_id: str
    ) -> Optional[ChannelHandle]:
        # GET /channels/{id} answers 403 for channels the bot cannot view, while
        # the guild channel list still carries their overwrites.
        try:
            channels = await self._rest.get_guild_channels(guild_id=guild_id)
        except DiscordNotFoundError:
            return None
        for payload in channels:
            if str(payload.get("id")) == channel_id:
                channel = parse_channel(payload)
                if channel is not None and channel.guild_id is None:
                    channel = replace(channel, guild_id=guild_id)
                return channel
        return None

    async def resolve_permissions(
        self, channel: ChannelHandle, guild_id: str
    ) -> Optional[PermissionSet]:
        bot_user_id = await self._resolve_bot_user_id()
        if not bot_user_id:
            return None
        try:
            member, guild, roles = await asyncio.gather(
                self._rest.get_guild_member(guild_id=guild_id, user_id=bot_user_id),
                self._rest.get_guild(guild_id=guild_id),
                self._rest.get_guild_roles(guild_id=guild_id),
            )
        except DiscordNotFoundError as exc:
            log_event(
                self._logger,
                logging.INFO,
                "relay.permissions.unresolvable",
                guild_id=guild_id,
                channel_id=channel.id,
                exc=exc,
            )
            return None
        if not member:
            return None

        member_roles = [str(role) for role in member.get("roles") or []]
        role_permissions = {
            str(role["id"]): _parse_int(role.get("permissions"))
            for role in roles
            if role.get("id") is not None
        }
        owner_id = guild.get("owner_id")
        base = compute_base_permissions(
            guild_id=guild_id,
            owner_id=str(owner_id) if owner_id is not None else None,
            member_id=bot_user_id,
            member_role_ids=member_roles,
            role_permissions=role_permissions,
        )
        effective = compute_overwrites(
            base,
            guild_id=guild_id,
            member_id=bot_user_id,
            member_role_ids=member_roles,
            overwrites=channel.overwrites,
        )
        return PermissionSet(effective)

    async def send(self, channel: ChannelHandle, content: OutgoingContent) -> None:
        await self._rest.create_channel_message(
            channel_id=channel.id, payload=content.to_payload()
        )
