from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Optional

from ..core.logging_utils import log_event
from .allowlist import RoleAllowlist, allowlist_allows
from .command_registry import sync_commands
from .commands import OPTION_CHANNEL, OPTION_PING, OPTION_THUMBNAIL, build_application_commands
from .config import RelayBotConfig
from .constants import (
    CALLBACK_CHANNEL_MESSAGE,
    CALLBACK_DEFERRED_CHANNEL_MESSAGE,
    CALLBACK_MODAL,
    DISCORD_EPHEMERAL_FLAG,
)
from .content import ContentError, OutgoingContent, build_announcement, build_plain_message
from .errors import DiscordAPIError
from .gateway import DiscordGatewayClient
from .interactions import (
    extract_command_name,
    extract_command_options,
    extract_guild_id,
    extract_interaction_id,
    extract_interaction_token,
    extract_member_role_ids,
    extract_modal_custom_id,
    extract_modal_values,
    extract_user_id,
    is_application_command,
    is_modal_submit,
)
from .modals import build_modal_for
from .permissions import DiscordRestPlatform, RelayPlatform
from .rendering import format_channel_mention, truncate_for_discord
from .rest import DiscordRestClient
from .sessions import Session, SessionKind, SessionReaper, SessionRegistry

PERMISSION_DENIED_TEXT = "You do not have permission to use this command."
GUILD_ONLY_TEXT = "This command can only be used inside a server."
MISSING_CHANNEL_TEXT = "Pick a text channel for this command."
UNKNOWN_INTERACTION_TEXT = "I don't recognize this command."
UNEXPECTED_ERROR_TEXT = "An unexpected error occurred. Please try again later."
INVALID_TARGET_TEXT = (
    "That channel is no longer available or is not a text channel. "
    "Run the command again and pick another channel."
)


def session_expired_text(kind: SessionKind) -> str:
    return (
        "Your session expired or was already used. "
        f"Run /{kind.command_name} again to pick a channel."
    )


def permissions_unresolvable_text(channel_mention: str) -> str:
    return (
        f"I couldn't determine my permissions in {channel_mention}. "
        "Make sure I am still a member of this server."
    )


def missing_view_text(channel_mention: str) -> str:
    return (
        f"I can't see {channel_mention}. Grant me the **View Channel** "
        "permission there and try again."
    )


def missing_send_text(channel_mention: str) -> str:
    return (
        f"I can't send messages in {channel_mention}. Grant me the "
        "**Send Messages** permission there and try again."
    )


def _send_failure_reason(exc: Exception) -> str:
    # Discord's own reason only exists when it answered; otherwise surface the
    # transport error itself.
    if (
        isinstance(exc, DiscordAPIError)
        and exc.status_code is not None
        and exc.user_message
    ):
        return exc.user_message
    return str(exc.__cause__ or exc)


def _noun(kind: SessionKind) -> str:
    return "Message" if kind is SessionKind.MESSAGE else "Announcement"


class EphemeralResponder:
    """Private replies for one interaction.

    Before ``defer`` replies go out as the interaction callback; afterwards
    they edit the deferred "thinking" message.
    """

    def __init__(
        self,
        rest: Any,
        *,
        application_id: str,
        interaction_id: str,
        interaction_token: str,
        logger: logging.Logger,
        max_message_length: int,
    ) -> None:
        self._rest = rest
        self._application_id = application_id
        self._interaction_id = interaction_id
        self._interaction_token = interaction_token
        self._logger = logger
        self._max_len = max(int(max_message_length), 32)
        self.acknowledged = False
        self.deferred = False

    async def defer(self) -> None:
        if self.acknowledged:
            return
        self.deferred = await self._callback(
            {
                "type": CALLBACK_DEFERRED_CHANNEL_MESSAGE,
                "data": {"flags": DISCORD_EPHEMERAL_FLAG},
            }
        )

    async def show_modal(self, modal: dict[str, Any]) -> bool:
        return await self._callback({"type": CALLBACK_MODAL, "data": modal})

    async def send(self, text: str) -> None:
        content = truncate_for_discord(text, max_len=self._max_len)
        if not self.deferred:
            await self._callback(
                {
                    "type": CALLBACK_CHANNEL_MESSAGE,
                    "data": {"content": content, "flags": DISCORD_EPHEMERAL_FLAG},
                }
            )
            return
        try:
            await self._rest.edit_original_interaction_response(
                application_id=self._application_id,
                interaction_token=self._interaction_token,
                payload={"content": content},
            )
        except DiscordAPIError as exc:
            self._log_failure(exc)

    async def _callback(self, payload: dict[str, Any]) -> bool:
        try:
            await self._rest.create_interaction_response(
                interaction_id=self._interaction_id,
                interaction_token=self._interaction_token,
                payload=payload,
            )
        except DiscordAPIError as exc:
            self._log_failure(exc)
            return False
        self.acknowledged = True
        return True

    def _log_failure(self, exc: DiscordAPIError) -> None:
        log_event(
            self._logger,
            logging.ERROR,
            "relay.response.failed",
            interaction_id=self._interaction_id,
            deferred=self.deferred,
            exc=exc,
        )


class RelayBotService:
    def __init__(
        self,
        config: RelayBotConfig,
        *,
        logger: logging.Logger,
        rest_client: Optional[DiscordRestClient] = None,
        gateway_client: Optional[DiscordGatewayClient] = None,
        platform: Optional[RelayPlatform] = None,
        sessions: Optional[SessionRegistry] = None,
        reaper: Optional[SessionReaper] = None,
    ) -> None:
        self._config = config
        self._logger = logger

        self._rest = (
            rest_client
            if rest_client is not None
            else DiscordRestClient(bot_token=config.bot_token or "")
        )
        self._owns_rest = rest_client is None

        self._gateway = (
            gateway_client
            if gateway_client is not None
            else DiscordGatewayClient(
                bot_token=config.bot_token or "",
                intents=config.intents,
                logger=logger,
            )
        )
        self._owns_gateway = gateway_client is None

        self._platform: RelayPlatform = (
            platform
            if platform is not None
            else DiscordRestPlatform(self._rest, logger=logger)
        )
        self._allowlist = RoleAllowlist(allowed_role_ids=config.allowed_role_ids)
        self._sessions = sessions if sessions is not None else SessionRegistry()
        self._reaper = (
            reaper
            if reaper is not None
            else SessionReaper(
                self._sessions,
                logger=logger,
                ttl_seconds=config.session_ttl_seconds,
                interval_seconds=config.reaper_interval_seconds,
            )
        )
        self._interaction_tasks: set[asyncio.Task[None]] = set()
        self._idle_event = asyncio.Event()
        self._idle_event.set()

    @property
    def sessions(self) -> SessionRegistry:
        return self._sessions

    async def run_forever(self) -> None:
        await self._sync_application_commands_on_startup()
        reaper_task = asyncio.create_task(self._reaper.run_loop())
        try:
            log_event(
                self._logger,
                logging.INFO,
                "relay.bot.starting",
                allowed_role_count=len(self._config.allowed_role_ids),
                session_ttl_seconds=self._config.session_ttl_seconds,
            )
            await self._gateway.run(self._on_dispatch)
        finally:
            await self.wait_idle()
            reaper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reaper_task
            await self._shutdown()

    async def _sync_application_commands_on_startup(self) -> None:
        registration = self._config.command_registration
        if not registration.enabled:
            log_event(self._logger, logging.INFO, "relay.commands.sync.disabled")
            return

        application_id = (self._config.application_id or "").strip()
        if not application_id:
            raise ValueError("missing Discord application id for command sync")
        if registration.scope == "guild" and not registration.guild_ids:
            raise ValueError("guild scope requires at least one guild_id")

        commands = build_application_commands()
        try:
            await sync_commands(
                self._rest,
                application_id=application_id,
                commands=commands,
                scope=registration.scope,
                guild_ids=registration.guild_ids,
                logger=self._logger,
            )
        except ValueError:
            raise
        except Exception as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "relay.commands.sync.startup_failed",
                scope=registration.scope,
                command_count=len(commands),
                exc=exc,
            )

    async def _shutdown(self) -> None:
        if self._owns_gateway:
            with contextlib.suppress(Exception):
                await self._gateway.stop()
        if self._owns_rest and hasattr(self._rest, "close"):
            with contextlib.suppress(Exception):
                await self._rest.close()

    async def _on_dispatch(self, event_type: str, payload: dict[str, Any]) -> None:
        if event_type == "READY":
            user = payload.get("user")
            user_id = user.get("id") if isinstance(user, dict) else None
            if user_id is not None and isinstance(self._platform, DiscordRestPlatform):
                self._platform.set_bot_user_id(str(user_id))
            log_event(self._logger, logging.INFO, "relay.bot.ready", user_id=user_id)
        elif event_type == "INTERACTION_CREATE":
            self._spawn_interaction(payload)

    def _spawn_interaction(self, payload: dict[str, Any]) -> None:
        # Interaction callbacks must land within 3s of the event, whatever
        # else is in flight.
        task = asyncio.create_task(self._handle_interaction(payload))
        self._interaction_tasks.add(task)
        self._idle_event.clear()
        task.add_done_callback(self._on_interaction_done)

    def _on_interaction_done(self, task: asyncio.Task[None]) -> None:
        self._interaction_tasks.discard(task)
        if not self._interaction_tasks:
            self._idle_event.set()

    async def wait_idle(self) -> None:
        """Wait until no interaction handlers remain in flight."""

        await self._idle_event.wait()

    def _responder(self, interaction_id: str, interaction_token: str) -> EphemeralResponder:
        return EphemeralResponder(
            self._rest,
            application_id=self._config.application_id or "",
            interaction_id=interaction_id,
            interaction_token=interaction_token,
            logger=self._logger,
            max_message_length=self._config.max_message_length,
        )

    async def _handle_interaction(self, interaction_payload: dict[str, Any]) -> None:
        interaction_id = extract_interaction_id(interaction_payload)
        interaction_token = extract_interaction_token(interaction_payload)
        if not interaction_id or not interaction_token:
            self._logger.warning(
                "handle_interaction: missing required fields (interaction_id=%s, token=%s)",
                bool(interaction_id),
                bool(interaction_token),
            )
            return

        responder = self._responder(interaction_id, interaction_token)
        try:
            if is_application_command(interaction_payload):
                kind = SessionKind.from_command(extract_command_name(interaction_payload))
                if kind is None:
                    await responder.send(UNKNOWN_INTERACTION_TEXT)
                    return
                await self.handle_command(kind, interaction_payload, responder)
            elif is_modal_submit(interaction_payload):
                kind = SessionKind.from_modal(extract_modal_custom_id(interaction_payload))
                if kind is None:
                    await responder.send(UNKNOWN_INTERACTION_TEXT)
                    return
                await self.handle_modal_submit(kind, interaction_payload, responder)
        except Exception as exc:
            log_event(
                self._logger,
                logging.ERROR,
                "relay.interaction.unhandled_error",
                interaction_id=interaction_id,
                exc=exc,
            )
            await responder.send(UNEXPECTED_ERROR_TEXT)

    def _is_authorized(self, interaction_payload: dict[str, Any]) -> bool:
        return allowlist_allows(
            extract_member_role_ids(interaction_payload),
            self._allowlist,
            log=self._logger,
        )

    async def handle_command(
        self,
        kind: SessionKind,
        interaction_payload: dict[str, Any],
        responder: EphemeralResponder,
    ) -> None:
        user_id = extract_user_id(interaction_payload)
        guild_id = extract_guild_id(interaction_payload)

        if not user_id or not self._is_authorized(interaction_payload):
            log_event(
                self._logger,
                logging.INFO,
                "relay.command.denied",
                command=kind.command_name,
                user_id=user_id,
                guild_id=guild_id,
            )
            await responder.send(PERMISSION_DENIED_TEXT)
            return
        if not guild_id:
            await responder.send(GUILD_ONLY_TEXT)
            return

        options = extract_command_options(interaction_payload)
        channel_id = options.get(OPTION_CHANNEL)
        channel_id = str(channel_id).strip() if channel_id is not None else ""
        if not channel_id:
            await responder.send(MISSING_CHANNEL_TEXT)
            return

        extras: dict[str, str] = {}
        for key in (OPTION_THUMBNAIL, OPTION_PING):
            value = options.get(key)
            if isinstance(value, str) and value.strip():
                extras[key] = value.strip()

        self._sessions.store(kind).put(user_id, channel_id, guild_id, options=extras)
        log_event(
            self._logger,
            logging.INFO,
            "relay.session.created",
            kind=kind.value,
            user_id=user_id,
            guild_id=guild_id,
            channel_id=channel_id,
        )
        if not await responder.show_modal(build_modal_for(kind)):
            # The actor never saw the form, so nothing can complete the session.
            self._sessions.store(kind).take(user_id)

    async def handle_modal_submit(
        self,
        kind: SessionKind,
        interaction_payload: dict[str, Any],
        responder: EphemeralResponder,
    ) -> None:
        user_id = extract_user_id(interaction_payload)
        store = self._sessions.store(kind)

        if not user_id or not self._is_authorized(interaction_payload):
            if user_id:
                store.take(user_id)
            log_event(
                self._logger,
                logging.INFO,
                "relay.submit.denied",
                kind=kind.value,
                user_id=user_id,
            )
            await responder.send(PERMISSION_DENIED_TEXT)
            return

        session = store.take(user_id)
        if session is None:
            log_event(
                self._logger,
                logging.INFO,
                "relay.session.missing",
                kind=kind.value,
                user_id=user_id,
            )
            await responder.send(session_expired_text(kind))
            return

        await responder.defer()
        await self._complete_session(
            kind, session, extract_modal_values(interaction_payload), responder
        )

    async def _complete_session(
        self,
        kind: SessionKind,
        session: Session,
        fields: dict[str, str],
        responder: EphemeralResponder,
    ) -> None:
        mention = format_channel_mention(session.target_channel_id)
        try:
            channel = await self._platform.fetch_channel(
                session.target_channel_id, guild_id=session.origin_context_id
            )
        except DiscordAPIError as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "relay.channel.resolve_failed",
                channel_id=session.target_channel_id,
                exc=exc,
            )
            channel = None
        if (
            channel is None
            or not channel.is_text_capable
            or (channel.guild_id is not None and channel.guild_id != session.origin_context_id)
        ):
            await responder.send(INVALID_TARGET_TEXT)
            return

        try:
            permissions = await self._platform.resolve_permissions(
                channel, session.origin_context_id
            )
        except DiscordAPIError as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "relay.permissions.resolve_failed",
                channel_id=channel.id,
                exc=exc,
            )
            permissions = None
        if permissions is None:
            await responder.send(permissions_unresolvable_text(mention))
            return
        if not permissions.can_view():
            await responder.send(missing_view_text(mention))
            return
        if not permissions.can_send():
            await responder.send(missing_send_text(mention))
            return

        try:
            content = self._build_content(kind, session, fields)
        except ContentError as exc:
            await responder.send(str(exc))
            return

        try:
            await self._platform.send(channel, content)
        except Exception as exc:
            reason = _send_failure_reason(exc)
            log_event(
                self._logger,
                logging.WARNING,
                "relay.send.failed",
                kind=kind.value,
                user_id=session.actor_id,
                channel_id=channel.id,
                exc=exc,
            )
            await responder.send(
                f"Failed to send {_noun(kind).lower()} to {mention}: {reason}"
            )
            return

        log_event(
            self._logger,
            logging.INFO,
            "relay.send.succeeded",
            kind=kind.value,
            user_id=session.actor_id,
            channel_id=channel.id,
        )
        await responder.send(f"{_noun(kind)} sent to {mention}.")

    @staticmethod
    def _build_content(
        kind: SessionKind, session: Session, fields: dict[str, str]
    ) -> OutgoingContent:
        if kind is SessionKind.MESSAGE:
            return build_plain_message(fields)
        return build_announcement(
            fields,
            thumbnail_url=session.options.get(OPTION_THUMBNAIL),
            preamble=session.options.get(OPTION_PING),
        )


def create_relay_bot_service(
    config: RelayBotConfig,
    *,
    logger: logging.Logger,
) -> RelayBotService:
    return RelayBotService(config, logger=logger)
