from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.retry import transient_retrying
from .constants import DISCORD_API_BASE_URL
from .errors import (
    DiscordAPIError,
    DiscordNotFoundError,
    DiscordPermanentError,
    DiscordTransientError,
)

logger = logging.getLogger(__name__)

_NETWORK_ERRORS = (
    httpx.ConnectError,
    httpx.ReadError,
    httpx.WriteError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.PoolTimeout,
    httpx.RemoteProtocolError,
)


def _discord_error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return (response.text or "").strip().replace("\n", " ")[:200]


def _retry_after_seconds(response: httpx.Response) -> float | None:
    raw = response.headers.get("Retry-After")
    if raw is None:
        try:
            body = response.json()
        except ValueError:
            return None
        raw = body.get("retry_after") if isinstance(body, dict) else None
    if raw is None:
        return None
    try:
        return max(float(raw), 0.0)
    except (TypeError, ValueError):
        return None


class DiscordRestClient:
    """Minimal Discord REST client.

    Reads retry transient failures (429, 5xx, network errors) with exponential
    backoff. Writes (messages, interaction callbacks) are attempted once.
    """

    def __init__(
        self,
        *,
        bot_token: str,
        timeout_seconds: float = 10.0,
        base_url: str = DISCORD_API_BASE_URL,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 30.0,
    ) -> None:
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout_seconds)
        self._authorization_header = f"Bot {bot_token}"
        self._max_retries = max(max_retries, 0)
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "DiscordRestClient":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        payload: dict[str, Any] | list[dict[str, Any]] | None = None,
        expect_json: bool = True,
    ) -> Any:
        try:
            response = await self._client.request(
                method,
                path,
                json=payload,
                headers={"Authorization": self._authorization_header},
            )
        except _NETWORK_ERRORS as exc:
            raise DiscordTransientError(
                f"Discord API network error for {method} {path}: {exc}",
                user_message="Could not reach Discord. Please try again.",
            ) from exc
        except httpx.HTTPError as exc:
            raise DiscordAPIError(
                f"Discord API request error for {method} {path}: {exc}"
            ) from exc

        status_code = response.status_code
        if status_code == 429:
            retry_after = _retry_after_seconds(response)
            raise DiscordTransientError(
                f"Discord API rate limit exceeded for {method} {path}",
                status_code=status_code,
                retry_after=retry_after,
                user_message="Discord is rate limiting the bot. Please try again shortly.",
            )
        if 500 <= status_code < 600:
            raise DiscordTransientError(
                f"Discord API server error for {method} {path}: "
                f"status={status_code} body={_discord_error_message(response)!r}",
                status_code=status_code,
                user_message="Discord had a server error. Please try again.",
            )
        reason = _discord_error_message(response)
        if status_code == 404:
            raise DiscordNotFoundError(
                f"Discord API resource not found for {method} {path}: {reason}",
                status_code=status_code,
                user_message=reason or "Not found.",
            )
        if status_code in {401, 403}:
            raise DiscordPermanentError(
                f"Discord API access denied for {method} {path}: "
                f"status={status_code} {reason}",
                status_code=status_code,
                user_message=reason or "Access denied.",
            )
        if not 200 <= status_code < 300:
            raise DiscordAPIError(
                f"Discord API request failed for {method} {path}: "
                f"status={status_code} {reason}",
                status_code=status_code,
                user_message=reason or None,
            )

        if not expect_json:
            return None
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise DiscordAPIError(
                f"Discord API returned non-JSON success response for {method} {path}"
            ) from exc

    async def _get(self, path: str) -> Any:
        async for attempt in transient_retrying(
            max_attempts=self._max_retries + 1,
            base_wait=self._retry_base_delay,
            max_wait=self._retry_max_delay,
        ):
            with attempt:
                return await self._request("GET", path)
        return None  # pragma: no cover

    async def get_gateway_bot(self) -> dict[str, Any]:
        payload = await self._get("/gateway/bot")
        return payload if isinstance(payload, dict) else {}

    async def get_current_user(self) -> dict[str, Any]:
        payload = await self._get("/users/@me")
        return payload if isinstance(payload, dict) else {}

    async def get_guild(self, *, guild_id: str) -> dict[str, Any]:
        payload = await self._get(f"/guilds/{guild_id}")
        return payload if isinstance(payload, dict) else {}

    async def get_guild_channels(self, *, guild_id: str) -> list[dict[str, Any]]:
        payload = await self._get(f"/guilds/{guild_id}/channels")
        if not isinstance(payload, list):
            return []
        return [item for item in payload if isinstance(item, dict)]

    async def get_guild_roles(self, *, guild_id: str) -> list[dict[str, Any]]:
        payload = await self._get(f"/guilds/{guild_id}/roles")
        if not isinstance(payload, list):
            return []
        return [item for item in payload if isinstance(item, dict)]

    async def get_guild_member(self, *, guild_id: str, user_id: str) -> dict[str, Any]:
        payload = await self._get(f"/guilds/{guild_id}/members/{user_id}")
        return payload if isinstance(payload, dict) else {}

    async def bulk_overwrite_application_commands(
        self,
        *,
        application_id: str,
        commands: list[dict[str, Any]],
        guild_id: str | None = None,
    ) -> list[dict[str, Any]]:
        path = (
            f"/applications/{application_id}/commands"
            if guild_id is None
            else f"/applications/{application_id}/guilds/{guild_id}/commands"
        )
        payload = await self._request("PUT", path, payload=commands)
        if not isinstance(payload, list):
            return []
        return [item for item in payload if isinstance(item, dict)]

    async def create_interaction_response(
        self,
        *,
        interaction_id: str,
        interaction_token: str,
        payload: dict[str, Any],
    ) -> None:
        await self._request(
            "POST",
            f"/interactions/{interaction_id}/{interaction_token}/callback",
            payload=payload,
            expect_json=False,
        )

    async def edit_original_interaction_response(
        self,
        *,
        application_id: str,
        interaction_token: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        response = await self._request(
            "PATCH",
            f"/webhooks/{application_id}/{interaction_token}/messages/@original",
            payload=payload,
        )
        return response if isinstance(response, dict) else {}

    async def create_channel_message(
        self,
        *,
        channel_id: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"/channels/{channel_id}/messages",
            payload=payload,
        )
        return response if isinstance(response, dict) else {}
