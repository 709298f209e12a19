from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .colors import resolve_color
from .constants import (
    DISCORD_MAX_EMBED_DESCRIPTION_LENGTH,
    DISCORD_MAX_EMBED_FOOTER_LENGTH,
    DISCORD_MAX_EMBED_TITLE_LENGTH,
    DISCORD_MAX_EMBED_TOTAL_LENGTH,
    DISCORD_MAX_MESSAGE_LENGTH,
)
from .modals import (
    FIELD_COLOR,
    FIELD_DESCRIPTION,
    FIELD_FOOTER,
    FIELD_IMAGE,
    FIELD_MESSAGE,
    FIELD_TITLE,
)

LITERAL_NEWLINE = "\\n"


@dataclass(frozen=True)
class OutgoingContent:
    """Payload for one channel message: plain text, an embed, or both."""

    text: Optional[str] = None
    embeds: tuple[dict[str, Any], ...] = field(default_factory=tuple)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.text:
            payload["content"] = self.text
        if self.embeds:
            payload["embeds"] = [dict(embed) for embed in self.embeds]
        return payload


class ContentError(ValueError):
    """Submitted form values cannot be turned into a message."""


def _optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def build_plain_message(fields: Mapping[str, str]) -> OutgoingContent:
    message = fields.get(FIELD_MESSAGE) or ""
    if not message.strip():
        raise ContentError("The message cannot be empty.")
    if len(message) > DISCORD_MAX_MESSAGE_LENGTH:
        raise ContentError(
            f"The message is longer than {DISCORD_MAX_MESSAGE_LENGTH} characters."
        )
    return OutgoingContent(text=message)


def build_announcement(
    fields: Mapping[str, str],
    *,
    thumbnail_url: Optional[str] = None,
    preamble: Optional[str] = None,
) -> OutgoingContent:
    title = _optional(fields.get(FIELD_TITLE))
    description = fields.get(FIELD_DESCRIPTION) or ""
    if title is None:
        raise ContentError("The announcement needs a title.")
    if not description.strip():
        raise ContentError("The announcement needs a description.")

    embed: dict[str, Any] = {
        "title": title[:DISCORD_MAX_EMBED_TITLE_LENGTH],
        "description": description.replace(LITERAL_NEWLINE, "\n")[
            :DISCORD_MAX_EMBED_DESCRIPTION_LENGTH
        ],
        "color": resolve_color(fields.get(FIELD_COLOR)),
    }
    image = _optional(fields.get(FIELD_IMAGE))
    if image:
        embed["image"] = {"url": image}
    thumbnail = _optional(thumbnail_url)
    if thumbnail:
        embed["thumbnail"] = {"url": thumbnail}
    footer = _optional(fields.get(FIELD_FOOTER))
    if footer:
        embed["footer"] = {"text": footer[:DISCORD_MAX_EMBED_FOOTER_LENGTH]}

    total = len(embed["title"]) + len(embed["description"])
    if "footer" in embed:
        total += len(embed["footer"]["text"])
    if total > DISCORD_MAX_EMBED_TOTAL_LENGTH:
        raise ContentError(
            f"The announcement is {total} characters long; Discord allows "
            f"{DISCORD_MAX_EMBED_TOTAL_LENGTH} across title, description and footer."
        )
    text = _optional(preamble)
    if text is not None and len(text) > DISCORD_MAX_MESSAGE_LENGTH:
        raise ContentError(
            f"The ping text is longer than {DISCORD_MAX_MESSAGE_LENGTH} characters."
        )

    return OutgoingContent(text=text, embeds=(embed,))
