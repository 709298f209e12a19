from __future__ import annotations

from typing import Any, Optional

from .constants import (
    DISCORD_MAX_EMBED_FOOTER_LENGTH,
    DISCORD_MAX_EMBED_TITLE_LENGTH,
    DISCORD_MAX_MESSAGE_LENGTH,
    DISCORD_MAX_MODAL_TITLE_LENGTH,
)
from .sessions import SessionKind

TEXT_INPUT_STYLE_SHORT = 1
TEXT_INPUT_STYLE_PARAGRAPH = 2

ANNOUNCEMENT_DESCRIPTION_MAX_LENGTH = 4000
ANNOUNCEMENT_COLOR_MAX_LENGTH = 20

# Modal field ids shared by the builders and the submission handler.
FIELD_MESSAGE = "message"
FIELD_TITLE = "title"
FIELD_DESCRIPTION = "description"
FIELD_COLOR = "color"
FIELD_IMAGE = "image"
FIELD_FOOTER = "footer"


def build_action_row(components: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "type": 1,
        "components": components,
    }


def build_text_input(
    custom_id: str,
    label: str,
    *,
    style: int = TEXT_INPUT_STYLE_SHORT,
    required: bool = True,
    max_length: Optional[int] = None,
    placeholder: Optional[str] = None,
) -> dict[str, Any]:
    text_input: dict[str, Any] = {
        "type": 4,
        "custom_id": custom_id,
        "label": label[:45],
        "style": style,
        "required": required,
    }
    if max_length is not None:
        text_input["max_length"] = max_length
    if placeholder:
        text_input["placeholder"] = placeholder[:100]
    return text_input


def build_modal(
    custom_id: str,
    title: str,
    inputs: list[dict[str, Any]],
) -> dict[str, Any]:
    return {
        "custom_id": custom_id,
        "title": title[:DISCORD_MAX_MODAL_TITLE_LENGTH],
        "components": [build_action_row([text_input]) for text_input in inputs],
    }


def build_message_modal() -> dict[str, Any]:
    return build_modal(
        SessionKind.MESSAGE.modal_custom_id,
        "Send a message",
        [
            build_text_input(
                FIELD_MESSAGE,
                "Message",
                style=TEXT_INPUT_STYLE_PARAGRAPH,
                max_length=DISCORD_MAX_MESSAGE_LENGTH,
                placeholder="What should the bot say?",
            )
        ],
    )


def build_announcement_modal() -> dict[str, Any]:
    return build_modal(
        SessionKind.ANNOUNCEMENT.modal_custom_id,
        "Create an announcement",
        [
            build_text_input(
                FIELD_TITLE,
                "Title",
                max_length=DISCORD_MAX_EMBED_TITLE_LENGTH,
            ),
            build_text_input(
                FIELD_DESCRIPTION,
                "Description",
                style=TEXT_INPUT_STYLE_PARAGRAPH,
                max_length=ANNOUNCEMENT_DESCRIPTION_MAX_LENGTH,
                placeholder="Use \\n for a line break",
            ),
            build_text_input(
                FIELD_COLOR,
                "Color",
                required=False,
                max_length=ANNOUNCEMENT_COLOR_MAX_LENGTH,
                placeholder="red, gold, #5865F2 ...",
            ),
            build_text_input(
                FIELD_IMAGE,
                "Image URL",
                required=False,
                placeholder="https://...",
            ),
            build_text_input(
                FIELD_FOOTER,
                "Footer",
                style=TEXT_INPUT_STYLE_PARAGRAPH,
                required=False,
                max_length=DISCORD_MAX_EMBED_FOOTER_LENGTH,
            ),
        ],
    )


def build_modal_for(kind: SessionKind) -> dict[str, Any]:
    if kind is SessionKind.MESSAGE:
        return build_message_modal()
    return build_announcement_modal()
