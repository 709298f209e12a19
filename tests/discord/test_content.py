from __future__ import annotations

import pytest

from discord_relay.discord.colors import DEFAULT_EMBED_COLOR
from discord_relay.discord.content import (
    ContentError,
    OutgoingContent,
    build_announcement,
    build_plain_message,
)


def test_plain_message_is_sent_verbatim() -> None:
    text = "  hello\\nworld **bold** <@&1>  "
    content = build_plain_message({"message": text})

    assert content.text == text
    assert content.to_payload() == {"content": text}


def test_plain_message_rejects_blank_or_too_long() -> None:
    with pytest.raises(ContentError):
        build_plain_message({"message": "   "})
    with pytest.raises(ContentError):
        build_plain_message({})
    with pytest.raises(ContentError):
        build_plain_message({"message": "x" * 2001})


def test_announcement_translates_literal_newlines_and_resolves_color() -> None:
    content = build_announcement(
        {
            "title": "Update",
            "description": "Line1\\nLine2",
            "color": "red",
            "image": "",
            "footer": "   ",
        }
    )

    assert content.text is None
    (embed,) = content.embeds
    assert embed == {
        "title": "Update",
        "description": "Line1\nLine2",
        "color": 0xED4245,
    }


def test_announcement_optional_parts_and_preamble() -> None:
    content = build_announcement(
        {
            "title": "Launch",
            "description": "Soon",
            "color": "#FF00",
            "image": " https://img.example/banner.png ",
            "footer": "Staff team",
        },
        thumbnail_url="https://img.example/thumb.png",
        preamble="<@&42>",
    )

    payload = content.to_payload()
    assert payload["content"] == "<@&42>"
    embed = payload["embeds"][0]
    assert embed["color"] == DEFAULT_EMBED_COLOR
    assert embed["image"] == {"url": "https://img.example/banner.png"}
    assert embed["thumbnail"] == {"url": "https://img.example/thumb.png"}
    assert embed["footer"] == {"text": "Staff team"}


def test_announcement_requires_title_and_description() -> None:
    with pytest.raises(ContentError):
        build_announcement({"title": " ", "description": "body"})
    with pytest.raises(ContentError):
        build_announcement({"title": "Title", "description": ""})


def test_empty_content_payload() -> None:
    assert OutgoingContent().to_payload() == {}


def test_announcement_rejects_embed_over_total_limit() -> None:
    fields = {"title": "t" * 256, "description": "d" * 4000, "footer": "f" * 2048}

    with pytest.raises(ContentError, match="6000"):
        build_announcement(fields)

    fields["footer"] = "f" * 1744
    content = build_announcement(fields)
    assert len(content.embeds[0]["footer"]["text"]) == 1744


def test_announcement_rejects_oversized_ping_text() -> None:
    with pytest.raises(ContentError):
        build_announcement(
            {"title": "Title", "description": "body"}, preamble="<@&1> " * 400
        )
