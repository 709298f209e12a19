from __future__ import annotations

from discord_relay.discord.commands import build_application_commands


def test_builds_say_and_announce_guild_only_commands() -> None:
    commands = {command["name"]: command for command in build_application_commands()}

    assert set(commands) == {"say", "announce"}
    for command in commands.values():
        assert command["type"] == 1
        assert command["dm_permission"] is False
        channel = command["options"][0]
        assert channel["name"] == "channel"
        assert channel["type"] == 7
        assert channel["required"] is True
        assert channel["channel_types"] == [0, 5]


def test_announce_has_optional_thumbnail_and_ping() -> None:
    announce = next(
        command
        for command in build_application_commands()
        if command["name"] == "announce"
    )
    extras = {option["name"]: option for option in announce["options"][1:]}

    assert set(extras) == {"thumbnail", "ping"}
    assert all(option["required"] is False for option in extras.values())
    assert all(option["type"] == 3 for option in extras.values())
