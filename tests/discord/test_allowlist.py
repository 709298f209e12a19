from __future__ import annotations

import json
import logging

import pytest

from discord_relay.discord.allowlist import (
    RoleAllowlist,
    allowlist_allows,
    parse_role_ids,
)


def test_parse_role_ids_trims_and_drops_empty_entries() -> None:
    assert parse_role_ids(" 111 , 222,,333 ,") == ["111", "222", "333"]
    assert parse_role_ids("") == []
    assert parse_role_ids(None) == []


def test_allowlist_allows_any_intersecting_role() -> None:
    allowlist = RoleAllowlist.from_string("r1,r2")
    assert allowlist_allows(["r9", "r2"], allowlist) is True
    assert allowlist_allows(["r9"], allowlist) is False
    assert allowlist_allows([], allowlist) is False


def test_allowlist_coerces_numeric_role_ids() -> None:
    allowlist = RoleAllowlist(allowed_role_ids=frozenset({"123"}))
    assert allowlist_allows([123], allowlist) is True


def test_empty_allowlist_denies_and_warns_every_call(
    caplog: pytest.LogCaptureFixture,
) -> None:
    allowlist = RoleAllowlist.from_string("")
    logger = logging.getLogger("test.allowlist")

    with caplog.at_level(logging.WARNING, logger="test.allowlist"):
        assert allowlist_allows(["r1"], allowlist, log=logger) is False
        assert allowlist_allows(["r1"], allowlist, log=logger) is False

    events = [json.loads(record.getMessage())["event"] for record in caplog.records]
    assert events == [
        "relay.authorization.empty_allowlist",
        "relay.authorization.empty_allowlist",
    ]


def test_allowlist_grants_on_partial_overlap_only() -> None:
    allowlist = RoleAllowlist.from_string("R1,R2")
    assert allowlist_allows({"R2", "R3"}, allowlist) is True
    assert allowlist_allows({"R3", "R4"}, allowlist) is False


def test_empty_allowlist_denies_regardless_of_role_count() -> None:
    allowlist = RoleAllowlist(allowed_role_ids=frozenset())
    assert allowlist_allows([], allowlist) is False
    assert allowlist_allows([f"r{i}" for i in range(50)], allowlist) is False
