from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from discord_relay.core.config import LogConfig
from discord_relay.core.logging_utils import log_event, setup_rotating_logger


def test_log_event_emits_json_with_event_key(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("test.log_event")

    with caplog.at_level(logging.INFO, logger="test.log_event"):
        log_event(
            logger,
            logging.INFO,
            "relay.session.created",
            user_id="u1",
            roles=frozenset({"b", "a"}),
            path=Path("/tmp/x"),
        )

    payload = json.loads(caplog.records[0].getMessage())
    assert payload == {
        "event": "relay.session.created",
        "user_id": "u1",
        "roles": ["a", "b"],
        "path": "/tmp/x",
    }


def test_log_event_records_exception_details(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("test.log_event")

    with caplog.at_level(logging.WARNING, logger="test.log_event"):
        log_event(logger, logging.WARNING, "relay.send.failed", exc=ValueError("bad"))

    payload = json.loads(caplog.records[0].getMessage())
    assert payload["exc"] == "bad"
    assert payload["exc_type"] == "ValueError"


def test_log_event_skips_disabled_levels(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("test.log_event.quiet")

    with caplog.at_level(logging.WARNING, logger="test.log_event.quiet"):
        log_event(logger, logging.DEBUG, "relay.debug")

    assert caplog.records == []


def test_setup_rotating_logger_writes_file(tmp_path: Path) -> None:
    log_path = tmp_path / "logs" / "relay.log"
    logger = setup_rotating_logger(
        "test-relay-rotating",
        LogConfig(path=log_path, max_bytes=1024, backup_count=1),
    )
    try:
        log_event(logger, logging.INFO, "relay.bot.starting")
        for handler in logger.handlers:
            handler.flush()
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    assert '"event": "relay.bot.starting"' in log_path.read_text(encoding="utf-8")
