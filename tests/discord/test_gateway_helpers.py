from __future__ import annotations

import json
import logging
from typing import Any

import pytest

from discord_relay.discord import gateway as gateway_module
from discord_relay.discord.errors import DiscordAPIError
from discord_relay.discord.gateway import (
    DiscordGatewayClient,
    build_identify_payload,
    calculate_reconnect_backoff,
    gateway_close_code,
    parse_gateway_frame,
)


async def _noop_dispatch(_event_type: str, _payload: dict[str, object]) -> None:
    return None


def test_identify_payload_uses_configured_intents() -> None:
    payload = build_identify_payload(bot_token="tok", intents=1)

    assert payload["op"] == 2
    assert payload["d"]["token"] == "tok"
    assert payload["d"]["intents"] == 1
    assert payload["d"]["properties"]["browser"] == "discord-relay"


def test_parse_gateway_frame_variants() -> None:
    frame = parse_gateway_frame(
        json.dumps({"op": 0, "s": 4, "t": "READY", "d": {"user": {"id": "b"}}})
    )
    assert frame.op == 0
    assert frame.s == 4
    assert frame.t == "READY"
    assert parse_gateway_frame(b'{"op": 11}').op == 11

    with pytest.raises(DiscordAPIError):
        parse_gateway_frame('{"d": null}')
    with pytest.raises(DiscordAPIError):
        parse_gateway_frame("[1, 2]")


def test_reconnect_backoff_grows_and_caps() -> None:
    first = calculate_reconnect_backoff(0, rand_float=lambda: 0.5)
    second = calculate_reconnect_backoff(1, rand_float=lambda: 0.5)

    assert first == pytest.approx(1.0)
    assert second == pytest.approx(2.0)
    assert calculate_reconnect_backoff(20) == 30.0
    assert calculate_reconnect_backoff(3, max_seconds=0) == 0.0


def test_gateway_close_code_reads_exception_shapes() -> None:
    class _Closed(Exception):
        code = 4004

    class _Received:
        code = 4000

    class _Wrapped(Exception):
        rcvd = _Received()

    assert gateway_close_code(_Closed()) == 4004
    assert gateway_close_code(_Wrapped()) == 4000
    assert gateway_close_code(RuntimeError()) is None


class _FakeWebSocket:
    def __init__(self, frames: list[dict[str, Any]]) -> None:
        self._frames = [json.dumps(frame) for frame in frames]
        self.sent: list[dict[str, Any]] = []

    async def recv(self) -> str:
        return self._frames.pop(0)

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        if not self._frames:
            raise StopAsyncIteration
        return self._frames.pop(0)


@pytest.mark.anyio
async def test_connection_identifies_and_forwards_dispatches() -> None:
    client = DiscordGatewayClient(
        bot_token="tok",
        intents=1,
        logger=logging.getLogger("test.gateway"),
        gateway_url="wss://example.invalid",
    )
    websocket = _FakeWebSocket(
        [
            {"op": 10, "d": {"heartbeat_interval": 60000}},
            {"op": 0, "s": 1, "t": "READY", "d": {"user": {"id": "bot"}}},
            {"op": 1, "d": None},
            {"op": 0, "s": 2, "t": "INTERACTION_CREATE", "d": {"id": "i1"}},
            {"op": 7, "d": None},
            {"op": 0, "s": 3, "t": "INTERACTION_CREATE", "d": {"id": "i2"}},
        ]
    )
    seen: list[tuple[str, dict[str, Any]]] = []

    async def dispatch(event_type: str, payload: dict[str, Any]) -> None:
        seen.append((event_type, payload))

    try:
        await client._run_connection(websocket, dispatch)
    finally:
        await client._cancel_heartbeat()

    assert websocket.sent[0]["op"] == 2
    assert websocket.sent[1] == {"op": 1, "d": 1}
    assert seen == [
        ("READY", {"user": {"id": "bot"}}),
        ("INTERACTION_CREATE", {"id": "i1"}),
    ]
    assert client._ready_in_connection is True


@pytest.mark.anyio
async def test_connection_requires_hello_first() -> None:
    client = DiscordGatewayClient(
        bot_token="tok", intents=1, logger=logging.getLogger("test.gateway")
    )

    with pytest.raises(DiscordAPIError):
        await client._run_connection(
            _FakeWebSocket([{"op": 11}]), _noop_dispatch
        )


@pytest.mark.anyio
async def test_run_stops_after_connect_failure_when_stop_requested(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    client = DiscordGatewayClient(
        bot_token="token",
        intents=0,
        logger=logging.getLogger("test.gateway"),
        gateway_url="wss://example.invalid",
    )

    class _FailingWebSocketModule:
        def connect(self, _gateway_url: str):
            client._stop_event.set()
            raise RuntimeError("simulated connect failure")

    monkeypatch.setattr(gateway_module, "websockets", _FailingWebSocketModule())

    await client.run(_noop_dispatch)
