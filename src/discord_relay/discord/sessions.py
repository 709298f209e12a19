"""Pending relay sessions.

A session records which channel an actor picked when invoking ``/say`` or
``/announce``. It lives until the matching modal is submitted (consumed once
via ``take``) or until the reaper sweeps it after the TTL expires.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Awaitable, Callable, Iterator, Mapping, Optional

from ..core.logging_utils import log_event

DEFAULT_SESSION_TTL_SECONDS = 300
DEFAULT_REAPER_INTERVAL_SECONDS = 300

Clock = Callable[[], float]


class SessionKind(str, enum.Enum):
    MESSAGE = "say"
    ANNOUNCEMENT = "announce"

    @property
    def command_name(self) -> str:
        return self.value

    @property
    def modal_custom_id(self) -> str:
        if self is SessionKind.MESSAGE:
            return "message_modal"
        return "announcement_modal"

    @classmethod
    def from_command(cls, name: Optional[str]) -> Optional["SessionKind"]:
        for kind in cls:
            if kind.command_name == name:
                return kind
        return None

    @classmethod
    def from_modal(cls, custom_id: Optional[str]) -> Optional["SessionKind"]:
        for kind in cls:
            if kind.modal_custom_id == custom_id:
                return kind
        return None


@dataclass(frozen=True)
class Session:
    actor_id: str
    target_channel_id: str
    origin_context_id: str
    created_at: float
    options: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def age(self, now: float) -> float:
        return now - self.created_at


class SessionStore:
    """Actor id -> pending session for a single session kind.

    ``put``, ``take`` and ``sweep`` share one lock, so a session is observed by
    exactly one of ``take`` or ``sweep``.
    """

    def __init__(self, kind: SessionKind, *, clock: Clock = time.monotonic) -> None:
        self.kind = kind
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def put(
        self,
        actor_id: str,
        channel_id: str,
        context_id: str,
        *,
        options: Optional[Mapping[str, str]] = None,
    ) -> Session:
        session = Session(
            actor_id=actor_id,
            target_channel_id=channel_id,
            origin_context_id=context_id,
            created_at=self._clock(),
            options=MappingProxyType(dict(options or {})),
        )
        with self._lock:
            self._sessions[actor_id] = session
        return session

    def take(self, actor_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.pop(actor_id, None)

    def sweep(self, ttl_seconds: float, now: Optional[float] = None) -> int:
        current = self._clock() if now is None else now
        with self._lock:
            expired = [
                actor_id
                for actor_id, session in self._sessions.items()
                if session.age(current) > ttl_seconds
            ]
            for actor_id in expired:
                del self._sessions[actor_id]
        return len(expired)

    def peek(self, actor_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(actor_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


class SessionRegistry:
    """One ``SessionStore`` per ``SessionKind``, built once per service."""

    def __init__(self, *, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._stores = {kind: SessionStore(kind, clock=clock) for kind in SessionKind}

    def store(self, kind: SessionKind) -> SessionStore:
        return self._stores[kind]

    def __iter__(self) -> Iterator[SessionStore]:
        return iter(self._stores.values())

    def sweep(self, ttl_seconds: float, now: Optional[float] = None) -> dict[SessionKind, int]:
        current = self._clock() if now is None else now
        return {
            kind: store.sweep(ttl_seconds, current)
            for kind, store in self._stores.items()
        }


class SessionReaper:
    """Periodically evicts sessions older than the TTL."""

    def __init__(
        self,
        registry: SessionRegistry,
        *,
        logger: logging.Logger,
        ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
        interval_seconds: float = DEFAULT_REAPER_INTERVAL_SECONDS,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._registry = registry
        self._logger = logger
        self._ttl_seconds = ttl_seconds
        self._interval_seconds = max(interval_seconds, 0.1)
        self._sleep = sleep_fn

    def reap_once(self) -> int:
        removed = self._registry.sweep(self._ttl_seconds)
        total = sum(removed.values())
        if total:
            log_event(
                self._logger,
                logging.INFO,
                "relay.sessions.reaped",
                removed=total,
                by_kind={kind.value: count for kind, count in removed.items()},
                ttl_seconds=self._ttl_seconds,
            )
        return total

    async def run_loop(self) -> None:
        while True:
            await self._sleep(self._interval_seconds)
            try:
                self.reap_once()
            except Exception as exc:
                log_event(
                    self._logger,
                    logging.WARNING,
                    "relay.sessions.reap_failed",
                    exc=exc,
                )
