from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from ..core.logging_utils import log_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoleAllowlist:
    """Role ids allowed to drive the relay commands."""

    allowed_role_ids: frozenset[str]

    @classmethod
    def from_string(cls, value: str | None) -> "RoleAllowlist":
        return cls(allowed_role_ids=frozenset(parse_role_ids(value)))


def parse_role_ids(value: str | None) -> list[str]:
    """Split a comma separated role id list, trimming each entry."""
    if not value:
        return []
    return [token.strip() for token in value.split(",") if token.strip()]


def _as_id(value: object) -> str | None:
    if value is None:
        return None
    token = str(value).strip()
    return token or None


def allowlist_allows(
    role_ids: Iterable[object],
    allowlist: RoleAllowlist,
    *,
    log: logging.Logger | None = None,
) -> bool:
    """Return True when the actor holds at least one allowed role.

    An empty allow-list denies everyone and logs a warning on every call.
    """
    if not allowlist.allowed_role_ids:
        log_event(
            log or logger,
            logging.WARNING,
            "relay.authorization.empty_allowlist",
            detail="No allowed role ids configured; denying command.",
        )
        return False
    actor_roles = {role for role in (_as_id(item) for item in role_ids) if role}
    return not actor_roles.isdisjoint(allowlist.allowed_role_ids)
