from __future__ import annotations

from typing import Any, Optional

from .constants import INTERACTION_APPLICATION_COMMAND, INTERACTION_MODAL_SUBMIT

# Component types that may carry a submitted text value.
_TEXT_INPUT = 4
_ACTION_ROW = 1
_LABEL = 18


def _as_id(value: object) -> str | None:
    if value is None:
        return None
    token = str(value).strip()
    return token or None


def _data(interaction_payload: dict[str, Any]) -> dict[str, Any]:
    data = interaction_payload.get("data")
    return data if isinstance(data, dict) else {}


def is_application_command(interaction_payload: dict[str, Any]) -> bool:
    return interaction_payload.get("type") == INTERACTION_APPLICATION_COMMAND


def is_modal_submit(interaction_payload: dict[str, Any]) -> bool:
    return interaction_payload.get("type") == INTERACTION_MODAL_SUBMIT


def extract_interaction_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("id"))


def extract_interaction_token(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("token"))


def extract_guild_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("guild_id"))


def extract_user_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    member = interaction_payload.get("member")
    if isinstance(member, dict):
        member_user = member.get("user")
        if isinstance(member_user, dict):
            user_id = _as_id(member_user.get("id"))
            if user_id:
                return user_id
    user = interaction_payload.get("user")
    if isinstance(user, dict):
        return _as_id(user.get("id"))
    return None


def extract_member_role_ids(interaction_payload: dict[str, Any]) -> frozenset[str]:
    """Role ids of the invoking guild member; empty outside guilds."""
    member = interaction_payload.get("member")
    if not isinstance(member, dict):
        return frozenset()
    roles = member.get("roles")
    if not isinstance(roles, list):
        return frozenset()
    return frozenset(role for role in (_as_id(item) for item in roles) if role)


def extract_command_name(interaction_payload: dict[str, Any]) -> Optional[str]:
    name = _data(interaction_payload).get("name")
    if not isinstance(name, str) or not name:
        return None
    return name


def extract_command_options(interaction_payload: dict[str, Any]) -> dict[str, Any]:
    options = _data(interaction_payload).get("options")
    parsed: dict[str, Any] = {}
    if not isinstance(options, list):
        return parsed
    for item in options:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        if not isinstance(name, str) or not name:
            continue
        parsed[name] = item.get("value")
    return parsed


def extract_modal_custom_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(_data(interaction_payload).get("custom_id"))


def _collect_text_inputs(components: Any, values: dict[str, str]) -> None:
    if not isinstance(components, list):
        return
    for component in components:
        if not isinstance(component, dict):
            continue
        component_type = component.get("type")
        if component_type == _ACTION_ROW:
            _collect_text_inputs(component.get("components"), values)
        elif component_type == _LABEL:
            _collect_text_inputs([component.get("component")], values)
        elif component_type == _TEXT_INPUT:
            custom_id = component.get("custom_id")
            value = component.get("value")
            if isinstance(custom_id, str) and custom_id:
                values[custom_id] = value if isinstance(value, str) else ""


def extract_modal_values(interaction_payload: dict[str, Any]) -> dict[str, str]:
    """Flatten submitted text inputs into ``custom_id -> value``."""
    values: dict[str, str] = {}
    _collect_text_inputs(_data(interaction_payload).get("components"), values)
    return values
