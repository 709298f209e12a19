"""Relay doctor checks."""

from __future__ import annotations

import dataclasses
from typing import Any, Optional

from .config import RelayBotConfig


@dataclasses.dataclass(frozen=True)
class DoctorCheck:
    name: str
    passed: bool
    message: str
    check_id: str
    severity: str = "error"
    fix: Optional[str] = None

    @property
    def status(self) -> str:
        if self.passed:
            return "ok" if self.severity != "warning" else "warning"
        return self.severity

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "message": self.message,
            "check_id": self.check_id,
            "fix": self.fix,
        }


@dataclasses.dataclass(frozen=True)
class DoctorReport:
    checks: list[DoctorCheck]

    def has_errors(self) -> bool:
        return any(check.status == "error" for check in self.checks)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": not self.has_errors(),
            "checks": [check.to_dict() for check in self.checks],
        }


def relay_doctor_checks(config: RelayBotConfig) -> list[DoctorCheck]:
    checks: list[DoctorCheck] = []

    if config.bot_token:
        checks.append(
            DoctorCheck(
                name="Discord bot token",
                passed=True,
                message=f"Bot token configured (env: {config.bot_token_env}).",
                check_id="relay.bot_token",
                severity="info",
            )
        )
    else:
        checks.append(
            DoctorCheck(
                name="Discord bot token",
                passed=False,
                message=f"Discord bot token not found in environment: {config.bot_token_env}",
                check_id="relay.bot_token",
                fix=f"Set {config.bot_token_env} environment variable.",
            )
        )

    if config.application_id:
        checks.append(
            DoctorCheck(
                name="Discord application ID",
                passed=True,
                message=f"Application ID configured (env: {config.app_id_env}).",
                check_id="relay.app_id",
                severity="info",
            )
        )
    else:
        checks.append(
            DoctorCheck(
                name="Discord application ID",
                passed=False,
                message=f"Discord application ID not found in environment: {config.app_id_env}",
                check_id="relay.app_id",
                fix=f"Set {config.app_id_env} environment variable.",
            )
        )

    if config.allowed_role_ids:
        checks.append(
            DoctorCheck(
                name="Role allowlist",
                passed=True,
                message=f"Role allowlist configured: {len(config.allowed_role_ids)} roles.",
                check_id="relay.allowlist",
                severity="info",
            )
        )
    else:
        # The relay still starts, but every command is denied.
        checks.append(
            DoctorCheck(
                name="Role allowlist",
                passed=False,
                message="No allowed roles configured; every invocation will be denied.",
                check_id="relay.allowlist",
                fix=(
                    f"Set {config.allowed_roles_env} to a comma-separated list of "
                    "role ids, or discord_relay.allowed_role_ids in config."
                ),
            )
        )

    registration = config.command_registration
    if not registration.enabled:
        checks.append(
            DoctorCheck(
                name="Command registration",
                passed=True,
                message="Startup command sync is disabled.",
                check_id="relay.command_registration",
                severity="warning",
                fix="Run `discord-relay register-commands` after changing commands.",
            )
        )
    elif registration.scope == "guild" and not registration.guild_ids:
        checks.append(
            DoctorCheck(
                name="Command registration",
                passed=False,
                message="Guild scope requires at least one guild id.",
                check_id="relay.command_registration",
                fix="Set discord_relay.command_registration.guild_ids.",
            )
        )
    else:
        checks.append(
            DoctorCheck(
                name="Command registration",
                passed=True,
                message=f"Commands register with {registration.scope} scope.",
                check_id="relay.command_registration",
                severity="info",
            )
        )

    return checks
