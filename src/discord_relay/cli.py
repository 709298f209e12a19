from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, NoReturn, Optional

import typer

from . import __version__
from .core.config import ConfigError, RelayConfig, load_relay_config
from .core.logging_utils import setup_rotating_logger
from .discord.command_registry import sync_commands
from .discord.commands import build_application_commands
from .discord.config import RelayBotConfig, RelayBotConfigError
from .discord.doctor import DoctorReport, relay_doctor_checks
from .discord.rest import DiscordRestClient
from .discord.service import create_relay_bot_service

CONFIG_SECTION = "discord_relay"

app = typer.Typer(add_completion=False, help="Role-gated Discord message relay.")


def raise_exit(message: str, *, cause: Optional[BaseException] = None) -> NoReturn:
    typer.echo(message, err=True)
    if cause is not None:
        raise typer.Exit(code=1) from cause
    raise typer.Exit(code=1)


def _load_configs(path: Optional[Path]) -> tuple[RelayConfig, RelayBotConfig]:
    try:
        config = load_relay_config(path or Path.cwd())
        relay_cfg = RelayBotConfig.from_raw(config.section(CONFIG_SECTION))
    except (ConfigError, RelayBotConfigError) as exc:
        raise_exit(str(exc), cause=exc)
    return config, relay_cfg


async def _sync_application_commands(
    config: RelayBotConfig,
    *,
    logger: logging.Logger,
    rest_client_factory: Callable[..., Any] = DiscordRestClient,
    sync_func: Callable[..., Awaitable[None]] = sync_commands,
) -> None:
    config.require_credentials()
    commands = build_application_commands()
    async with rest_client_factory(bot_token=config.bot_token) as rest:
        await sync_func(
            rest,
            application_id=config.application_id,
            commands=commands,
            scope=config.command_registration.scope,
            guild_ids=config.command_registration.guild_ids,
            logger=logger,
        )


@app.command("start")
def start(
    path: Optional[Path] = typer.Option(None, "--path", help="Relay root path"),
) -> None:
    """Connect to Discord and serve /say and /announce."""
    config, relay_cfg = _load_configs(path)
    try:
        relay_cfg.require_credentials()
        logger = setup_rotating_logger("discord-relay", config.log)
        service = create_relay_bot_service(relay_cfg, logger=logger)
        asyncio.run(service.run_forever())
    except (RelayBotConfigError, ValueError) as exc:
        raise_exit(str(exc), cause=exc)
    except KeyboardInterrupt:
        typer.echo("Discord relay stopped.")


@app.command("register-commands")
def register_commands(
    path: Optional[Path] = typer.Option(None, "--path", help="Relay root path"),
) -> None:
    """Overwrite the registered application commands and exit."""
    _config, relay_cfg = _load_configs(path)
    try:
        asyncio.run(
            _sync_application_commands(
                relay_cfg,
                logger=logging.getLogger("discord_relay.commands"),
            )
        )
    except (RelayBotConfigError, ValueError) as exc:
        raise_exit(str(exc), cause=exc)
    typer.echo("Discord application commands synchronized.")


@app.command("doctor")
def doctor(
    path: Optional[Path] = typer.Option(None, "--path", help="Relay root path"),
    json_output: bool = typer.Option(
        False, "--json", help="Output JSON for scripting"
    ),
) -> None:
    """Check credentials, allowlist and command registration settings."""
    _config, relay_cfg = _load_configs(path)
    report = DoctorReport(checks=relay_doctor_checks(relay_cfg))
    if json_output:
        typer.echo(json.dumps(report.to_dict(), indent=2))
        if report.has_errors():
            raise typer.Exit(code=1)
        return
    for check in report.checks:
        line = f"- {check.status.upper()}: {check.message}"
        if check.fix:
            line = f"{line} Fix: {check.fix}"
        typer.echo(line)
    if report.has_errors():
        raise_exit("Doctor check failed")
    typer.echo("Doctor check passed")


@app.command("version")
def version() -> None:
    typer.echo(__version__)


def main() -> None:
    app()
