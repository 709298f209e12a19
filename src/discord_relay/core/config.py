from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger("discord_relay.core.config")

CONFIG_FILENAME = "discord-relay.yml"
STATE_DIRNAME = ".discord-relay"
DEFAULT_LOG_PATH = f"{STATE_DIRNAME}/discord-relay.log"
DEFAULT_LOG_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_LOG_BACKUP_COUNT = 3


class ConfigError(Exception):
    """Raised when the relay configuration file cannot be used."""


@dataclasses.dataclass
class LogConfig:
    path: Path
    max_bytes: int
    backup_count: int


@dataclasses.dataclass
class RelayConfig:
    root: Path
    raw: Dict[str, Any]
    log: LogConfig

    def section(self, name: str) -> Dict[str, Any]:
        value = self.raw.get(name)
        return value if isinstance(value, dict) else {}


def _load_yaml_dict(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a mapping: {path}")
    return data


def load_dotenv_for_root(root: Path) -> None:
    """
    Best-effort load of environment variables for the provided root.

    Files are read from fixed locations under ``root`` rather than the process
    CWD, and values in them win over inherited process environment.
    """
    try:
        root = root.resolve()
        for candidate in (root / ".env", root / STATE_DIRNAME / ".env"):
            if candidate.exists():
                load_dotenv(dotenv_path=candidate, override=True)
    except OSError as exc:
        logger.debug("Failed to load .env file: %s", exc)


def _parse_log_config(root: Path, raw: Mapping[str, Any]) -> LogConfig:
    log_raw = raw.get("log")
    log_cfg: Mapping[str, Any] = log_raw if isinstance(log_raw, dict) else {}
    path_value = log_cfg.get("path", DEFAULT_LOG_PATH)
    if not isinstance(path_value, str) or not path_value.strip():
        raise ConfigError("log.path must be a non-empty string")
    max_bytes = log_cfg.get("max_bytes", DEFAULT_LOG_MAX_BYTES)
    backup_count = log_cfg.get("backup_count", DEFAULT_LOG_BACKUP_COUNT)
    if not isinstance(max_bytes, int) or max_bytes <= 0:
        raise ConfigError("log.max_bytes must be a positive integer")
    if not isinstance(backup_count, int) or backup_count < 0:
        raise ConfigError("log.backup_count must be a non-negative integer")
    path = Path(path_value)
    if not path.is_absolute():
        path = root / path
    return LogConfig(path=path, max_bytes=max_bytes, backup_count=backup_count)


def load_relay_config(root: Optional[Path] = None, *, load_env: bool = True) -> RelayConfig:
    resolved_root = (root or Path.cwd()).resolve()
    if load_env:
        load_dotenv_for_root(resolved_root)
    raw = _load_yaml_dict(resolved_root / CONFIG_FILENAME)
    return RelayConfig(
        root=resolved_root,
        raw=raw,
        log=_parse_log_config(resolved_root, raw),
    )
