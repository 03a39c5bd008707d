from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from shared.errors import ConfigError
from shared.log import get_logger

logger = get_logger(__name__)

CONFIG_FILE_NAME = "config.yaml"
IDENTITY_FILE_NAME = "servers.json"


def default_config_dir() -> Path:
    return Path(os.getenv("MINECHAT_HOME", str(Path.home() / ".minechat"))).expanduser()


@dataclass
class Settings:
    """
    Client settings.

    Resolution order, lowest to highest: built-in defaults,
    <config_dir>/config.yaml, environment variables.

    config.yaml example:
        server: mc.example.com:25575
        log_level: DEBUG
        connect_timeout: 5
    """
    config_dir: Path
    server: Optional[str] = None
    log_level: str = "INFO"
    connect_timeout: float = 10.0

    @property
    def identity_file(self) -> Path:
        return self.config_dir / IDENTITY_FILE_NAME


def load_settings(config_dir: Optional[Path] = None) -> Settings:
    config_dir = Path(config_dir) if config_dir is not None else default_config_dir()
    settings = Settings(config_dir=config_dir)

    _apply(settings, _read_config_file(config_dir / CONFIG_FILE_NAME))
    _apply(settings, {
        "server": os.getenv("MINECHAT_SERVER"),
        "log_level": os.getenv("MINECHAT_LOG_LEVEL"),
        "connect_timeout": os.getenv("MINECHAT_CONNECT_TIMEOUT"),
    })
    return settings


def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.debug(f"No {path.name} found; using defaults")
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Error reading {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")
    return data


def _apply(settings: Settings, values: Dict[str, Any]) -> None:
    server = values.get("server")
    if server is not None:
        if not isinstance(server, str):
            raise ConfigError("'server' must be a host:port string")
        settings.server = server

    log_level = values.get("log_level")
    if log_level is not None:
        if not isinstance(log_level, str):
            raise ConfigError("'log_level' must be a string")
        settings.log_level = log_level.upper()

    timeout = values.get("connect_timeout")
    if timeout is not None:
        try:
            settings.connect_timeout = float(timeout)
        except (TypeError, ValueError):
            raise ConfigError(f"'connect_timeout' must be a number, got {timeout!r}")
        if settings.connect_timeout <= 0:
            raise ConfigError("'connect_timeout' must be positive")
