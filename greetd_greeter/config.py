"""Greeter configuration loading.

Values are layered: built-in defaults, then the YAML file, then the
environment (GREETD_SOCK), then explicit overrides from the command line.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from .conversation import MAX_PROMPT_ROUNDS
from .errors import ConfigError
from .launch import DEFAULT_SESSION_WRAPPER
from .sessions import DEFAULT_SESSION_DIRS, DesktopSession
from .transport.ipc import SOCKET_ENV_VAR

DEFAULT_CONFIG_PATH = Path("/etc/greetd/greeter.yaml")

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class GreeterConfig:
    """Resolved greeter settings.

    Attributes:
        socket_path: greetd IPC socket.
        username: Identity to authenticate without prompting.
        session: Name of the session selected at startup.
        session_wrapper: Program that receives the session Exec line.
        session_dirs: Directories scanned for ``.desktop`` files.
        sessions: Extra sessions defined in configuration.
        connect_timeout: Seconds allowed for connecting to greetd.
        response_timeout: Seconds allowed per response, None to wait forever.
        max_prompt_rounds: Prompts accepted within one conversation.
        log_level: Root logging level name.
        log_file: Log destination, None for stderr.
    """

    socket_path: str | None = None
    username: str | None = None
    session: str | None = None
    session_wrapper: str | None = DEFAULT_SESSION_WRAPPER
    session_dirs: tuple[Path, ...] = DEFAULT_SESSION_DIRS
    sessions: tuple[DesktopSession, ...] = ()
    connect_timeout: float = 5.0
    response_timeout: float | None = None
    max_prompt_rounds: int = MAX_PROMPT_ROUNDS
    log_level: str = "INFO"
    log_file: Path | None = None


_KNOWN_KEYS = frozenset(f.name for f in fields(GreeterConfig))


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML file with error handling."""
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except OSError as err:
        raise ConfigError(f"Cannot read config file {path}: {err}") from err
    except yaml.YAMLError as err:
        raise ConfigError(f"Invalid YAML in {path}: {err}") from err
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def _optional_str(key: str, value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{key} must be a string")
    return value or None


def _positive_number(key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"{key} must be a positive number")
    return float(value)


def _parse_sessions(value: Any) -> tuple[DesktopSession, ...]:
    if not isinstance(value, list):
        raise ConfigError("sessions must be a list of {name, exec} mappings")
    sessions: list[DesktopSession] = []
    for idx, item in enumerate(value):
        if not isinstance(item, dict):
            raise ConfigError(f"sessions[{idx}] must be a mapping")
        name = item.get("name")
        exec_line = item.get("exec")
        if not isinstance(name, str) or not name:
            raise ConfigError(f"sessions[{idx}] is missing a name")
        if not isinstance(exec_line, str) or not exec_line:
            raise ConfigError(f"sessions[{idx}] is missing an exec command")
        sessions.append(DesktopSession(name=name, exec=exec_line))
    return tuple(sessions)


def _normalize(values: Mapping[str, Any]) -> dict[str, Any]:
    """Validate raw values and coerce them to GreeterConfig field types."""
    unknown = set(values) - _KNOWN_KEYS
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    normalized: dict[str, Any] = {}
    for key, value in values.items():
        if key in ("socket_path", "username", "session", "session_wrapper"):
            normalized[key] = _optional_str(key, value)
        elif key == "session_dirs":
            if not isinstance(value, list) or not all(isinstance(d, str) for d in value):
                raise ConfigError("session_dirs must be a list of paths")
            normalized[key] = tuple(Path(d) for d in value)
        elif key == "sessions":
            normalized[key] = _parse_sessions(value)
        elif key == "connect_timeout":
            normalized[key] = _positive_number(key, value)
        elif key == "response_timeout":
            normalized[key] = None if value is None else _positive_number(key, value)
        elif key == "max_prompt_rounds":
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigError("max_prompt_rounds must be a positive integer")
            normalized[key] = value
        elif key == "log_level":
            if not isinstance(value, str) or value.upper() not in _LOG_LEVELS:
                raise ConfigError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
            normalized[key] = value.upper()
        elif key == "log_file":
            normalized[key] = None if value is None else Path(str(value))
    return normalized


def load_config(
    path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> GreeterConfig:
    """Resolve the greeter configuration.

    Args:
        path: YAML file to read. When None, DEFAULT_CONFIG_PATH is read if
            it exists.
        environ: Environment mapping (defaults to os.environ).
        overrides: Values that win over every other source. Entries set to
            None are ignored.

    Raises:
        ConfigError: If the file is unreadable or any value is invalid.
    """
    config = GreeterConfig()

    if path is None and DEFAULT_CONFIG_PATH.exists():
        path = DEFAULT_CONFIG_PATH
    if path is not None:
        config = replace(config, **_normalize(_load_yaml(path)))

    env = os.environ if environ is None else environ
    if env.get(SOCKET_ENV_VAR):
        config = replace(config, socket_path=env[SOCKET_ENV_VAR])

    if overrides:
        explicit = {key: value for key, value in overrides.items() if value is not None}
        config = replace(config, **_normalize(explicit))

    return config
