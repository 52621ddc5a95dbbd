"""Validation and normalization of construction options."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from zanarkand.core.errors import ConfigError, ConfigTypeError
from zanarkand.core.model import DEFAULT_NETWORK_DEVICE, DEFAULT_PORT, DEFAULT_WINE_PREFIX, WrapperConfig
from zanarkand.core.reporting import noop_logger

_NON_IP_RE = re.compile(r"[^0-9.]")

_STRING_OPTIONS = (
    "ip",
    "data_path",
    "region",
    "wine_prefix",
    "exe_path",
    "definitions_dir",
    "remote_data_path",
    "network_device",
)
_BOOL_OPTIONS = ("no_data", "no_exe", "has_wine")
_NUMBER_OPTIONS = ("reconnect_delay", "command_timeout", "terminate_timeout")
_KNOWN_OPTIONS = frozenset((*_STRING_OPTIONS, *_BOOL_OPTIONS, *_NUMBER_OPTIONS, "port", "logger"))


def data_home() -> Path:
    return Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share")) / "zanarkand"


def config_home() -> Path:
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")) / "zanarkand"


def _check_types(options: Mapping[str, Any]) -> None:
    for name in _STRING_OPTIONS:
        value = options.get(name)
        if value is not None and not isinstance(value, str):
            raise ConfigTypeError(name, "a string")

    for name in _BOOL_OPTIONS:
        value = options.get(name)
        if value is not None and not isinstance(value, bool):
            raise ConfigTypeError(name, "a boolean")

    port = options.get("port")
    if port is not None and (isinstance(port, bool) or not isinstance(port, int)):
        raise ConfigTypeError("port", "an integer")

    for name in _NUMBER_OPTIONS:
        value = options.get(name)
        if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
            raise ConfigTypeError(name, "a number")

    logger = options.get("logger")
    if logger is not None and not callable(logger):
        raise ConfigTypeError("logger", "a callable")


def _ensure_directory(path: Path) -> Path:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigError(f"Could not create remote data directory {path}: {exc}") from exc
    return path


def validate_options(options: Mapping[str, Any] | None = None) -> WrapperConfig:
    """Validate raw options and build the immutable configuration.

    Creates the remote-data directory when it does not exist yet.
    """
    options = dict(options or {})

    unknown = sorted(set(options) - _KNOWN_OPTIONS)
    if unknown:
        raise ConfigError(f"Unknown option(s): {', '.join(unknown)}")

    _check_types(options)

    port = options.get("port") or DEFAULT_PORT
    if not 0 < port < 65536:
        raise ConfigError(f"port must be between 1 and 65535, got {port}")

    reconnect_delay = options.get("reconnect_delay")
    if reconnect_delay is None:
        reconnect_delay = 1.0
    if reconnect_delay <= 0:
        raise ConfigError("reconnect_delay must be greater than zero")

    command_timeout = options.get("command_timeout")
    if command_timeout is not None and command_timeout <= 0:
        raise ConfigError("command_timeout must be greater than zero")

    terminate_timeout = options.get("terminate_timeout")
    if terminate_timeout is None:
        terminate_timeout = 5.0
    if terminate_timeout <= 0:
        raise ConfigError("terminate_timeout must be greater than zero")

    ip = options.get("ip")
    if ip:
        ip = _NON_IP_RE.sub("", ip)

    remote_data = options.get("remote_data_path")
    remote_data_path = Path(remote_data).expanduser() if remote_data else data_home() / "remote-data"
    _ensure_directory(remote_data_path)

    return WrapperConfig(
        remote_data_path=remote_data_path,
        ip=ip or None,
        data_path=options.get("data_path") or None,
        region=options.get("region") or None,
        port=port,
        no_data=bool(options.get("no_data")),
        no_exe=bool(options.get("no_exe")),
        has_wine=bool(options.get("has_wine")),
        wine_prefix=options.get("wine_prefix") or DEFAULT_WINE_PREFIX,
        exe_path=options.get("exe_path") or None,
        definitions_dir=options.get("definitions_dir") or None,
        network_device=options.get("network_device") or DEFAULT_NETWORK_DEVICE,
        reconnect_delay=float(reconnect_delay),
        command_timeout=float(command_timeout) if command_timeout is not None else None,
        terminate_timeout=float(terminate_timeout),
        logger=options.get("logger") or noop_logger,
    )
