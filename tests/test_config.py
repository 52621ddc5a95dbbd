from __future__ import annotations

from pathlib import Path

import pytest

from zanarkand.core.config import validate_options
from zanarkand.core.errors import ConfigError, ConfigTypeError


@pytest.mark.parametrize(
    ("field", "value"),
    [
        ("ip", 127001),
        ("region", ["Global"]),
        ("data_path", 3),
        ("no_data", "yes"),
        ("no_exe", 1),
        ("has_wine", "true"),
        ("port", "13346"),
        ("port", True),
        ("logger", "print"),
        ("reconnect_delay", "1s"),
    ],
)
def test_wrong_type_names_the_field(field: str, value: object, tmp_path: Path) -> None:
    with pytest.raises(ConfigTypeError) as exc:
        validate_options({field: value, "remote_data_path": str(tmp_path / "remote")})

    assert exc.value.field == field
    assert field in str(exc.value)
    assert isinstance(exc.value, TypeError)


def test_defaults(tmp_path: Path) -> None:
    config = validate_options({"remote_data_path": str(tmp_path / "remote")})

    assert config.port == 13346
    assert config.wine_prefix == "$HOME/.Wine"
    assert config.network_device == "127.0.0.1"
    assert config.reconnect_delay == 1.0
    assert config.no_exe is False
    assert config.endpoint == "ws://127.0.0.1:13346"
    assert config.logger("info", "ignored") is None


def test_ip_is_stripped_to_digits_and_dots(tmp_path: Path) -> None:
    config = validate_options({"ip": " 192.168.1.20/24 ", "remote_data_path": str(tmp_path)})
    assert config.ip == "192.168.1.2024"

    config = validate_options({"ip": "10.0.0.5\n", "remote_data_path": str(tmp_path)})
    assert config.ip == "10.0.0.5"


def test_remote_data_directory_is_created(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "remote-data"
    validate_options({"remote_data_path": str(target)})
    assert target.is_dir()


def test_default_remote_data_directory_under_xdg_data_home(tmp_path: Path) -> None:
    config = validate_options({"no_exe": True})
    assert config.remote_data_path == tmp_path / "data" / "zanarkand" / "remote-data"
    assert config.remote_data_path.is_dir()


def test_unknown_option_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="noExe"):
        validate_options({"noExe": True, "remote_data_path": str(tmp_path)})


@pytest.mark.parametrize(
    "options",
    [
        {"port": 70000},
        {"port": -1},
        {"reconnect_delay": 0},
        {"command_timeout": -2.5},
        {"terminate_timeout": 0},
    ],
)
def test_out_of_range_values_rejected(options: dict, tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        validate_options({**options, "remote_data_path": str(tmp_path)})


def test_explicit_values_kept(tmp_path: Path) -> None:
    def sink(level: str, message: str) -> None:
        pass

    config = validate_options(
        {
            "port": 5000,
            "no_exe": True,
            "region": "KR",
            "has_wine": True,
            "wine_prefix": "/opt/wine",
            "network_device": "10.0.0.2",
            "reconnect_delay": 0.25,
            "logger": sink,
            "remote_data_path": str(tmp_path),
        }
    )

    assert config.port == 5000
    assert config.no_exe is True
    assert config.region == "KR"
    assert config.wine_prefix == "/opt/wine"
    assert config.endpoint == "ws://10.0.0.2:5000"
    assert config.reconnect_delay == 0.25
    assert config.logger is sink
