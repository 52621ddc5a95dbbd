from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from zanarkand import cli

runner = CliRunner()


def test_definitions_command() -> None:
    result = runner.invoke(cli.app, ["definitions"])
    assert result.exit_code == 0
    assert "initZone (core): type=initZone" in result.stdout
    assert "  zoneId: u16 @ 2" in result.stdout
    assert "  name: string[32] @ 8" in result.stdout


def test_definitions_command_reports_invalid_file(tmp_path: Path) -> None:
    extra = tmp_path / "extra"
    extra.mkdir()
    (extra / "bad.yaml").write_text("id: Bad-Id\nname: x\npackets: {}\n", encoding="utf-8")

    result = runner.invoke(cli.app, ["definitions", "--definitions", str(extra)])
    assert result.exit_code == 1
    assert "Error: Schema validation failed" in result.stderr
    assert "Traceback" not in result.stderr


def test_launch_args_command(tmp_path: Path) -> None:
    result = runner.invoke(
        cli.app,
        ["launch-args", "--exe", str(tmp_path / "wrapper.exe"), "--region", "Global", "--ip", "10.0.0.7", "--no-data"],
    )
    assert result.exit_code == 0
    assert result.stdout.strip() == (
        f"{tmp_path / 'wrapper.exe'} -LocalIP 10.0.0.7 -Region Global -Port 13346 -Dev true"
    )


def test_launch_args_with_wine(tmp_path: Path) -> None:
    result = runner.invoke(
        cli.app,
        ["launch-args", "--exe", str(tmp_path / "wrapper.exe"), "--wine", "--wine-prefix", str(tmp_path / "prefix")],
    )
    assert result.exit_code == 0
    lines = result.stdout.strip().splitlines()
    assert lines[0] == f"WINEPREFIX={tmp_path / 'prefix'}"
    assert lines[1].startswith(f"wine {tmp_path / 'wrapper.exe'} -Port 13346")


def test_launch_args_error_is_clean() -> None:
    result = runner.invoke(cli.app, ["launch-args", "--port", "70000"])
    assert result.exit_code == 1
    assert "Error: port must be between 1 and 65535" in result.stderr
    assert "Traceback" not in result.stdout


def test_run_reports_missing_executable() -> None:
    result = runner.invoke(cli.app, ["run"])
    assert result.exit_code == 1
    assert "Error: ZanarkandWrapperJSON not found" in result.stderr


def test_run_builds_client_from_options(monkeypatch) -> None:
    captured: dict = {}

    class FakeClient:
        def __init__(self, options, *, registry=None):
            captured["options"] = options
            captured["registry"] = registry

    async def fake_capture(client, registry, filters, decoded):
        captured["client"] = client
        captured["filters"] = filters
        captured["decoded"] = decoded

    monkeypatch.setattr(cli, "Client", FakeClient)
    monkeypatch.setattr(cli, "_capture", fake_capture)

    result = runner.invoke(
        cli.app,
        ["run", "--no-exe", "--port", "5000", "--filter", "ping", "--filter", "initZone", "--decoded"],
    )

    assert result.exit_code == 0
    assert captured["options"] == {"port": 5000, "no_exe": True}
    assert list(captured["filters"]) == ["ping", "initZone"]
    assert captured["decoded"] is True
    assert isinstance(captured["client"], FakeClient)
    assert captured["registry"] is not None
