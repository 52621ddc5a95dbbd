from __future__ import annotations

from pathlib import Path

import pytest

from zanarkand.core.definitions import load_definitions


@pytest.fixture(autouse=True)
def isolated_dirs(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    load_definitions.cache_clear()
    yield
    load_definitions.cache_clear()


@pytest.fixture
def wrapper_exe(tmp_path: Path) -> Path:
    exe = tmp_path / "ZanarkandWrapperJSON.exe"
    exe.write_bytes(b"MZ")
    return exe
