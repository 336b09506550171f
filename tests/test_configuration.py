from __future__ import annotations

from pathlib import Path

import pytest

from gcross.configuration import (
    CONFIG_ENV_VAR,
    load_project_config,
    resolve_project_config,
)

from tests.conftest import write_pyproject


SAMPLE = """
[project]
name = "demo"

[tool.gcross.logging]
level = "debug"
format = "text"

[tool.gcross.detection]
max_check = 30.0
"""


def test_load_project_config_from_directory_or_file(tmp_path: Path) -> None:
    pyproject = write_pyproject(tmp_path, SAMPLE)

    from_directory = load_project_config(tmp_path)
    from_file = load_project_config(pyproject)

    assert from_directory is not None
    config, source = from_directory
    assert config == {
        "logging": {"level": "debug", "format": "text"},
        "detection": {"max_check": 30.0},
    }
    assert source == pyproject.resolve()
    assert from_file == from_directory


def test_missing_file_or_section_gives_none(tmp_path: Path) -> None:
    assert load_project_config(tmp_path) is None
    assert load_project_config(tmp_path / "settings.yaml") is None

    write_pyproject(tmp_path, '[project]\nname = "demo"\n')
    assert load_project_config(tmp_path) is None


def test_explicit_path_wins_over_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    explicit = tmp_path / "explicit"
    explicit.mkdir()
    from_env = tmp_path / "env"
    from_env.mkdir()
    write_pyproject(explicit, '[tool.gcross]\nsource = "explicit"\n')
    write_pyproject(from_env, '[tool.gcross]\nsource = "env"\n')
    monkeypatch.setenv(CONFIG_ENV_VAR, str(from_env))
    monkeypatch.chdir(tmp_path)

    assert resolve_project_config(explicit)["source"] == "explicit"
    resolved = resolve_project_config()
    assert resolved["source"] == "env"
    assert resolved["_config_path"] == str((from_env / "pyproject.toml").resolve())


def test_working_directory_is_the_last_resort(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    write_pyproject(tmp_path, '[tool.gcross]\nsource = "cwd"\n')
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.chdir(tmp_path)

    assert resolve_project_config()["source"] == "cwd"


def test_no_configuration_found(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.chdir(tmp_path)

    assert resolve_project_config() == {"_config_path": None}
