"""Project-level configuration stored in ``pyproject.toml``."""

from __future__ import annotations

import os
from collections.abc import Mapping as ABCMapping
from pathlib import Path
from typing import Any

try:  # Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - Python < 3.11 fallback
    import tomli as tomllib  # type: ignore

__all__ = [
    "CONFIG_ENV_VAR",
    "PROJECT_CONFIG_FILENAME",
    "load_project_config",
    "resolve_project_config",
]


CONFIG_ENV_VAR = "GCROSS_CONFIG"
PROJECT_CONFIG_FILENAME = "pyproject.toml"
_TOOL_SECTION = "gcross"


def _as_dict(payload: ABCMapping[str, Any]) -> dict[str, Any]:
    """Recursively coerce TOML tables into plain dictionaries."""

    result: dict[str, Any] = {}
    for key, value in payload.items():
        if isinstance(value, ABCMapping):
            result[str(key)] = _as_dict(value)
        elif isinstance(value, list):
            result[str(key)] = [
                _as_dict(item) if isinstance(item, ABCMapping) else item for item in value
            ]
        else:
            result[str(key)] = value
    return result


def _pyproject_path(candidate: Path) -> Path | None:
    candidate = candidate.expanduser()
    if candidate.name == PROJECT_CONFIG_FILENAME or candidate.suffix == ".toml":
        return candidate
    if candidate.suffix:
        return None
    return candidate / PROJECT_CONFIG_FILENAME


def load_project_config(path: Path) -> tuple[dict[str, Any], Path] | None:
    """Load the ``[tool.gcross]`` table of a TOML file.

    ``path`` may be the file itself or the directory holding
    ``pyproject.toml``. Returns ``None`` when the file or the table is
    missing.
    """

    toml_path = _pyproject_path(Path(path))
    if toml_path is None:
        return None
    toml_path = toml_path.resolve(strict=False)
    if not toml_path.is_file():
        return None

    with toml_path.open("rb") as handle:
        payload = tomllib.load(handle)

    tool_section = payload.get("tool")
    if not isinstance(tool_section, ABCMapping):
        return None
    section = tool_section.get(_TOOL_SECTION)
    if not isinstance(section, ABCMapping):
        return None
    return _as_dict(section), toml_path


def resolve_project_config(path: Path | None = None) -> dict[str, Any]:
    """Find the active configuration.

    The explicit ``path`` wins, then the ``GCROSS_CONFIG`` environment
    variable, then ``pyproject.toml`` in the working directory. The
    returned mapping records its origin under ``_config_path``.
    """

    bases: list[Path] = []
    if path is not None:
        bases.append(Path(path))
    env_value = os.environ.get(CONFIG_ENV_VAR)
    if env_value:
        bases.append(Path(env_value))
    bases.append(Path.cwd())

    for base in bases:
        loaded = load_project_config(base)
        if loaded is None:
            continue
        config, source = loaded
        config["_config_path"] = str(source)
        return config
    return {"_config_path": None}
