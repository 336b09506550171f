"""Resolve detection settings from layered YAML configuration."""

from __future__ import annotations

from collections.abc import Iterable, Mapping as MappingABC
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from gcross_core.detection.settings import DetectionSettings

__all__ = ["get_params", "load_detection_config", "resolve_detection_settings"]


_DETECTION_RESOURCE_PACKAGE = "gcross_core.config"
_DETECTION_RESOURCE_NAME = "detection.yaml"


def get_params(
    config: Mapping[str, Any],
    *,
    family: str | None = None,
) -> Mapping[str, Any]:
    """Merge the defaults with the overrides of a detector ``family``."""

    result: dict[str, Any] = {}

    def merge(payload: Mapping[str, Any] | None) -> None:
        if not isinstance(payload, MappingABC):
            return
        _deep_merge(result, payload)

    merge(config.get("defaults"))

    families_table = config.get("families")
    if isinstance(families_table, MappingABC):
        merge(_lookup_section(families_table, "__default__"))
        merge(_lookup_section(families_table, family))

    return MappingProxyType(dict(result))


def resolve_detection_settings(
    config: Mapping[str, Any] | None = None,
    *,
    family: str | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> DetectionSettings:
    """Build :class:`DetectionSettings` for ``family`` with optional overrides."""

    if config is None:
        config = load_detection_config()
    params = dict(get_params(config, family=family))
    if isinstance(overrides, MappingABC):
        _deep_merge(params, overrides)
    return DetectionSettings.from_config(params)


def load_detection_config(
    path: str | Path | None = None,
    *,
    search_paths: Iterable[str | Path] | None = None,
) -> Mapping[str, Any]:
    """Load the detection settings table.

    Parameters
    ----------
    path:
        Absolute or relative path to a YAML file. When supplied the loader
        skips the search order and reads this file directly.
    search_paths:
        Optional iterable of directories or files to inspect. Entries pointing
        to directories are resolved against ``detection.yaml``. The first
        existing file wins, the packaged defaults are used otherwise.
    """

    if path is not None:
        candidate = Path(path).expanduser()
        if not candidate.is_file():
            raise FileNotFoundError(candidate)
        return _load_detection_payload(candidate)

    candidates: list[Path] = []
    if search_paths is not None:
        for entry in search_paths:
            entry_path = Path(entry).expanduser()
            if entry_path.is_dir():
                candidates.append(entry_path / _DETECTION_RESOURCE_NAME)
            else:
                candidates.append(entry_path)

    for candidate in candidates:
        if candidate.is_file():
            return _load_detection_payload(candidate)

    resource = resources.files(_DETECTION_RESOURCE_PACKAGE).joinpath(
        _DETECTION_RESOURCE_NAME
    )
    payload = resource.read_text(encoding="utf-8")
    return _load_detection_from_text(payload, source=str(resource))


def _deep_merge(target: dict[str, Any], source: Mapping[str, Any]) -> None:
    for key, value in source.items():
        key_str = str(key)
        existing = target.get(key_str)
        if isinstance(existing, MappingABC) and isinstance(value, MappingABC):
            merged = dict(existing)
            _deep_merge(merged, value)
            target[key_str] = merged
        elif isinstance(value, MappingABC):
            target[key_str] = _deep_copy_mapping(value)
        else:
            target[key_str] = value


def _deep_copy_mapping(source: Mapping[str, Any]) -> dict[str, Any]:
    copied: dict[str, Any] = {}
    for key, value in source.items():
        key_str = str(key)
        if isinstance(value, MappingABC):
            copied[key_str] = _deep_copy_mapping(value)
        else:
            copied[key_str] = value
    return copied


def _load_detection_payload(path: Path) -> Mapping[str, Any]:
    with path.open("r", encoding="utf-8") as buffer:
        payload = buffer.read()
    return _load_detection_from_text(payload, source=str(path))


def _load_detection_from_text(payload: str, *, source: str) -> Mapping[str, Any]:
    try:
        data = yaml.safe_load(payload)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in detection configuration: {source}") from exc

    if data is None:
        return MappingProxyType({})
    if not isinstance(data, MappingABC):
        raise TypeError(
            f"Detection configuration in {source!s} must decode to a mapping"
        )
    return MappingProxyType(_deep_copy_mapping(data))


def _lookup_section(
    table: Mapping[str, Any] | None, key: str | None
) -> Mapping[str, Any] | None:
    if not isinstance(table, MappingABC) or key is None:
        return None
    candidate = table.get(key)
    if isinstance(candidate, MappingABC):
        return candidate
    normalised = _normalise_identifier(key)
    if normalised is None:
        return None
    for raw_key, value in table.items():
        if not isinstance(value, MappingABC):
            continue
        if _normalise_identifier(raw_key) == normalised:
            return value
    return None


def _normalise_identifier(value: str | None) -> str | None:
    if value is None:
        return None
    filtered = [char for char in str(value).lower() if char.isalnum() or char == "_"]
    cleaned = "".join(filtered).strip("_")
    return cleaned or None
