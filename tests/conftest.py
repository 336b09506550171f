from __future__ import annotations

import logging
import sys
from pathlib import Path
from textwrap import dedent
from typing import Iterator

import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))


def write_pyproject(directory: Path, contents: str) -> Path:
    """Persist a ``pyproject.toml`` under ``directory`` and return its path."""

    payload = dedent(contents).lstrip()
    target = directory / "pyproject.toml"
    target.write_text(payload, encoding="utf8")
    return target


def write_scenario(directory: Path, contents: str, name: str = "scenario.yaml") -> Path:
    """Persist a YAML scenario under ``directory`` and return its path."""

    target = directory / name
    target.write_text(dedent(contents).lstrip(), encoding="utf8")
    return target


@pytest.fixture(autouse=True)
def _reset_gcross_logging() -> Iterator[None]:
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if handler.get_name() == "gcross":
            root.removeHandler(handler)
            handler.close()
