"""Command implementations for the gcross command line."""

from __future__ import annotations

import argparse
import json
import logging
from collections.abc import Mapping as ABCMapping
from pathlib import Path
from typing import Any, Mapping

from gcross.cli.errors import CliError, cli_error_from_engine
from gcross.scenario import build_scenario, load_scenario, run_scenario
from gcross_core.config.loader import load_detection_config, resolve_detection_settings
from gcross_core.detection.settings import ConstantInterval
from gcross_core.errors import EventDetectionError

logger = logging.getLogger(__name__)


def _load_detection_table(namespace: argparse.Namespace) -> Mapping[str, Any]:
    path = getattr(namespace, "detection_config", None)
    try:
        return load_detection_config(Path(path) if path is not None else None)
    except FileNotFoundError as exc:
        raise CliError(
            f"Detection configuration not found: {path}",
            category="not_found",
            context={"path": str(path)},
        ) from exc
    except (TypeError, ValueError) as exc:
        raise CliError(str(exc), category="usage", context={"path": str(path)}) from exc


def _handle_scan(namespace: argparse.Namespace, *, config: Mapping[str, Any]) -> str:
    scenario_path = Path(namespace.scenario)
    if not scenario_path.is_file():
        raise CliError(
            f"Scenario file not found: {scenario_path}",
            category="not_found",
            context={"scenario": str(scenario_path)},
        )
    try:
        payload = load_scenario(scenario_path)
    except OSError as exc:
        raise CliError(
            f"Unable to read scenario {scenario_path}: {exc}",
            category="io",
            context={"scenario": str(scenario_path)},
        ) from exc
    except (TypeError, ValueError) as exc:
        raise CliError(str(exc), category="usage", context={"scenario": str(scenario_path)}) from exc

    detection_table = _load_detection_table(namespace)
    try:
        scenario = build_scenario(
            payload, detection_config=detection_table, target=namespace.target
        )
        events = run_scenario(scenario)
    except EventDetectionError as exc:
        raise cli_error_from_engine(exc) from exc
    except (TypeError, ValueError) as exc:
        raise CliError(
            f"Invalid scenario {scenario_path}: {exc}",
            category="usage",
            context={"scenario": str(scenario_path)},
        ) from exc

    logger.info(
        "Scan completed",
        extra={"event": "cli.scan", "scenario": str(scenario_path), "events": len(events)},
    )
    if namespace.output_format == "json":
        return json.dumps([event.as_dict() for event in events], indent=2)
    if not events:
        return "No events detected."
    lines = [
        f"{event.time:.9f}  {event.name}  "
        f"{'increasing' if event.increasing else 'decreasing'}"
        for event in events
    ]
    return "\n".join(lines)


def _handle_settings(namespace: argparse.Namespace, *, config: Mapping[str, Any]) -> str:
    detection_table = _load_detection_table(namespace)
    families = namespace.families
    if not families:
        known = detection_table.get("families", {})
        families = [
            str(name)
            for name in (known if isinstance(known, ABCMapping) else {})
            if not str(name).startswith("__")
        ]
    payload: dict[str, Any] = {}
    for family in families:
        try:
            settings = resolve_detection_settings(detection_table, family=family)
        except EventDetectionError as exc:
            raise cli_error_from_engine(exc) from exc
        interval = settings.max_check_interval
        payload[family] = {
            "max_check": interval.value if isinstance(interval, ConstantInterval) else "adaptive",
            "threshold": settings.threshold,
            "max_iterations": settings.max_iteration_count,
        }
    return json.dumps(payload, indent=2, sort_keys=True)
