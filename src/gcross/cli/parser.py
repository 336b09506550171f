"""Argument parsing for the gcross command line."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Mapping, Optional

from gcross._version import __version__
from gcross.cli.workflows import _handle_scan, _handle_settings


def build_parser(config: Optional[Mapping[str, Any]] = None) -> argparse.ArgumentParser:
    config = dict(config or {})
    logging_cfg = dict(config.get("logging", {}))
    scan_cfg_raw = config.get("scan", {})
    scan_cfg = dict(scan_cfg_raw) if isinstance(scan_cfg_raw, Mapping) else {}

    parser = argparse.ArgumentParser(
        prog="gcross",
        description="gcross: switching-function event detection",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        dest="config_path",
        type=Path,
        default=None,
        help="Path to the TOML configuration file to load.",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default=logging_cfg.get("level", "info"),
        help="Logging level (e.g. debug, info, warning).",
    )
    parser.add_argument(
        "--log-output",
        dest="log_output",
        default=logging_cfg.get("output", "stderr"),
        help="Logging destination (stdout, stderr or a file path).",
    )
    parser.add_argument(
        "--log-format",
        dest="log_format",
        choices=("json", "text"),
        default=logging_cfg.get("format", "json"),
        help="Logging formatter (json or text).",
    )
    parser.add_argument(
        "--detection-config",
        dest="detection_config",
        type=Path,
        default=config.get("detection_config"),
        help="YAML file overriding the packaged detection settings.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser(
        "scan",
        help="Propagate a scenario file and list the detected events.",
    )
    scan.add_argument("scenario", type=Path, help="Path to the YAML scenario.")
    scan.add_argument(
        "--format",
        dest="output_format",
        choices=("text", "json"),
        default=scan_cfg.get("format", "text"),
        help="Output format for the event list.",
    )
    scan.add_argument(
        "--target",
        dest="target",
        type=float,
        default=None,
        help="Override the propagation target time of the scenario.",
    )
    scan.set_defaults(handler=_handle_scan)

    settings = subparsers.add_parser(
        "settings",
        help="Show the detection settings resolved for detector families.",
    )
    settings.add_argument(
        "--family",
        dest="families",
        action="append",
        default=None,
        help="Detector family to resolve (repeatable, default: all known).",
    )
    settings.set_defaults(handler=_handle_settings)

    return parser
