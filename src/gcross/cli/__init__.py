"""Command line interface for gcross."""

from gcross.cli.app import main, run_cli
from gcross.cli.errors import CliError

__all__ = ["CliError", "main", "run_cli"]
