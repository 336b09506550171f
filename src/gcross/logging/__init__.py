"""Logging utilities for gcross."""

from gcross.logging.config import JsonFormatter, setup_logging

__all__ = ["JsonFormatter", "setup_logging"]
