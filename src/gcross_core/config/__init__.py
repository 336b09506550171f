"""Detection configuration helpers."""

from gcross_core.config.loader import (
    get_params,
    load_detection_config,
    resolve_detection_settings,
)

__all__ = ["get_params", "load_detection_config", "resolve_detection_settings"]
