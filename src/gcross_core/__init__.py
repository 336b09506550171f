"""Switching-function event detection engine."""

from __future__ import annotations

from importlib import import_module

from gcross_core.errors import (
    DetectionConfigurationError,
    EventDetectionError,
    EventStateError,
    HandlerError,
    NoBracketingError,
    RootFindingError,
    TooManyEvaluationsError,
)

_detection = import_module("gcross_core.detection")
_propagation = import_module("gcross_core.propagation")
_runtime = import_module("gcross_core.runtime")

_BASE_EXPORTS = [
    "DetectionConfigurationError",
    "EventDetectionError",
    "EventStateError",
    "HandlerError",
    "NoBracketingError",
    "RootFindingError",
    "TooManyEvaluationsError",
]

__all__ = list(
    dict.fromkeys(
        [
            *_BASE_EXPORTS,
            *_detection.__all__,
            *_propagation.__all__,
            *_runtime.__all__,
        ]
    )
)

for _module in (_detection, _propagation, _runtime):
    for _name in _module.__all__:
        globals()[_name] = getattr(_module, _name)

del _module, _name
