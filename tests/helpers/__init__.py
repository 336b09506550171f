"""Convenience re-exports for test helpers."""

from __future__ import annotations

from tests.helpers.detection import (
    ActionHandler,
    CountingFunction,
    crossing_detector,
    make_settings,
    recorded,
)
from tests.helpers.propagation import (
    RecordingFixedStepHandler,
    RecordingStepHandler,
    linear_model,
    linear_propagator,
    time_model,
    time_propagator,
)

__all__ = [
    "ActionHandler",
    "CountingFunction",
    "RecordingFixedStepHandler",
    "RecordingStepHandler",
    "crossing_detector",
    "linear_model",
    "linear_propagator",
    "make_settings",
    "recorded",
    "time_model",
    "time_propagator",
]
