"""Reference propagation driver for the event detection engine."""

from gcross_core.propagation.analytical import AnalyticalPropagator, TrajectoryModel
from gcross_core.propagation.interpolator import BasicStepInterpolator, SampledState
from gcross_core.propagation.step_handlers import (
    FixedStepHandler,
    StepHandler,
    StepHandlerMultiplexer,
    StepNormalizer,
)

__all__ = [
    "AnalyticalPropagator",
    "BasicStepInterpolator",
    "FixedStepHandler",
    "SampledState",
    "StepHandler",
    "StepHandlerMultiplexer",
    "StepNormalizer",
    "TrajectoryModel",
]
