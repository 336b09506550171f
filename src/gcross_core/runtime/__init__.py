"""Runtime protocols for :mod:`gcross_core`."""

from gcross_core.runtime.shared import SupportsState, SupportsStepInterpolator

__all__ = ["SupportsState", "SupportsStepInterpolator"]
