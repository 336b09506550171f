"""Protocols shared between the detection and propagation layers."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

__all__ = [
    "SupportsState",
    "SupportsStepInterpolator",
]


@runtime_checkable
class SupportsState(Protocol):
    """Trajectory sample exposing the time it was taken at."""

    @property
    def time(self) -> float: ...


@runtime_checkable
class SupportsStepInterpolator(Protocol):
    """State sampler covering one propagation step."""

    @property
    def previous_state(self) -> Any: ...

    @property
    def current_state(self) -> Any: ...

    @property
    def is_forward(self) -> bool: ...

    def interpolated_state(self, time: float) -> Any: ...

    def restrict_step(
        self, previous_state: Any, current_state: Any
    ) -> "SupportsStepInterpolator": ...
