"""Step interpolation backed by a state sampler."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

__all__ = ["SampledState", "BasicStepInterpolator"]


@dataclass(frozen=True, slots=True)
class SampledState:
    """Minimal trajectory state: a time and a vector of values."""

    time: float
    values: tuple[float, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "time", float(self.time))
        object.__setattr__(self, "values", tuple(float(value) for value in self.values))

    def __getitem__(self, index: int) -> float:
        return self.values[index]


class BasicStepInterpolator:
    """Interpolator over ``[previous_state, current_state]``.

    States strictly inside the step come from ``sampler(time)``, which must
    return a state whose ``time`` equals the requested time and must be
    consistent across repeated calls.
    """

    __slots__ = ("_forward", "_previous", "_current", "_sampler")

    def __init__(
        self,
        forward: bool,
        previous_state: Any,
        current_state: Any,
        sampler: Callable[[float], Any],
    ) -> None:
        self._forward = bool(forward)
        self._previous = previous_state
        self._current = current_state
        self._sampler = sampler

    @property
    def is_forward(self) -> bool:
        return self._forward

    @property
    def previous_state(self) -> Any:
        return self._previous

    @property
    def current_state(self) -> Any:
        return self._current

    def interpolated_state(self, time: float) -> Any:
        if time == self._previous.time:
            return self._previous
        if time == self._current.time:
            return self._current
        return self._sampler(time)

    def restrict_step(self, previous_state: Any, current_state: Any) -> "BasicStepInterpolator":
        return BasicStepInterpolator(self._forward, previous_state, current_state, self._sampler)
