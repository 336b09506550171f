"""Step handlers notified as propagation advances."""

from __future__ import annotations

from typing import Any, Iterable, Protocol, runtime_checkable

from gcross_core.errors import DetectionConfigurationError
from gcross_core.runtime.shared import SupportsStepInterpolator

__all__ = [
    "StepHandler",
    "FixedStepHandler",
    "StepNormalizer",
    "StepHandlerMultiplexer",
]


@runtime_checkable
class StepHandler(Protocol):
    def init(self, initial_state: Any, target_time: float) -> None: ...

    def handle_step(self, interpolator: SupportsStepInterpolator) -> None: ...

    def finish(self, final_state: Any) -> None: ...


class FixedStepHandler:
    """Receiver of states sampled at a fixed step, see :class:`StepNormalizer`."""

    def init(self, initial_state: Any, target_time: float, step: float) -> None:
        return None

    def handle_step(self, state: Any) -> None:
        raise NotImplementedError

    def finish(self, final_state: Any) -> None:
        return None


class StepNormalizer:
    """Turn variable propagation steps into fixed-step notifications.

    States are sampled every ``step`` from the first state seen. Each
    sampled state is delivered once the following one is known to be
    reachable, the last pending one when propagation finishes. Since steps
    are cut at events, fixed-step notifications may lag behind event
    notifications by up to two steps.
    """

    def __init__(self, step: float, handler: FixedStepHandler) -> None:
        step = abs(float(step))
        if not step > 0.0:
            raise DetectionConfigurationError(
                "normalizer step must be strictly positive", context={"step": step}
            )
        self._step = step
        self._handler = handler
        self._last_state: Any = None

    @property
    def step(self) -> float:
        return self._step

    def init(self, initial_state: Any, target_time: float) -> None:
        self._last_state = None
        self._handler.init(initial_state, target_time, self._step)

    def handle_step(self, interpolator: SupportsStepInterpolator) -> None:
        if self._last_state is None:
            self._last_state = interpolator.previous_state
        forward = interpolator.is_forward
        step = self._step if forward else -self._step
        end_time = interpolator.current_state.time
        next_time = self._last_state.time + step
        while (next_time <= end_time) if forward else (next_time >= end_time):
            self._handler.handle_step(self._last_state)
            self._last_state = interpolator.interpolated_state(next_time)
            next_time = self._last_state.time + step

    def finish(self, final_state: Any) -> None:
        if self._last_state is not None:
            self._handler.handle_step(self._last_state)
        self._handler.finish(final_state)


class StepHandlerMultiplexer:
    """Dispatch step notifications to several handlers."""

    def __init__(self, handlers: Iterable[StepHandler] = ()) -> None:
        self._handlers: list[StepHandler] = list(handlers)

    @property
    def handlers(self) -> tuple[StepHandler, ...]:
        return tuple(self._handlers)

    def add(self, handler: StepHandler) -> None:
        self._handlers.append(handler)

    def remove(self, handler: StepHandler) -> None:
        self._handlers = [entry for entry in self._handlers if entry is not handler]

    def clear(self) -> None:
        self._handlers.clear()

    def init(self, initial_state: Any, target_time: float) -> None:
        for handler in self._handlers:
            handler.init(initial_state, target_time)

    def handle_step(self, interpolator: SupportsStepInterpolator) -> None:
        for handler in self._handlers:
            handler.handle_step(interpolator)

    def finish(self, final_state: Any) -> None:
        for handler in self._handlers:
            handler.finish(final_state)
