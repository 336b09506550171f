"""Reference propagator driving a closed-form model through the scheduler."""

from __future__ import annotations

import functools
import logging
import math
from typing import Any, Callable

from gcross_core.detection.detectors import EventDetector
from gcross_core.detection.scheduler import EventScheduler, StepDirective
from gcross_core.errors import DetectionConfigurationError
from gcross_core.propagation.interpolator import BasicStepInterpolator
from gcross_core.propagation.step_handlers import (
    FixedStepHandler,
    StepHandler,
    StepHandlerMultiplexer,
    StepNormalizer,
)

__all__ = ["TrajectoryModel", "AnalyticalPropagator"]


logger = logging.getLogger(__name__)

TrajectoryModel = Callable[[Any, float], Any]
"""``model(reference_state, time)`` returns the state at ``time``."""


class AnalyticalPropagator:
    """Propagate a trajectory given in closed form from a reference state.

    ``model`` maps the reference state and a time to the state at that
    time. Propagation advances by ``step_size`` (a single step to the
    target when ``None``) and hands every step to the event scheduler. A
    reset returned by an event handler replaces the reference state, so
    the replacement shapes the rest of the trajectory.
    """

    def __init__(
        self,
        initial_state: Any,
        model: TrajectoryModel,
        *,
        step_size: float | None = None,
        scheduler: EventScheduler | None = None,
    ) -> None:
        if step_size is not None:
            step_size = abs(float(step_size))
            if not (step_size > 0.0 and math.isfinite(step_size)):
                raise DetectionConfigurationError(
                    "propagation step must be strictly positive and finite",
                    context={"step_size": step_size},
                )
        self._reference = initial_state
        self._model = model
        self._step_size = step_size
        self._scheduler = scheduler or EventScheduler()
        self._step_handlers = StepHandlerMultiplexer()

    @property
    def initial_state(self) -> Any:
        return self._reference

    def reset_initial_state(self, state: Any) -> None:
        self._reference = state

    @property
    def scheduler(self) -> EventScheduler:
        return self._scheduler

    @property
    def event_detectors(self) -> tuple[EventDetector, ...]:
        return self._scheduler.detectors

    def add_event_detector(self, detector: EventDetector) -> None:
        self._scheduler.add_detector(detector)

    def remove_event_detector(self, detector: EventDetector) -> None:
        self._scheduler.remove_detector(detector)

    def clear_event_detectors(self) -> None:
        self._scheduler.clear_detectors()

    @property
    def step_handlers(self) -> StepHandlerMultiplexer:
        return self._step_handlers

    def add_step_handler(self, handler: StepHandler) -> None:
        self._step_handlers.add(handler)

    def set_fixed_step_handler(self, step: float, handler: FixedStepHandler) -> StepNormalizer:
        normalizer = StepNormalizer(step, handler)
        self._step_handlers.clear()
        self._step_handlers.add(normalizer)
        return normalizer

    def propagate(self, start: float, target: float | None = None) -> Any:
        """Propagate to ``target`` (or to ``start`` from the reference state).

        With two arguments the trajectory is first moved to ``start``
        without event detection, then propagated to ``target``.
        """

        if target is None:
            target = float(start)
            start = self._reference.time
        start = float(start)
        target = float(target)

        state = self._sample(self._reference, start)
        forward = target >= start
        self._scheduler.init(state, target)
        self._step_handlers.init(state, target)
        logger.debug(
            "Propagation started",
            extra={"event": "propagation.start", "start": start, "target": target},
        )

        is_last = state.time == target
        while not is_last:
            next_time = self._next_time(state.time, target, forward)
            reference = self._reference
            current = self._sample(reference, next_time)
            interpolator = BasicStepInterpolator(
                forward, state, current, functools.partial(self._sample, reference)
            )
            outcome = self._scheduler.accept_step(interpolator, self._step_handlers)
            state = outcome.state
            if outcome.directive is StepDirective.STOP:
                is_last = True
            elif outcome.directive is StepDirective.RESET:
                self._reference = outcome.state
                is_last = state.time == target
            else:
                is_last = state.time == target

        self._scheduler.finish(state)
        self._step_handlers.finish(state)
        logger.debug(
            "Propagation finished",
            extra={"event": "propagation.finish", "time": state.time},
        )
        return state

    def _next_time(self, time: float, target: float, forward: bool) -> float:
        if self._step_size is None:
            return target
        candidate = time + self._step_size if forward else time - self._step_size
        remaining = target - candidate if forward else candidate - target
        # avoid a sliver step before the target
        if remaining <= 1.0e-3 * self._step_size:
            return target
        return candidate

    def _sample(self, reference: Any, time: float) -> Any:
        if time == reference.time:
            return reference
        return self._model(reference, time)
