"""Multi-detector scheduling of events inside propagation steps."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Protocol

from gcross_core.detection.detectors import EventDetector
from gcross_core.detection.event_state import EventState
from gcross_core.detection.handlers import Action
from gcross_core.errors import DetectionConfigurationError
from gcross_core.runtime.shared import SupportsStepInterpolator

__all__ = [
    "StepDirective",
    "StepOutcome",
    "SupportsStepHandler",
    "EventScheduler",
]


logger = logging.getLogger(__name__)


class StepDirective(Enum):
    """How the propagator must proceed after a step."""

    CONTINUE = "continue"
    STOP = "stop"
    RESET = "reset"


@dataclass(frozen=True, slots=True)
class StepOutcome:
    """Directive plus the state the propagator continues, stops or restarts from."""

    directive: StepDirective
    state: Any
    action: Action | None = None

    @property
    def time(self) -> float:
        return self.state.time


class SupportsStepHandler(Protocol):
    def handle_step(self, interpolator: SupportsStepInterpolator) -> None: ...


class EventScheduler:
    """Deliver the events of every registered detector in time order.

    The scheduler owns one :class:`EventState` per registered detector for
    the duration of a run. Within a step, the earliest pending event in
    the propagation direction is handled first and events at the same time
    are handled in registration order. Before an event is handled every
    other detector is advanced to its time, so a root found earlier by
    another detector always wins. Step handlers only ever see the part of
    the step that precedes the event being handled.

    Registrations changed during a run take effect at the next step, or
    immediately when a handler returns ``RESET_EVENT_DETECTORS``.
    """

    def __init__(self, detectors: Iterable[EventDetector] = ()) -> None:
        self._detectors: list[EventDetector] = []
        self._states: list[EventState] = []
        self._order: dict[int, int] = {}
        self._states_initialized = False
        self._initial_state: Any = None
        self._target_time: float | None = None
        for detector in detectors:
            self.add_detector(detector)

    @property
    def detectors(self) -> tuple[EventDetector, ...]:
        return tuple(self._detectors)

    @property
    def event_states(self) -> tuple[EventState, ...]:
        return tuple(self._states)

    def add_detector(self, detector: EventDetector) -> None:
        if not isinstance(detector, EventDetector):
            raise DetectionConfigurationError(
                "only EventDetector instances can be registered",
                context={"detector": detector},
            )
        if any(registered is detector for registered in self._detectors):
            raise DetectionConfigurationError(
                "detector is already registered", context={"detector": detector}
            )
        self._detectors.append(detector)

    def remove_detector(self, detector: EventDetector) -> None:
        for index, registered in enumerate(self._detectors):
            if registered is detector:
                del self._detectors[index]
                return
        raise DetectionConfigurationError(
            "detector is not registered", context={"detector": detector}
        )

    def clear_detectors(self) -> None:
        self._detectors.clear()

    def init(self, initial_state: Any, target_time: float) -> None:
        """Start a run: fresh tracking state for every registered detector."""

        self._initial_state = initial_state
        self._target_time = target_time
        self._states = []
        for detector in self._detectors:
            state = EventState(detector)
            state.init(initial_state, target_time)
            self._states.append(state)
        self._reindex()
        self._states_initialized = False

    def finish(self, final_state: Any) -> None:
        for state in self._states:
            state.finish(final_state)

    def accept_step(
        self,
        interpolator: SupportsStepInterpolator,
        step_handler: SupportsStepHandler | None = None,
    ) -> StepOutcome:
        """Process the events of one propagation step.

        Returns ``CONTINUE`` with the step end state, ``STOP`` with the
        state where the run halts, or ``RESET`` with the state the
        propagator must restart from (the rest of the step is discarded).
        """

        forward = interpolator.is_forward
        previous = interpolator.previous_state
        current = interpolator.current_state
        restricted = interpolator

        added = self._synchronize(interpolator)
        if not self._states_initialized:
            for state in self._states:
                state.reinitialize_begin(interpolator)
            self._states_initialized = True
        else:
            for state in added:
                state.reinitialize_begin(interpolator)

        occurring: list[EventState] = []
        reset_events = True
        while reset_events:
            reset_events = False
            occurring = [state for state in self._states if state.evaluate_step(restricted)]

            while True:
                while occurring:
                    current_event = self._pop_first(occurring, forward)
                    event_state = restricted.interpolated_state(current_event.event_time)
                    restricted = restricted.restrict_step(previous, event_state)

                    earlier = None
                    for state in self._states:
                        if state is not current_event and state.try_advance(
                            event_state, interpolator
                        ):
                            earlier = state
                            break
                    if earlier is not None:
                        # another detector has a root before this one
                        if earlier in occurring:
                            occurring.remove(earlier)
                        occurring.append(earlier)
                        occurring.append(current_event)
                        continue

                    if step_handler is not None:
                        step_handler.handle_step(restricted)

                    occurrence = current_event.do_event(event_state)
                    action = occurrence.action

                    if action is Action.STOP:
                        stop_state = interpolator.interpolated_state(occurrence.stop_time)
                        if step_handler is not None and stop_state.time != event_state.time:
                            step_handler.handle_step(
                                restricted.restrict_step(event_state, stop_state)
                            )
                        logger.debug(
                            "Propagation stopped by event",
                            extra={"event": "detection.stop", "time": stop_state.time},
                        )
                        return StepOutcome(StepDirective.STOP, stop_state, action)

                    if action in (Action.RESET_STATE, Action.RESET_DERIVATIVES):
                        self._states_initialized = False
                        logger.debug(
                            "Propagation reset by event",
                            extra={
                                "event": "detection.reset",
                                "time": occurrence.new_state.time,
                                "action": action.value,
                            },
                        )
                        return StepOutcome(StepDirective.RESET, occurrence.new_state, action)

                    # handle the remainder of the step
                    previous = event_state
                    restricted = interpolator.restrict_step(event_state, current)

                    if action is Action.RESET_EVENT_DETECTORS:
                        self._synchronize(restricted)
                        for state in self._states:
                            state.reinitialize_begin(restricted)
                        reset_events = True
                        break

                    if current_event.evaluate_step(restricted):
                        occurring.append(current_event)

                if reset_events:
                    break

                # detectors that missed a root near the step end get a last look
                for state in self._states:
                    if state.try_advance(current, interpolator):
                        occurring.append(state)
                if not occurring:
                    break

        if step_handler is not None:
            step_handler.handle_step(restricted)
        return StepOutcome(StepDirective.CONTINUE, current, None)

    def _pop_first(self, occurring: list[EventState], forward: bool) -> EventState:
        sign = 1.0 if forward else -1.0
        first = min(
            occurring,
            key=lambda state: (sign * state.event_time, self._order[id(state)]),
        )
        occurring.remove(first)
        return first

    def _synchronize(self, interpolator: SupportsStepInterpolator) -> list[EventState]:
        """Align tracking states with the registrations, returning the new ones."""

        existing = {id(state.detector): state for state in self._states}
        states: list[EventState] = []
        added: list[EventState] = []
        for detector in self._detectors:
            state = existing.pop(id(detector), None)
            if state is None:
                state = EventState(detector)
                target = self._target_time
                if target is None:
                    target = interpolator.current_state.time
                state.init(interpolator.previous_state, target)
                added.append(state)
            states.append(state)
        if added or existing:
            self._states = states
            self._reindex()
        return added

    def _reindex(self) -> None:
        self._order = {id(state): index for index, state in enumerate(self._states)}
