"""Event handlers and the directives they return to the scheduler."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, Protocol, runtime_checkable

from gcross_core.errors import HandlerError

if TYPE_CHECKING:  # pragma: no cover - typing only
    from gcross_core.detection.detectors import EventDetector

__all__ = [
    "Action",
    "EventHandler",
    "BaseEventHandler",
    "ContinueOnEvent",
    "StopOnEvent",
    "StopOnIncreasing",
    "StopOnDecreasing",
    "RecordedEvent",
    "RecordAndContinue",
    "CountAndContinue",
    "EventMultipleHandler",
]


class Action(Enum):
    """Directive returned by :meth:`EventHandler.event_occurred`."""

    CONTINUE = "continue"
    STOP = "stop"
    RESET_STATE = "reset_state"
    RESET_DERIVATIVES = "reset_derivatives"
    RESET_EVENT_DETECTORS = "reset_event_detectors"

    @classmethod
    def parse(cls, value: "Action | str") -> "Action":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("-", "_")
        if key == "reset_eventdetectors":
            key = cls.RESET_EVENT_DETECTORS.value
        try:
            return cls(key)
        except ValueError as exc:
            raise ValueError(f"Unknown event action '{value}'") from exc


# Highest priority first.
_ACTION_PRIORITY: tuple[Action, ...] = (
    Action.STOP,
    Action.RESET_STATE,
    Action.RESET_DERIVATIVES,
    Action.RESET_EVENT_DETECTORS,
    Action.CONTINUE,
)


@runtime_checkable
class EventHandler(Protocol):
    """Reaction to confirmed crossings of a switching function."""

    def init(self, initial_state: Any, target_time: float, detector: "EventDetector") -> None: ...

    def event_occurred(
        self, state: Any, detector: "EventDetector", increasing: bool
    ) -> Action: ...

    def reset_state(self, detector: "EventDetector", old_state: Any) -> Any: ...

    def finish(self, final_state: Any, detector: "EventDetector") -> None: ...


class BaseEventHandler:
    """Handler with no-op lifecycle hooks and an identity state reset."""

    def init(self, initial_state: Any, target_time: float, detector: "EventDetector") -> None:
        return None

    def event_occurred(
        self, state: Any, detector: "EventDetector", increasing: bool
    ) -> Action:
        raise NotImplementedError

    def reset_state(self, detector: "EventDetector", old_state: Any) -> Any:
        return old_state

    def finish(self, final_state: Any, detector: "EventDetector") -> None:
        return None


class ContinueOnEvent(BaseEventHandler):
    def event_occurred(self, state: Any, detector: "EventDetector", increasing: bool) -> Action:
        return Action.CONTINUE


class StopOnEvent(BaseEventHandler):
    def event_occurred(self, state: Any, detector: "EventDetector", increasing: bool) -> Action:
        return Action.STOP


class StopOnIncreasing(BaseEventHandler):
    """Stop on increasing crossings, continue on decreasing ones."""

    def event_occurred(self, state: Any, detector: "EventDetector", increasing: bool) -> Action:
        return Action.STOP if increasing else Action.CONTINUE


class StopOnDecreasing(BaseEventHandler):
    """Stop on decreasing crossings, continue on increasing ones."""

    def event_occurred(self, state: Any, detector: "EventDetector", increasing: bool) -> Action:
        return Action.CONTINUE if increasing else Action.STOP


@dataclass(frozen=True, slots=True)
class RecordedEvent:
    state: Any
    detector: Any
    increasing: bool

    @property
    def time(self) -> float:
        return self.state.time


class RecordAndContinue(BaseEventHandler):
    """Keep every event in a list and let propagation continue."""

    def __init__(self, events: list[RecordedEvent] | None = None) -> None:
        self._events: list[RecordedEvent] = events if events is not None else []

    @property
    def events(self) -> list[RecordedEvent]:
        return list(self._events)

    def clear(self) -> None:
        self._events.clear()

    def event_occurred(self, state: Any, detector: "EventDetector", increasing: bool) -> Action:
        self._events.append(RecordedEvent(state, detector, increasing))
        return Action.CONTINUE


class CountAndContinue(BaseEventHandler):
    def __init__(self, start: int = 0) -> None:
        self.count = int(start)

    def event_occurred(self, state: Any, detector: "EventDetector", increasing: bool) -> Action:
        self.count += 1
        return Action.CONTINUE


class EventMultipleHandler(BaseEventHandler):
    """Dispatch every event to several handlers.

    All handlers are called, in registration order. The returned action is
    the most disruptive one, ranked ``STOP``, ``RESET_STATE``,
    ``RESET_DERIVATIVES``, ``RESET_EVENT_DETECTORS`` then ``CONTINUE``. The
    state reset chains the handlers that asked for ``RESET_STATE`` during the
    last event.
    """

    def __init__(self, handlers: Iterable[EventHandler] = ()) -> None:
        self._handlers: list[EventHandler] = list(handlers)
        self._reset_requests: list[EventHandler] = []

    @property
    def handlers(self) -> tuple[EventHandler, ...]:
        return tuple(self._handlers)

    def add_handler(self, handler: EventHandler) -> "EventMultipleHandler":
        self._handlers.append(handler)
        return self

    def add_handlers(self, *handlers: EventHandler) -> "EventMultipleHandler":
        self._handlers.extend(handlers)
        return self

    def init(self, initial_state: Any, target_time: float, detector: "EventDetector") -> None:
        for handler in self._handlers:
            handler.init(initial_state, target_time, detector)

    def event_occurred(self, state: Any, detector: "EventDetector", increasing: bool) -> Action:
        actions: list[Action] = []
        self._reset_requests = []
        for handler in self._handlers:
            action = handler.event_occurred(state, detector, increasing)
            if not isinstance(action, Action):
                raise HandlerError(
                    "event handler must return an Action",
                    context={"handler": type(handler).__name__, "returned": action},
                )
            if action is Action.RESET_STATE:
                self._reset_requests.append(handler)
            actions.append(action)
        for candidate in _ACTION_PRIORITY:
            if candidate in actions:
                return candidate
        return Action.CONTINUE

    def reset_state(self, detector: "EventDetector", old_state: Any) -> Any:
        state = old_state
        for handler in self._reset_requests:
            state = handler.reset_state(detector, state)
        return state

    def finish(self, final_state: Any, detector: "EventDetector") -> None:
        for handler in self._handlers:
            handler.finish(final_state, detector)
