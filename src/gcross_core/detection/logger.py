"""Transparent recording of the events seen by monitored detectors."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any

from gcross_core.detection.detectors import EventDetector
from gcross_core.detection.handlers import Action, BaseEventHandler, EventHandler
from gcross_core.errors import DetectionConfigurationError

__all__ = ["LoggedEvent", "EventsLogger"]


@dataclass(frozen=True, slots=True)
class LoggedEvent:
    """Event seen by a monitored detector."""

    state: Any
    detector: EventDetector
    increasing: bool

    @property
    def time(self) -> float:
        return self.state.time


class EventsLogger:
    """Record every event of the detectors it monitors.

    Monitoring wraps a detector so that each event is appended to the log
    before the wrapped handler runs, the handler's action being returned
    unchanged. The log is a tuple replaced on every append, so a snapshot
    returned by :meth:`get_logged_events` never changes afterwards. Events
    accumulate across propagation runs until :meth:`clear_logged_events`.
    """

    def __init__(self) -> None:
        self._log: tuple[LoggedEvent, ...] = ()

    def monitor_detector(self, detector: EventDetector) -> "MonitoredDetector":
        if not isinstance(detector, EventDetector):
            raise DetectionConfigurationError(
                "only detectors can be monitored", context={"detector": detector}
            )
        return MonitoredDetector(self, detector)

    def get_logged_events(self) -> tuple[LoggedEvent, ...]:
        return self._log

    def clear_logged_events(self) -> None:
        self._log = ()

    def _append(self, event: LoggedEvent) -> None:
        self._log = self._log + (event,)


class MonitoredDetector(EventDetector):
    """Detector forwarding everything to ``wrapped`` while feeding a log."""

    def __init__(self, events_logger: EventsLogger, wrapped: EventDetector) -> None:
        self._events_logger = events_logger
        self._wrapped = wrapped
        super().__init__(wrapped.settings, _LoggingHandler())

    @property
    def wrapped(self) -> EventDetector:
        return self._wrapped

    @property
    def events_logger(self) -> EventsLogger:
        return self._events_logger

    def g(self, state: Any) -> float:
        return self._wrapped.g(state)

    def init(self, initial_state: Any, target_time: float) -> None:
        self._wrapped.init(initial_state, target_time)
        super().init(initial_state, target_time)

    def finish(self, final_state: Any) -> None:
        self._wrapped.finish(final_state)
        super().finish(final_state)

    def depends_on_time_only(self) -> bool:
        return self._wrapped.depends_on_time_only()

    def with_handler(self, handler: EventHandler) -> "MonitoredDetector":
        """Copy whose wrapped detector reports to ``handler``.

        The logging handler stays in front so events keep being recorded.
        """

        clone = copy.copy(self)
        clone._wrapped = self._wrapped.with_handler(handler)
        return clone

    def log_event(self, state: Any, increasing: bool) -> None:
        self._events_logger._append(LoggedEvent(state, self._wrapped, increasing))


class _LoggingHandler(BaseEventHandler):
    def event_occurred(self, state: Any, detector: EventDetector, increasing: bool) -> Action:
        monitored = detector
        if not isinstance(monitored, MonitoredDetector):
            raise DetectionConfigurationError(
                "logging handler attached to an unmonitored detector",
                context={"detector": detector},
            )
        monitored.log_event(state, increasing)
        wrapped = monitored.wrapped
        return wrapped.handler.event_occurred(state, wrapped, increasing)

    def reset_state(self, detector: EventDetector, old_state: Any) -> Any:
        wrapped = detector.wrapped  # type: ignore[attr-defined]
        return wrapped.handler.reset_state(wrapped, old_state)
