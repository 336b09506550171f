"""Switching function detectors."""

from __future__ import annotations

import abc
import copy
import math
from typing import Any, Callable, Iterable

import numpy as np

from gcross_core.detection.handlers import EventHandler, StopOnEvent
from gcross_core.detection.runs import RunLocal
from gcross_core.detection.settings import (
    AdaptableInterval,
    DetectionSettings,
    IntervalLike,
)
from gcross_core.errors import DetectionConfigurationError

__all__ = [
    "EventDetector",
    "FunctionalDetector",
    "DateDetector",
    "DATE_DEFAULT_MAX_CHECK",
    "DATE_DEFAULT_THRESHOLD",
    "DATE_DEFAULT_MIN_GAP",
]


class EventDetector(abc.ABC):
    """Scalar switching function whose sign changes mark events.

    ``g`` must be a deterministic, mostly continuous function of the state.
    Only its sign matters: increasing events are negative to positive
    transitions, decreasing events the opposite. A detector can be queried
    in any time order, the engine samples backwards when it refines a root
    and when propagation runs backwards.

    Detectors are definitions. Run-scoped tracking data lives in
    :class:`~gcross_core.detection.event_state.EventState`, and detectors
    that must remember something while propagating keep it in a
    :class:`~gcross_core.detection.runs.RunLocal` slot, so the same detector
    may be registered with several schedulers. The ``with_*`` helpers return
    modified copies and leave the receiver untouched.
    """

    def __init__(
        self,
        settings: DetectionSettings | None = None,
        handler: EventHandler | None = None,
    ) -> None:
        if settings is None:
            settings = self.default_settings()
        if not isinstance(settings, DetectionSettings):
            raise DetectionConfigurationError(
                "detection settings must be a DetectionSettings instance",
                context={"settings": settings},
            )
        self._settings = settings
        self._handler = handler if handler is not None else self.default_handler()

    def default_settings(self) -> DetectionSettings:
        return DetectionSettings()

    def default_handler(self) -> EventHandler:
        return StopOnEvent()

    @abc.abstractmethod
    def g(self, state: Any) -> float:
        """Evaluate the switching function at ``state``."""

    def init(self, initial_state: Any, target_time: float) -> None:
        """Prepare for a propagation run from ``initial_state`` to ``target_time``."""

        self._handler.init(initial_state, target_time, self)

    def finish(self, final_state: Any) -> None:
        self._handler.finish(final_state, self)

    def depends_on_time_only(self) -> bool:
        """Hint telling whether ``g`` only reads the state time."""

        return False

    @property
    def settings(self) -> DetectionSettings:
        return self._settings

    @property
    def handler(self) -> EventHandler:
        return self._handler

    @property
    def max_check_interval(self) -> AdaptableInterval:
        return self._settings.max_check_interval

    @property
    def threshold(self) -> float:
        return self._settings.threshold

    @property
    def max_iteration_count(self) -> int:
        return self._settings.max_iteration_count

    def with_settings(self, settings: DetectionSettings) -> "EventDetector":
        if not isinstance(settings, DetectionSettings):
            raise DetectionConfigurationError(
                "detection settings must be a DetectionSettings instance",
                context={"settings": settings},
            )
        clone = copy.copy(self)
        clone._settings = settings
        return clone

    def with_max_check(self, max_check: IntervalLike) -> "EventDetector":
        return self.with_settings(self._settings.with_max_check(max_check))

    def with_threshold(self, threshold: float) -> "EventDetector":
        return self.with_settings(self._settings.with_threshold(threshold))

    def with_max_iteration_count(self, count: int) -> "EventDetector":
        return self.with_settings(self._settings.with_max_iteration_count(count))

    def with_handler(self, handler: EventHandler) -> "EventDetector":
        clone = copy.copy(self)
        clone._handler = handler
        return clone

    def __repr__(self) -> str:
        return f"{type(self).__name__}(threshold={self.threshold!r})"


class FunctionalDetector(EventDetector):
    """Detector built from a plain ``state -> float`` callable."""

    def __init__(
        self,
        function: Callable[[Any], float],
        settings: DetectionSettings | None = None,
        handler: EventHandler | None = None,
        *,
        time_only: bool = False,
    ) -> None:
        if not callable(function):
            raise DetectionConfigurationError(
                "switching function must be callable", context={"function": function}
            )
        self._function = function
        self._time_only = bool(time_only)
        super().__init__(settings, handler)

    @property
    def function(self) -> Callable[[Any], float]:
        return self._function

    def with_function(self, function: Callable[[Any], float]) -> "FunctionalDetector":
        clone = copy.copy(self)
        clone._function = function
        return clone

    def g(self, state: Any) -> float:
        return self._function(state)

    def depends_on_time_only(self) -> bool:
        return self._time_only


DATE_DEFAULT_MAX_CHECK = 1.0e10
DATE_DEFAULT_THRESHOLD = 1.0e-9
DATE_DEFAULT_MIN_GAP = 1.0


class DateDetector(EventDetector):
    """Fire at a set of dates.

    ``g`` is a zig-zag built around the date closest to the sampled time:
    it is linear in time near each date and its slope alternates from one
    date to the next, so consecutive dates give alternating increasing and
    decreasing events. Dates closer than ``min_gap`` are rejected, and the
    max check interval must stay below the gap for every date to be seen.
    """

    def __init__(
        self,
        *dates: float,
        min_gap: float = DATE_DEFAULT_MIN_GAP,
        settings: DetectionSettings | None = None,
        handler: EventHandler | None = None,
    ) -> None:
        min_gap = float(min_gap)
        if not min_gap > 0.0:
            raise DetectionConfigurationError(
                "minimum gap between dates must be strictly positive",
                context={"min_gap": min_gap},
            )
        self._min_gap = min_gap
        self._dates = np.empty(0, dtype=float)
        self._increasing: tuple[bool, ...] = ()
        self._last_time: RunLocal[float | None] = RunLocal(lambda: None)
        super().__init__(settings, handler)
        for date in sorted(float(value) for value in dates):
            self.add_event_date(date)

    def default_settings(self) -> DetectionSettings:
        return DetectionSettings(
            max_check_interval=DATE_DEFAULT_MAX_CHECK,
            threshold=DATE_DEFAULT_THRESHOLD,
        )

    @property
    def min_gap(self) -> float:
        return self._min_gap

    @property
    def dates(self) -> tuple[float, ...]:
        return tuple(float(value) for value in self._dates)

    def add_event_date(self, date: float) -> None:
        """Append ``date`` before the first or after the last known date."""

        date = float(date)
        if not math.isfinite(date):
            raise DetectionConfigurationError(
                "event dates must be finite", context={"date": date}
            )
        if self._dates.size == 0:
            last_time = self._last_time.get()
            increasing = True if last_time is None else date > last_time
            self._dates = np.array([date])
            self._increasing = (increasing,)
            return
        first = float(self._dates[0])
        last = float(self._dates[-1])
        if first - date > self._min_gap:
            self._dates = np.insert(self._dates, 0, date)
            self._increasing = (not self._increasing[0],) + self._increasing
        elif date - last > self._min_gap:
            self._dates = np.append(self._dates, date)
            self._increasing = self._increasing + (not self._increasing[-1],)
        else:
            raise DetectionConfigurationError(
                "event date too close to the existing dates",
                context={"date": date, "first": first, "last": last, "min_gap": self._min_gap},
            )

    def g(self, state: Any) -> float:
        time = state.time
        self._last_time.set(float(time))
        if self._dates.size == 0:
            return -1.0
        index = self._closest_index(float(time))
        date = float(self._dates[index])
        return time - date if self._increasing[index] else date - time

    def depends_on_time_only(self) -> bool:
        return True

    def _closest_index(self, time: float) -> int:
        position = int(np.searchsorted(self._dates, time))
        if position <= 0:
            return 0
        if position >= self._dates.size:
            return self._dates.size - 1
        before = time - float(self._dates[position - 1])
        after = float(self._dates[position]) - time
        return position - 1 if before <= after else position


def iter_detectors(detectors: Iterable[EventDetector] | EventDetector) -> list[EventDetector]:
    """Flatten a detector or an iterable of detectors into a list."""

    if isinstance(detectors, EventDetector):
        return [detectors]
    return list(detectors)
