"""Detectors composed from other detectors."""

from __future__ import annotations

import functools
from enum import Enum
from typing import Any, Iterable

from gcross_core.detection.detectors import EventDetector, iter_detectors
from gcross_core.detection.handlers import ContinueOnEvent, EventHandler
from gcross_core.detection.settings import DetectionSettings, MinimumInterval
from gcross_core.errors import DetectionConfigurationError

__all__ = ["BooleanOperator", "BooleanDetector", "NegateDetector"]


class BooleanOperator(Enum):
    """Logical operator applied to the ``g > 0`` predicates of sub-detectors."""

    AND = "and"
    OR = "or"

    def combine(self, left: float, right: float) -> float:
        if self is BooleanOperator.AND:
            return min(left, right)
        return max(left, right)


class BooleanDetector(EventDetector):
    """Combine detectors with AND or OR.

    A detector is considered active where its ``g`` is positive. The AND
    combination is the minimum of the sub-functions and the OR combination
    the maximum, which keeps the result continuous wherever every
    sub-function is. Use :class:`NegateDetector` to flip a sub-detector's
    sense of activity before combining.

    Default settings take the smallest check interval (evaluated at the
    sampled state) and threshold of the sub-detectors and the largest
    iteration budget. The default handler continues on every event.
    """

    def __init__(
        self,
        detectors: Iterable[EventDetector],
        operator: BooleanOperator,
        settings: DetectionSettings | None = None,
        handler: EventHandler | None = None,
    ) -> None:
        members = tuple(iter_detectors(detectors))
        if not members:
            raise DetectionConfigurationError(
                "boolean combination requires at least one detector"
            )
        for member in members:
            if not isinstance(member, EventDetector):
                raise DetectionConfigurationError(
                    "boolean combination members must be detectors",
                    context={"member": member},
                )
        self._detectors = members
        self._operator = BooleanOperator(operator)
        super().__init__(settings, handler)

    @classmethod
    def and_combine(cls, *detectors: EventDetector | Iterable[EventDetector]) -> "BooleanDetector":
        return cls(_flatten(detectors), BooleanOperator.AND)

    @classmethod
    def or_combine(cls, *detectors: EventDetector | Iterable[EventDetector]) -> "BooleanDetector":
        return cls(_flatten(detectors), BooleanOperator.OR)

    @staticmethod
    def not_combine(detector: EventDetector) -> "NegateDetector":
        return NegateDetector(detector)

    def default_settings(self) -> DetectionSettings:
        return DetectionSettings(
            max_check_interval=MinimumInterval.of(
                detector.max_check_interval for detector in self._detectors
            ),
            threshold=min(detector.threshold for detector in self._detectors),
            max_iteration_count=max(
                detector.max_iteration_count for detector in self._detectors
            ),
        )

    def default_handler(self) -> EventHandler:
        return ContinueOnEvent()

    @property
    def detectors(self) -> tuple[EventDetector, ...]:
        return self._detectors

    @property
    def operator(self) -> BooleanOperator:
        return self._operator

    def g(self, state: Any) -> float:
        values = (detector.g(state) for detector in self._detectors)
        return functools.reduce(self._operator.combine, values)

    def init(self, initial_state: Any, target_time: float) -> None:
        for detector in self._detectors:
            detector.init(initial_state, target_time)
        super().init(initial_state, target_time)

    def finish(self, final_state: Any) -> None:
        for detector in self._detectors:
            detector.finish(final_state)
        super().finish(final_state)

    def depends_on_time_only(self) -> bool:
        return all(detector.depends_on_time_only() for detector in self._detectors)


class NegateDetector(EventDetector):
    """Flip the sign of a detector, swapping increasing and decreasing events.

    Settings default to those of the wrapped detector, the default handler
    continues on every event.
    """

    def __init__(
        self,
        original: EventDetector,
        settings: DetectionSettings | None = None,
        handler: EventHandler | None = None,
    ) -> None:
        if not isinstance(original, EventDetector):
            raise DetectionConfigurationError(
                "negation requires a detector", context={"original": original}
            )
        self._original = original
        super().__init__(settings, handler)

    def default_settings(self) -> DetectionSettings:
        return self._original.settings

    def default_handler(self) -> EventHandler:
        return ContinueOnEvent()

    @property
    def original(self) -> EventDetector:
        return self._original

    def g(self, state: Any) -> float:
        return -self._original.g(state)

    def init(self, initial_state: Any, target_time: float) -> None:
        self._original.init(initial_state, target_time)
        super().init(initial_state, target_time)

    def finish(self, final_state: Any) -> None:
        self._original.finish(final_state)
        super().finish(final_state)

    def depends_on_time_only(self) -> bool:
        return self._original.depends_on_time_only()


def _flatten(
    detectors: tuple[EventDetector | Iterable[EventDetector], ...]
) -> list[EventDetector]:
    flattened: list[EventDetector] = []
    for entry in detectors:
        flattened.extend(iter_detectors(entry))
    return flattened
