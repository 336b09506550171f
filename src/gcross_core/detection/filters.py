"""Direction and predicate filters wrapping a raw detector."""

from __future__ import annotations

import abc
import math
import sys
from enum import Enum
from typing import Any, Callable

from gcross_core.detection.detectors import EventDetector
from gcross_core.detection.handlers import Action, BaseEventHandler, EventHandler
from gcross_core.detection.runs import RunLocal
from gcross_core.detection.settings import DetectionSettings
from gcross_core.errors import DetectionConfigurationError

__all__ = [
    "HISTORY_SIZE",
    "Transformer",
    "FilterType",
    "EventSlopeFilter",
    "EventEnablingPredicateFilter",
    "EnablingPredicate",
]


HISTORY_SIZE = 100

_SAFE_MIN = sys.float_info.min


class Transformer(Enum):
    """Mapping applied to the raw ``g`` value over a time span.

    ``MIN`` and ``MAX`` pin the filtered value to a constant sign, hiding
    crossings of the raw function, while ``PLUS`` and ``MINUS`` let them
    through with or without a sign flip.
    """

    UNINITIALIZED = "uninitialized"
    PLUS = "plus"
    MINUS = "minus"
    MIN = "min"
    MAX = "max"

    def transformed(self, g: float) -> float:
        if self is Transformer.PLUS:
            return g
        if self is Transformer.MINUS:
            return -g
        if self is Transformer.MIN:
            return min(-_SAFE_MIN, -abs(g))
        if self is Transformer.MAX:
            return max(_SAFE_MIN, abs(g))
        return 0.0


class FilterType(Enum):
    """Direction of the raw events a slope filter lets through."""

    TRIGGER_ONLY_DECREASING_EVENTS = "decreasing"
    TRIGGER_ONLY_INCREASING_EVENTS = "increasing"

    @property
    def triggered_increasing(self) -> bool:
        return self is FilterType.TRIGGER_ONLY_INCREASING_EVENTS

    @classmethod
    def parse(cls, value: "FilterType | str") -> "FilterType":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member
        raise ValueError(f"Unknown slope filter '{value}'")

    def select_transformer(self, previous: Transformer, g: float, forward: bool) -> Transformer:
        if self is FilterType.TRIGGER_ONLY_DECREASING_EVENTS:
            return _decreasing_transformer(previous, g, forward)
        return _increasing_transformer(previous, g, forward)


def _decreasing_transformer(previous: Transformer, g: float, forward: bool) -> Transformer:
    T = Transformer
    if forward:
        if previous is T.UNINITIALIZED:
            if g > 0:
                return T.MAX
            if g < 0:
                return T.PLUS
            return T.UNINITIALIZED
        if previous is T.PLUS:
            return T.MIN if g >= 0 else previous
        if previous is T.MINUS:
            return T.MAX if g >= 0 else previous
        if previous is T.MIN:
            return T.MINUS if g <= 0 else previous
        return T.PLUS if g <= 0 else previous
    if previous is T.UNINITIALIZED:
        if g > 0:
            return T.MINUS
        if g < 0:
            return T.MIN
        return T.UNINITIALIZED
    if previous is T.PLUS:
        return T.MAX if g <= 0 else previous
    if previous is T.MINUS:
        return T.MIN if g <= 0 else previous
    if previous is T.MIN:
        return T.PLUS if g >= 0 else previous
    return T.MINUS if g >= 0 else previous


def _increasing_transformer(previous: Transformer, g: float, forward: bool) -> Transformer:
    T = Transformer
    if forward:
        if previous is T.UNINITIALIZED:
            if g > 0:
                return T.PLUS
            if g < 0:
                return T.MIN
            return T.UNINITIALIZED
        if previous is T.PLUS:
            return T.MAX if g <= 0 else previous
        if previous is T.MINUS:
            return T.MIN if g <= 0 else previous
        if previous is T.MIN:
            return T.PLUS if g >= 0 else previous
        return T.MINUS if g >= 0 else previous
    if previous is T.UNINITIALIZED:
        if g > 0:
            return T.MAX
        if g < 0:
            return T.PLUS
        return T.UNINITIALIZED
    if previous is T.PLUS:
        return T.MIN if g >= 0 else previous
    if previous is T.MINUS:
        return T.MAX if g >= 0 else previous
    if previous is T.MIN:
        return T.MINUS if g <= 0 else previous
    return T.PLUS if g <= 0 else previous


class _History:
    """Transformer switches recorded while one run moved past its extreme time."""

    __slots__ = ("forward", "extreme_t", "updates", "transformers")

    def __init__(self, forward: bool = True) -> None:
        self.forward = forward
        self.extreme_t = -math.inf if forward else math.inf
        self.updates: list[Any] = [self.extreme_t] * HISTORY_SIZE
        self.transformers: list[Transformer] = [Transformer.UNINITIALIZED] * HISTORY_SIZE

    def copy(self) -> "_History":
        duplicate = _History(self.forward)
        duplicate.extreme_t = self.extreme_t
        duplicate.updates = list(self.updates)
        duplicate.transformers = list(self.transformers)
        return duplicate

    def transformer_at(self, time: Any) -> Transformer:
        if self.forward:
            for index in range(HISTORY_SIZE - 1, -1, -1):
                if self.updates[index] <= time:
                    return self.transformers[index]
            return self.transformers[0]
        for index in range(HISTORY_SIZE - 1, -1, -1):
            if time <= self.updates[index]:
                return self.transformers[index]
        return self.transformers[0]


class _TransformerFilter(EventDetector):
    """Raw detector seen through a time-indexed history of transformers.

    The history records where the transformer switched while propagation
    moved past the extreme time reached so far. Queries behind that time,
    made during root refinement, replay the transformer that applied then.
    The history lives in a :class:`RunLocal` slot, so each scheduler the
    filter is registered with tracks its own run, rebuilt by :meth:`init`.
    """

    def __init__(
        self,
        raw: EventDetector,
        settings: DetectionSettings | None = None,
        handler: EventHandler | None = None,
    ) -> None:
        if not isinstance(raw, EventDetector):
            raise DetectionConfigurationError(
                "filters wrap a detector", context={"raw": raw}
            )
        self._raw = raw
        self._history: RunLocal[_History] = RunLocal(_History)
        super().__init__(settings, handler)

    def default_settings(self) -> DetectionSettings:
        return self._raw.settings

    def default_handler(self) -> EventHandler:
        return _ForwardingHandler()

    @property
    def raw_detector(self) -> EventDetector:
        return self._raw

    def init(self, initial_state: Any, target_time: Any) -> None:
        self._raw.init(initial_state, target_time)
        super().init(initial_state, target_time)
        self._history.set(_History(target_time >= initial_state.time))

    def finish(self, final_state: Any) -> None:
        self._raw.finish(final_state)
        super().finish(final_state)

    def depends_on_time_only(self) -> bool:
        return self._raw.depends_on_time_only()

    def with_settings(self, settings: DetectionSettings) -> "EventDetector":
        clone = super().with_settings(settings)
        clone._history = self._history.copy(_History.copy)
        return clone

    def with_handler(self, handler: EventHandler) -> "EventDetector":
        clone = super().with_handler(handler)
        clone._history = self._history.copy(_History.copy)
        return clone

    @abc.abstractmethod
    def _select_transformer(
        self, previous: Transformer, state: Any, raw_g: Any, forward: bool
    ) -> Transformer:
        """Transformer to apply from now on given the raw value."""

    def transformer_at(self, time: Any) -> Transformer:
        """Transformer that applied at ``time`` during the current run."""

        return self._history.get().transformer_at(time)

    def g(self, state: Any) -> Any:
        raw_g = self._raw.g(state)
        time = state.time
        history = self._history.get()
        beyond = time > history.extreme_t if history.forward else time < history.extreme_t
        if beyond:
            previous = history.transformers[HISTORY_SIZE - 1]
            selected = self._select_transformer(previous, state, raw_g, history.forward)
            if selected is not previous:
                del history.updates[0]
                del history.transformers[0]
                history.updates.append(history.extreme_t)
                history.transformers.append(selected)
            history.extreme_t = time
            return selected.transformed(raw_g)
        return history.transformer_at(time).transformed(raw_g)


class _ForwardingHandler(BaseEventHandler):
    """Pass filtered events on to the raw detector's handler."""

    def event_occurred(self, state: Any, detector: EventDetector, increasing: bool) -> Action:
        raw = detector.raw_detector
        return raw.handler.event_occurred(state, raw, detector._raw_direction(state, increasing))

    def reset_state(self, detector: EventDetector, old_state: Any) -> Any:
        raw = detector.raw_detector
        return raw.handler.reset_state(raw, old_state)


class EventSlopeFilter(_TransformerFilter):
    """Only let crossings of one direction reach the handler.

    The raw detector keeps being sampled so that brackets are found with the
    unfiltered function, but crossings of the other direction are folded
    into a constant-sign region of the filtered ``g``.
    """

    def __init__(
        self,
        raw: EventDetector,
        filter_type: FilterType | str,
        settings: DetectionSettings | None = None,
        handler: EventHandler | None = None,
    ) -> None:
        self._filter = FilterType.parse(filter_type)
        super().__init__(raw, settings, handler)

    @property
    def filter_type(self) -> FilterType:
        return self._filter

    def _select_transformer(
        self, previous: Transformer, state: Any, raw_g: Any, forward: bool
    ) -> Transformer:
        return self._filter.select_transformer(previous, raw_g, forward)

    def _raw_direction(self, state: Any, increasing: bool) -> bool:
        return self._filter.triggered_increasing


EnablingPredicate = Callable[[Any, EventDetector, float], bool]


class EventEnablingPredicateFilter(_TransformerFilter):
    """Only let crossings reach the handler while a predicate holds.

    ``predicate(state, raw_detector, raw_g)`` is sampled with the raw
    function. While it is false the filtered ``g`` keeps a constant sign,
    so neither raw crossings nor the predicate switches themselves produce
    events.
    """

    def __init__(
        self,
        raw: EventDetector,
        predicate: EnablingPredicate,
        settings: DetectionSettings | None = None,
        handler: EventHandler | None = None,
    ) -> None:
        if not callable(predicate):
            raise DetectionConfigurationError(
                "enabling predicate must be callable", context={"predicate": predicate}
            )
        self._predicate = predicate
        super().__init__(raw, settings, handler)

    @property
    def predicate(self) -> EnablingPredicate:
        return self._predicate

    def _select_transformer(
        self, previous: Transformer, state: Any, raw_g: Any, forward: bool
    ) -> Transformer:
        T = Transformer
        if self._predicate(state, self._raw, raw_g):
            if previous is T.UNINITIALIZED:
                return T.PLUS if raw_g > 0 else T.MINUS
            if previous is T.MIN:
                return T.MINUS if raw_g > 0 else T.PLUS
            if previous is T.MAX:
                return T.PLUS if raw_g > 0 else T.MINUS
            return previous
        if previous is T.UNINITIALIZED:
            return T.MAX if raw_g > 0 else T.MIN
        if previous is T.PLUS:
            return T.MAX if raw_g > 0 else T.MIN
        if previous is T.MINUS:
            return T.MIN if raw_g > 0 else T.MAX
        return previous

    def _raw_direction(self, state: Any, increasing: bool) -> bool:
        if self.transformer_at(state.time) is Transformer.PLUS:
            return increasing
        return not increasing
