"""Event detection: detectors, handlers, root tracking and scheduling."""

from gcross_core.detection.combinators import BooleanDetector, BooleanOperator, NegateDetector
from gcross_core.detection.detectors import DateDetector, EventDetector, FunctionalDetector
from gcross_core.detection.event_state import EventOccurrence, EventState
from gcross_core.detection.filters import (
    EventEnablingPredicateFilter,
    EventSlopeFilter,
    FilterType,
    Transformer,
)
from gcross_core.detection.handlers import (
    Action,
    BaseEventHandler,
    ContinueOnEvent,
    CountAndContinue,
    EventHandler,
    EventMultipleHandler,
    RecordAndContinue,
    RecordedEvent,
    StopOnDecreasing,
    StopOnEvent,
    StopOnIncreasing,
)
from gcross_core.detection.logger import EventsLogger, LoggedEvent
from gcross_core.detection.runs import RunLocal, RunScope, active_run
from gcross_core.detection.scheduler import EventScheduler, StepDirective, StepOutcome
from gcross_core.detection.settings import (
    DEFAULT_MAX_CHECK,
    DEFAULT_MAX_ITER,
    DEFAULT_THRESHOLD,
    AdaptableInterval,
    DetectionSettings,
)
from gcross_core.detection.solver import Interval, solve_interval

__all__ = [
    "Action",
    "AdaptableInterval",
    "BaseEventHandler",
    "BooleanDetector",
    "BooleanOperator",
    "ContinueOnEvent",
    "CountAndContinue",
    "DEFAULT_MAX_CHECK",
    "DEFAULT_MAX_ITER",
    "DEFAULT_THRESHOLD",
    "DateDetector",
    "DetectionSettings",
    "EventDetector",
    "EventEnablingPredicateFilter",
    "EventHandler",
    "EventMultipleHandler",
    "EventOccurrence",
    "EventScheduler",
    "EventSlopeFilter",
    "EventState",
    "EventsLogger",
    "FilterType",
    "FunctionalDetector",
    "Interval",
    "LoggedEvent",
    "NegateDetector",
    "RecordAndContinue",
    "RecordedEvent",
    "RunLocal",
    "RunScope",
    "StepDirective",
    "StepOutcome",
    "StopOnDecreasing",
    "StopOnEvent",
    "StopOnIncreasing",
    "Transformer",
    "active_run",
    "solve_interval",
]
