from __future__ import annotations

import math

import pytest

from gcross_core.detection import (
    Action,
    ContinueOnEvent,
    EventsLogger,
    FunctionalDetector,
    LoggedEvent,
)
from gcross_core.detection.logger import MonitoredDetector
from gcross_core.errors import DetectionConfigurationError
from gcross_core.propagation import SampledState

from tests.helpers import ActionHandler, crossing_detector, make_settings, time_propagator


def _periodic(period: float) -> FunctionalDetector:
    return FunctionalDetector(
        lambda state: math.cos(2.0 * math.pi * state.time / period),
        make_settings(max_check=1.0),
        ContinueOnEvent(),
    )


def test_logger_records_events_of_all_monitored_detectors() -> None:
    fast = _periodic(10.0)
    slow = _periodic(16.0)
    events_logger = EventsLogger()
    propagator = time_propagator(0.0)
    propagator.add_event_detector(events_logger.monitor_detector(fast))
    propagator.add_event_detector(events_logger.monitor_detector(slow))

    propagator.propagate(99.0)
    snapshot = events_logger.get_logged_events()

    assert len(snapshot) == 32
    assert sum(1 for event in snapshot if event.detector is fast) == 20
    assert sum(1 for event in snapshot if event.detector is slow) == 12
    times = [event.time for event in snapshot]
    assert times == sorted(times)
    assert snapshot[0].time == pytest.approx(2.5, abs=1.0e-8)
    assert snapshot[0].increasing is False


def test_snapshots_are_immutable_and_log_accumulates_across_runs() -> None:
    fast = _periodic(10.0)
    slow = _periodic(16.0)
    events_logger = EventsLogger()
    propagator = time_propagator(0.0)
    propagator.add_event_detector(events_logger.monitor_detector(fast))
    propagator.add_event_detector(events_logger.monitor_detector(slow))

    propagator.propagate(99.0)
    first = events_logger.get_logged_events()
    propagator.propagate(99.0, 150.0)
    second = events_logger.get_logged_events()

    assert len(first) == 32
    assert len(second) == 49
    assert second[:32] == first
    assert all(a is b for a, b in zip(first, second))

    events_logger.clear_logged_events()
    assert events_logger.get_logged_events() == ()
    assert len(first) == 32


def test_monitored_detector_is_transparent() -> None:
    handler = ActionHandler(Action.STOP)
    wrapped = crossing_detector(5.25, max_check=2.0, handler=handler)
    events_logger = EventsLogger()
    monitored = events_logger.monitor_detector(wrapped)
    propagator = time_propagator(0.0)
    propagator.add_event_detector(monitored)

    final = propagator.propagate(10.0)

    assert isinstance(monitored, MonitoredDetector)
    assert monitored.wrapped is wrapped
    assert monitored.events_logger is events_logger
    assert monitored.settings is wrapped.settings
    assert monitored.g(SampledState(6.25)) == wrapped.g(SampledState(6.25))
    assert monitored.depends_on_time_only() is True
    assert final.time == 5.25
    assert handler.events == [(5.25, True)]
    assert handler.initialised == 1
    assert handler.finished == 1
    logged = events_logger.get_logged_events()
    assert logged == (LoggedEvent(logged[0].state, wrapped, True),)


def test_only_detectors_can_be_monitored() -> None:
    with pytest.raises(DetectionConfigurationError):
        EventsLogger().monitor_detector("detector")  # type: ignore[arg-type]


def test_swapping_the_handler_of_a_monitored_detector_keeps_logging() -> None:
    events_logger = EventsLogger()
    wrapped = crossing_detector(5.25, max_check=2.0)
    handler = ActionHandler(Action.STOP)
    monitored = events_logger.monitor_detector(wrapped).with_handler(handler)
    propagator = time_propagator(0.0)
    propagator.add_event_detector(monitored)

    final = propagator.propagate(10.0)

    assert isinstance(monitored, MonitoredDetector)
    assert monitored.events_logger is events_logger
    assert monitored.wrapped.handler is handler
    assert wrapped.handler is not handler
    assert wrapped.handler.events == []
    assert final.time == 5.25
    assert handler.events == [(5.25, True)]
    logged = events_logger.get_logged_events()
    assert [(event.time, event.increasing) for event in logged] == [(5.25, True)]
    assert logged[0].detector is monitored.wrapped
