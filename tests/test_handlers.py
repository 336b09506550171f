from __future__ import annotations

import pytest

from gcross_core.detection import (
    Action,
    BaseEventHandler,
    ContinueOnEvent,
    CountAndContinue,
    EventHandler,
    EventMultipleHandler,
    FunctionalDetector,
    RecordAndContinue,
    StopOnDecreasing,
    StopOnEvent,
    StopOnIncreasing,
)
from gcross_core.errors import HandlerError
from gcross_core.propagation import SampledState

from tests.helpers import ActionHandler


DETECTOR = FunctionalDetector(lambda state: state.time)
STATE = SampledState(1.0, (2.0,))


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("continue", Action.CONTINUE),
        ("STOP", Action.STOP),
        ("reset-state", Action.RESET_STATE),
        ("reset_derivatives", Action.RESET_DERIVATIVES),
        ("reset_eventdetectors", Action.RESET_EVENT_DETECTORS),
        (Action.STOP, Action.STOP),
    ],
)
def test_action_parse(raw: object, expected: Action) -> None:
    assert Action.parse(raw) is expected


def test_action_parse_rejects_unknown_values() -> None:
    with pytest.raises(ValueError):
        Action.parse("explode")


def test_directional_stop_handlers() -> None:
    assert StopOnEvent().event_occurred(STATE, DETECTOR, False) is Action.STOP
    assert ContinueOnEvent().event_occurred(STATE, DETECTOR, True) is Action.CONTINUE
    assert StopOnIncreasing().event_occurred(STATE, DETECTOR, True) is Action.STOP
    assert StopOnIncreasing().event_occurred(STATE, DETECTOR, False) is Action.CONTINUE
    assert StopOnDecreasing().event_occurred(STATE, DETECTOR, False) is Action.STOP
    assert StopOnDecreasing().event_occurred(STATE, DETECTOR, True) is Action.CONTINUE


def test_base_handler_keeps_state_on_reset_and_conforms_to_protocol() -> None:
    handler = ContinueOnEvent()

    assert handler.reset_state(DETECTOR, STATE) is STATE
    assert isinstance(handler, EventHandler)
    with pytest.raises(NotImplementedError):
        BaseEventHandler().event_occurred(STATE, DETECTOR, True)


def test_record_and_continue_keeps_events() -> None:
    handler = RecordAndContinue()

    assert handler.event_occurred(STATE, DETECTOR, True) is Action.CONTINUE
    handler.event_occurred(SampledState(4.0), DETECTOR, False)
    snapshot = handler.events

    assert [(event.time, event.increasing) for event in snapshot] == [(1.0, True), (4.0, False)]
    assert snapshot[0].detector is DETECTOR
    handler.clear()
    assert handler.events == []
    assert len(snapshot) == 2


def test_count_and_continue() -> None:
    handler = CountAndContinue(start=3)

    handler.event_occurred(STATE, DETECTOR, True)
    handler.event_occurred(STATE, DETECTOR, False)

    assert handler.count == 5


def test_multiple_handler_calls_all_and_returns_highest_priority_action() -> None:
    first = ActionHandler(Action.CONTINUE)
    second = ActionHandler(Action.RESET_DERIVATIVES)
    third = ActionHandler(Action.STOP)
    handler = EventMultipleHandler([first]).add_handlers(second, third)

    action = handler.event_occurred(STATE, DETECTOR, True)

    assert action is Action.STOP
    assert first.events == second.events == third.events == [(1.0, True)]
    assert handler.handlers == (first, second, third)


@pytest.mark.parametrize(
    ("actions", "expected"),
    [
        ((Action.CONTINUE, Action.CONTINUE), Action.CONTINUE),
        ((Action.RESET_EVENT_DETECTORS, Action.CONTINUE), Action.RESET_EVENT_DETECTORS),
        ((Action.RESET_EVENT_DETECTORS, Action.RESET_DERIVATIVES), Action.RESET_DERIVATIVES),
        ((Action.RESET_DERIVATIVES, Action.RESET_STATE), Action.RESET_STATE),
        ((Action.RESET_STATE, Action.STOP), Action.STOP),
    ],
)
def test_multiple_handler_priority(actions: tuple[Action, ...], expected: Action) -> None:
    handler = EventMultipleHandler(ActionHandler(action) for action in actions)

    assert handler.event_occurred(STATE, DETECTOR, True) is expected


def test_multiple_handler_chains_state_resets() -> None:
    shift = ActionHandler(
        Action.RESET_STATE,
        reset=lambda state: SampledState(state.time, (state.values[0] + 1.0,)),
    )
    double = ActionHandler(
        Action.RESET_STATE,
        reset=lambda state: SampledState(state.time, (state.values[0] * 2.0,)),
    )
    ignored = ActionHandler(
        Action.CONTINUE,
        reset=lambda state: SampledState(state.time, (-100.0,)),
    )
    handler = EventMultipleHandler().add_handler(shift).add_handler(ignored).add_handler(double)

    assert handler.event_occurred(STATE, DETECTOR, True) is Action.RESET_STATE
    new_state = handler.reset_state(DETECTOR, STATE)

    assert new_state.values == (6.0,)


def test_multiple_handler_forwards_lifecycle() -> None:
    members = [ActionHandler(), ActionHandler()]
    handler = EventMultipleHandler(members)

    handler.init(STATE, 10.0, DETECTOR)
    handler.finish(STATE, DETECTOR)

    assert [member.initialised for member in members] == [1, 1]
    assert [member.finished for member in members] == [1, 1]


def test_multiple_handler_rejects_non_action_results() -> None:
    class Broken(BaseEventHandler):
        def event_occurred(self, state, detector, increasing):  # type: ignore[override]
            return "continue"

    handler = EventMultipleHandler([Broken()])

    with pytest.raises(HandlerError):
        handler.event_occurred(STATE, DETECTOR, True)
