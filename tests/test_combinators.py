from __future__ import annotations

import pytest

from gcross_core.detection import (
    BooleanDetector,
    BooleanOperator,
    ContinueOnEvent,
    FunctionalDetector,
    NegateDetector,
    RecordAndContinue,
)
from gcross_core.detection.settings import CallableInterval, MinimumInterval
from gcross_core.errors import DetectionConfigurationError
from gcross_core.propagation import SampledState

from tests.helpers import (
    ActionHandler,
    crossing_detector,
    make_settings,
    recorded,
    time_propagator,
)


def _detector(
    function, max_check: float = 1.0, threshold: float = 1.0e-9, max_iterations: int = 100
) -> FunctionalDetector:
    return FunctionalDetector(function, make_settings(max_check, threshold, max_iterations))


def test_boolean_operators_combine_with_min_and_max() -> None:
    assert BooleanOperator.AND.combine(-1.0, 2.0) == -1.0
    assert BooleanOperator.OR.combine(-1.0, 2.0) == 2.0
    assert BooleanOperator("and") is BooleanOperator.AND


def test_and_combination_is_active_where_all_members_are() -> None:
    after_three = _detector(lambda state: state.time - 3.0)
    before_six = _detector(lambda state: 6.0 - state.time)
    handler = RecordAndContinue()
    combined = BooleanDetector.and_combine(after_three, before_six).with_handler(handler)
    propagator = time_propagator(0.0)
    propagator.add_event_detector(combined)

    propagator.propagate(10.0)

    assert combined.g(SampledState(4.0)) == 1.0
    assert recorded(combined) == [(3.0, True), (6.0, False)]


def test_or_combination_is_active_where_any_member_is() -> None:
    after_three = _detector(lambda state: state.time - 3.0)
    before_six = _detector(lambda state: 6.0 - state.time)
    combined = BooleanDetector.or_combine([after_three, before_six]).with_handler(
        RecordAndContinue()
    )
    propagator = time_propagator(0.0)
    propagator.add_event_detector(combined)

    propagator.propagate(10.0)

    assert combined.g(SampledState(0.0)) == 6.0
    assert recorded(combined) == []


def test_and_with_constant_member_follows_the_other_member() -> None:
    always = _detector(lambda state: 1.0)
    until_seven = _detector(lambda state: 7.0 - state.time)
    combined = BooleanDetector([always, until_seven], BooleanOperator.AND).with_handler(
        RecordAndContinue()
    )
    propagator = time_propagator(0.0)
    propagator.add_event_detector(combined)

    propagator.propagate(10.0)

    assert recorded(combined) == [(7.0, False)]


def test_boolean_defaults_come_from_members() -> None:
    coarse = _detector(lambda state: 1.0, max_check=10.0, threshold=1.0e-3, max_iterations=20)
    fine = _detector(lambda state: 1.0, max_check=3.0, threshold=1.0e-7, max_iterations=50)
    adaptive = FunctionalDetector(
        lambda state: 1.0,
        make_settings(threshold=1.0e-6).with_max_check(lambda state: 0.5 * state.time),
    )

    combined = BooleanDetector.and_combine(coarse, fine, adaptive)

    interval = combined.max_check_interval
    assert isinstance(interval, MinimumInterval)
    assert interval.current_interval(SampledState(4.0)) == 2.0
    assert interval.current_interval(SampledState(100.0)) == 3.0
    assert combined.threshold == 1.0e-7
    assert combined.max_iteration_count == 100
    assert isinstance(combined.handler, ContinueOnEvent)
    assert combined.detectors == (coarse, fine, adaptive)
    assert combined.operator is BooleanOperator.AND


def test_boolean_detector_rejects_empty_or_invalid_members() -> None:
    with pytest.raises(DetectionConfigurationError):
        BooleanDetector([], BooleanOperator.OR)
    with pytest.raises(DetectionConfigurationError):
        BooleanDetector.and_combine()
    with pytest.raises(DetectionConfigurationError):
        BooleanDetector([crossing_detector(1.0), "detector"], BooleanOperator.AND)  # type: ignore[list-item]


def test_boolean_detector_forwards_lifecycle_to_members() -> None:
    member_handlers = [ActionHandler(), ActionHandler()]
    members = [
        _detector(lambda state: 1.0).with_handler(member_handlers[0]),
        _detector(lambda state: 2.0).with_handler(member_handlers[1]),
    ]
    combined = BooleanDetector.or_combine(members)
    propagator = time_propagator(0.0)
    propagator.add_event_detector(combined)

    propagator.propagate(5.0)

    assert [handler.initialised for handler in member_handlers] == [1, 1]
    assert [handler.finished for handler in member_handlers] == [1, 1]


def test_negate_flips_sign_and_direction() -> None:
    original = crossing_detector(5.25)
    negated = NegateDetector(original).with_handler(RecordAndContinue())
    propagator = time_propagator(0.0)
    propagator.add_event_detector(original)
    propagator.add_event_detector(negated)

    propagator.propagate(10.0)

    assert negated.g(SampledState(6.25)) == -1.0
    assert recorded(original) == [(5.25, True)]
    assert recorded(negated) == [(5.25, False)]


def test_negate_defaults_to_original_settings_and_continue_handler() -> None:
    original = crossing_detector(1.0, max_check=42.0, threshold=1.0e-5)

    negated = BooleanDetector.not_combine(original)

    assert isinstance(negated, NegateDetector)
    assert negated.original is original
    assert negated.settings is original.settings
    assert isinstance(negated.handler, ContinueOnEvent)
    assert negated.depends_on_time_only() is True
    with pytest.raises(DetectionConfigurationError):
        NegateDetector(None)  # type: ignore[arg-type]


def test_and_of_negated_detector_builds_a_window() -> None:
    after_two = _detector(lambda state: state.time - 2.0)
    after_eight = _detector(lambda state: state.time - 8.0)
    window = BooleanDetector.and_combine(after_two, NegateDetector(after_eight)).with_handler(
        RecordAndContinue()
    )
    propagator = time_propagator(0.0)
    propagator.add_event_detector(window)

    propagator.propagate(10.0)

    assert recorded(window) == [
        (pytest.approx(2.0, abs=1.0e-6), True),
        (pytest.approx(8.0, abs=1.0e-6), False),
    ]


def test_callable_interval_is_used_by_combination() -> None:
    adaptive = FunctionalDetector(
        lambda state: state.time - 2.5, make_settings().with_max_check(lambda state: 1.0)
    )

    combined = BooleanDetector.or_combine(adaptive)

    assert isinstance(combined.max_check_interval.intervals[0], CallableInterval)
