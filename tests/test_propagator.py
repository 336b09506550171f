from __future__ import annotations

import pytest

from gcross_core.errors import DetectionConfigurationError
from gcross_core.propagation import AnalyticalPropagator, SampledState

from tests.helpers import (
    RecordingFixedStepHandler,
    RecordingStepHandler,
    crossing_detector,
    linear_model,
    linear_propagator,
    recorded,
    time_propagator,
)


@pytest.mark.parametrize("step_size", [0.0, float("inf"), float("nan")])
def test_step_size_must_be_positive_and_finite(step_size: float) -> None:
    with pytest.raises(DetectionConfigurationError):
        AnalyticalPropagator(SampledState(0.0), linear_model, step_size=step_size)


def test_propagate_from_explicit_start_skips_earlier_events() -> None:
    detector = crossing_detector(2.0)
    propagator = linear_propagator(0.0, 2.0)
    propagator.add_event_detector(detector)

    final = propagator.propagate(3.0, 5.0)

    assert final.time == 5.0
    assert final.values == (10.0, 2.0)
    assert recorded(detector) == []


def test_reset_initial_state_moves_the_reference() -> None:
    propagator = linear_propagator(0.0, 1.0)
    propagator.reset_initial_state(SampledState(10.0, (5.0, -1.0)))

    final = propagator.propagate(12.0)

    assert propagator.initial_state.time == 10.0
    assert final.values == (3.0, -1.0)


def test_sliver_steps_before_the_target_are_merged() -> None:
    recorder = RecordingStepHandler()
    propagator = time_propagator(0.0, step_size=1.0)
    propagator.add_step_handler(recorder)

    propagator.propagate(3.0005)

    assert recorder.spans[-1] == (2.0, 3.0005)
    assert len(recorder.spans) == 3


def test_fixed_step_handler_replaces_step_handlers() -> None:
    propagator = time_propagator(0.0)
    propagator.add_step_handler(RecordingStepHandler())

    normalizer = propagator.set_fixed_step_handler(1.0, RecordingFixedStepHandler())

    assert propagator.step_handlers.handlers == (normalizer,)


def test_detector_registration_passthrough() -> None:
    first = crossing_detector(1.0)
    second = crossing_detector(2.0)
    propagator = time_propagator(0.0)
    propagator.add_event_detector(first)
    propagator.add_event_detector(second)

    propagator.remove_event_detector(first)
    assert propagator.event_detectors == (second,)

    propagator.clear_event_detectors()
    assert propagator.event_detectors == ()


def test_propagation_to_the_start_time_is_empty() -> None:
    recorder = RecordingStepHandler()
    propagator = time_propagator(4.0)
    propagator.add_step_handler(recorder)

    final = propagator.propagate(4.0)

    assert final.time == 4.0
    assert recorder.spans == []
    assert recorder.final_time == 4.0
