from __future__ import annotations

import math
from pathlib import Path

import pytest

from gcross.scenario import (
    HarmonicModel,
    OscillatorState,
    build_detector,
    build_scenario,
    load_scenario,
    run_scenario,
)
from gcross_core.config import load_detection_config
from gcross_core.detection import (
    BooleanDetector,
    DateDetector,
    EventEnablingPredicateFilter,
    EventSlopeFilter,
    NegateDetector,
    StopOnEvent,
)
from gcross_core.errors import DetectionConfigurationError

from tests.conftest import ROOT, write_scenario


OSCILLATOR = """
model:
  angular_frequency: 1.0
  amplitude: 1.0
propagation:
  start: 0.0
  target: 10.0
detectors:
  - name: rising_half
    kind: level
    level: 0.5
    slope: increasing
    settings:
      max_check: 0.5
  - name: peak
    kind: apex
    settings:
      max_check: 0.5
"""


def _payload(tmp_path: Path, contents: str = OSCILLATOR):
    return load_scenario(write_scenario(tmp_path, contents))


def test_harmonic_model_is_closed_form() -> None:
    model = HarmonicModel(2.0)
    start = model.initial_state(0.0, 3.0, 0.5 * math.pi)

    later = model(start, 0.5 * math.pi)

    assert isinstance(start, OscillatorState)
    assert start.position == 3.0
    assert start.velocity == pytest.approx(0.0, abs=1.0e-12)
    assert later.position == pytest.approx(-3.0)
    assert later.velocity == pytest.approx(0.0, abs=1.0e-12)
    with pytest.raises(DetectionConfigurationError):
        HarmonicModel(0.0)


def test_oscillator_scan_reports_events_in_time_order(tmp_path: Path) -> None:
    events = run_scenario(build_scenario(_payload(tmp_path)))

    assert [event.name for event in events] == [
        "rising_half",
        "peak",
        "peak",
        "rising_half",
        "peak",
    ]
    assert [event.time for event in events] == pytest.approx(
        [math.pi / 6, math.pi / 2, 1.5 * math.pi, 13 * math.pi / 6, 2.5 * math.pi], abs=1.0e-5
    )
    assert [event.increasing for event in events] == [True, False, True, True, False]
    assert events[0].position == pytest.approx(0.5, abs=1.0e-5)
    assert events[1].as_dict()["direction"] == "decreasing"


def test_target_override_and_stop_action(tmp_path: Path) -> None:
    payload = _payload(
        tmp_path,
        """
        propagation:
          target: 100.0
        detectors:
          - name: first_peak
            kind: apex
            action: stop
            settings:
              max_check: 0.5
        """,
    )

    scenario = build_scenario(payload, target=20.0)
    events = run_scenario(scenario)

    assert scenario.target == 20.0
    assert [event.name for event in events] == ["first_peak"]
    assert events[0].time == pytest.approx(math.pi / 2, abs=1.0e-5)
    [(_, detector)] = scenario.detectors
    assert isinstance(detector.handler, StopOnEvent)


def test_dates_use_the_date_family_settings() -> None:
    config = load_detection_config()

    detector = build_detector({"kind": "dates", "dates": [4.0, 2.0]}, config)

    assert isinstance(detector, DateDetector)
    assert detector.dates == (2.0, 4.0)
    assert detector.threshold == 1.0e-9


def test_nested_combinations_and_modifiers() -> None:
    config = load_detection_config()
    entry = {
        "kind": "and",
        "detectors": [
            {"kind": "level", "level": 0.2},
            {"kind": "not", "detector": {"kind": "apex"}},
        ],
        "settings": {"max_check": 0.25},
        "slope": "decreasing",
        "enabled_between": [10.0, 0.0],
    }

    detector = build_detector(entry, config)

    assert isinstance(detector, EventEnablingPredicateFilter)
    slope = detector.raw_detector
    assert isinstance(slope, EventSlopeFilter)
    combined = slope.raw_detector
    assert isinstance(combined, BooleanDetector)
    assert isinstance(combined.detectors[1], NegateDetector)
    assert combined.settings.max_check_interval.current_interval(None) == 0.25
    assert isinstance(build_detector({"kind": "apex", "negate": True}, config), NegateDetector)


@pytest.mark.parametrize(
    "entry",
    [
        {"kind": "spiral"},
        {"kind": "dates", "dates": "tomorrow"},
        {"kind": "or", "detectors": None},
        {"kind": "level", "settings": [1, 2]},
        {"kind": "apex", "slope": "sideways"},
        {"kind": "apex", "enabled_between": [1.0]},
        "apex",
    ],
)
def test_invalid_detector_entries(entry) -> None:
    with pytest.raises(DetectionConfigurationError):
        build_detector(entry, load_detection_config())


def test_invalid_actions_are_rejected() -> None:
    payload = {"detectors": [{"kind": "apex", "action": "reset_state"}]}

    with pytest.raises(DetectionConfigurationError):
        build_scenario(payload)


def test_load_scenario_validates_documents(tmp_path: Path) -> None:
    assert load_scenario(write_scenario(tmp_path, "", name="empty.yaml")) == {}
    with pytest.raises(TypeError):
        load_scenario(write_scenario(tmp_path, "- 1\n", name="list.yaml"))
    with pytest.raises(ValueError):
        load_scenario(write_scenario(tmp_path, "model: [1\n", name="broken.yaml"))


def test_bundled_example_scenario_runs() -> None:
    payload = load_scenario(ROOT / "examples" / "oscillator.yaml")

    events = run_scenario(build_scenario(payload))

    assert len(events) == 5
