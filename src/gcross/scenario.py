"""Scenario files: a harmonic trajectory and a tree of detectors."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping as ABCMapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Sequence

import yaml

from gcross_core.config.loader import load_detection_config, resolve_detection_settings
from gcross_core.detection import (
    Action,
    BooleanDetector,
    BooleanOperator,
    ContinueOnEvent,
    DateDetector,
    DetectionSettings,
    EventDetector,
    EventEnablingPredicateFilter,
    EventsLogger,
    EventSlopeFilter,
    FilterType,
    FunctionalDetector,
    NegateDetector,
    StopOnEvent,
)
from gcross_core.errors import DetectionConfigurationError
from gcross_core.propagation import AnalyticalPropagator

__all__ = [
    "OscillatorState",
    "HarmonicModel",
    "Scenario",
    "ScenarioEvent",
    "build_detector",
    "build_scenario",
    "load_scenario",
    "run_scenario",
]


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OscillatorState:
    time: float
    position: float
    velocity: float


@dataclass(frozen=True, slots=True)
class HarmonicModel:
    """Undamped oscillator ``x'' = -w**2 x`` propagated in closed form."""

    angular_frequency: float

    def __post_init__(self) -> None:
        if not float(self.angular_frequency) > 0.0:
            raise DetectionConfigurationError(
                "angular frequency must be strictly positive",
                context={"angular_frequency": self.angular_frequency},
            )

    def initial_state(self, time: float, amplitude: float, phase: float) -> OscillatorState:
        w = self.angular_frequency
        return OscillatorState(
            time=float(time),
            position=amplitude * math.sin(phase),
            velocity=amplitude * w * math.cos(phase),
        )

    def __call__(self, reference: OscillatorState, time: float) -> OscillatorState:
        w = self.angular_frequency
        dt = time - reference.time
        c, s = math.cos(w * dt), math.sin(w * dt)
        return OscillatorState(
            time=time,
            position=reference.position * c + reference.velocity / w * s,
            velocity=-reference.position * w * s + reference.velocity * c,
        )


@dataclass(frozen=True, slots=True)
class ScenarioEvent:
    name: str
    time: float
    increasing: bool
    position: float
    velocity: float

    def as_dict(self) -> dict[str, Any]:
        return {
            "detector": self.name,
            "time": self.time,
            "direction": "increasing" if self.increasing else "decreasing",
            "position": self.position,
            "velocity": self.velocity,
        }


@dataclass(slots=True)
class Scenario:
    propagator: AnalyticalPropagator
    detectors: tuple[tuple[str, EventDetector], ...]
    events_logger: EventsLogger
    start: float
    target: float


_LEAF_KINDS = ("dates", "level", "apex")
_COMPOSITE_KINDS = ("and", "or", "not")


def _settings_for(
    entry: Mapping[str, Any], family: str, detection_config: Mapping[str, Any]
) -> DetectionSettings:
    overrides = entry.get("settings")
    if overrides is not None and not isinstance(overrides, ABCMapping):
        raise DetectionConfigurationError(
            "detector 'settings' must be a mapping", context={"settings": overrides}
        )
    return resolve_detection_settings(detection_config, family=family, overrides=overrides)


def build_detector(
    entry: Mapping[str, Any], detection_config: Mapping[str, Any]
) -> EventDetector:
    """Build one detector, including nested combinations and filters."""

    return _apply_filters(_build_core(entry, detection_config), entry)


def _build_core(entry: Mapping[str, Any], detection_config: Mapping[str, Any]) -> EventDetector:
    if not isinstance(entry, ABCMapping):
        raise DetectionConfigurationError(
            "detector entries must be mappings", context={"entry": entry}
        )
    kind = str(entry.get("kind", "")).strip().lower()

    detector: EventDetector
    if kind == "dates":
        dates = entry.get("dates")
        if not isinstance(dates, Sequence) or isinstance(dates, str):
            raise DetectionConfigurationError(
                "'dates' detectors need a list of dates", context={"dates": dates}
            )
        detector = DateDetector(
            *(float(value) for value in dates),
            min_gap=float(entry.get("min_gap", 1.0)),
            settings=_settings_for(entry, "date", detection_config),
        )
    elif kind == "level":
        level = float(entry.get("level", 0.0))
        detector = FunctionalDetector(
            lambda state, level=level: state.position - level,
            settings=_settings_for(entry, "level", detection_config),
        )
    elif kind == "apex":
        detector = FunctionalDetector(
            lambda state: state.velocity,
            settings=_settings_for(entry, "apex", detection_config),
        )
    elif kind in ("and", "or"):
        children = entry.get("detectors")
        if not isinstance(children, Sequence) or isinstance(children, str):
            raise DetectionConfigurationError(
                f"'{kind}' detectors need a 'detectors' list", context={"detectors": children}
            )
        members = [build_detector(child, detection_config) for child in children]
        detector = BooleanDetector(members, BooleanOperator(kind))
        if entry.get("settings") is not None:
            detector = detector.with_settings(
                DetectionSettings.from_config(entry["settings"], base=detector.settings)
            )
    elif kind == "not":
        detector = NegateDetector(build_detector(entry.get("detector", {}), detection_config))
    else:
        raise DetectionConfigurationError(
            f"Unknown detector kind '{kind}'",
            context={"kind": kind, "supported": ", ".join(_LEAF_KINDS + _COMPOSITE_KINDS)},
        )

    if entry.get("negate"):
        detector = NegateDetector(detector)
    return detector


def _apply_filters(detector: EventDetector, entry: Mapping[str, Any]) -> EventDetector:
    if entry.get("slope") is not None:
        try:
            filter_type = FilterType.parse(entry["slope"])
        except ValueError as exc:
            raise DetectionConfigurationError(str(exc), context={"slope": entry["slope"]}) from exc
        detector = EventSlopeFilter(detector, filter_type)
    window = entry.get("enabled_between")
    if window is not None:
        if not isinstance(window, Sequence) or len(window) != 2:
            raise DetectionConfigurationError(
                "'enabled_between' must be a [start, end] pair", context={"window": window}
            )
        lower, upper = sorted(float(value) for value in window)
        detector = EventEnablingPredicateFilter(
            detector,
            lambda state, raw, g, lower=lower, upper=upper: lower <= state.time <= upper,
        )
    return detector


def _handler_for(entry: Mapping[str, Any]) -> ContinueOnEvent | StopOnEvent:
    raw_action = entry.get("action", "continue")
    try:
        action = Action.parse(raw_action)
    except ValueError as exc:
        raise DetectionConfigurationError(str(exc), context={"action": raw_action}) from exc
    if action is Action.STOP:
        return StopOnEvent()
    if action is Action.CONTINUE:
        return ContinueOnEvent()
    raise DetectionConfigurationError(
        "scenario detectors only support the 'continue' and 'stop' actions",
        context={"action": raw_action},
    )


def build_scenario(
    payload: Mapping[str, Any],
    *,
    detection_config: Mapping[str, Any] | None = None,
    target: float | None = None,
) -> Scenario:
    """Assemble the propagator, the monitored detectors and the events logger."""

    if detection_config is None:
        detection_config = load_detection_config()

    model_cfg = payload.get("model", {})
    propagation_cfg = payload.get("propagation", {})
    if not isinstance(model_cfg, ABCMapping) or not isinstance(propagation_cfg, ABCMapping):
        raise DetectionConfigurationError("'model' and 'propagation' must be mappings")

    model = HarmonicModel(float(model_cfg.get("angular_frequency", 1.0)))
    start = float(propagation_cfg.get("start", 0.0))
    end = float(target if target is not None else propagation_cfg.get("target", start))
    initial = model.initial_state(
        start,
        float(model_cfg.get("amplitude", 1.0)),
        float(model_cfg.get("phase", 0.0)),
    )
    step = propagation_cfg.get("step")
    propagator = AnalyticalPropagator(
        initial, model, step_size=float(step) if step is not None else None
    )

    events_logger = EventsLogger()
    detectors: list[tuple[str, EventDetector]] = []
    entries = payload.get("detectors", [])
    if not isinstance(entries, Sequence) or isinstance(entries, str):
        raise DetectionConfigurationError("'detectors' must be a list")
    for index, entry in enumerate(entries):
        # Filters wrap the monitored detector so logged directions stay unfiltered.
        detector = _build_core(entry, detection_config).with_handler(_handler_for(entry))
        name = str(entry.get("name") or f"detector_{index}")
        detectors.append((name, detector))
        monitored = events_logger.monitor_detector(detector)
        propagator.add_event_detector(_apply_filters(monitored, entry))

    return Scenario(
        propagator=propagator,
        detectors=tuple(detectors),
        events_logger=events_logger,
        start=start,
        target=end,
    )


def run_scenario(scenario: Scenario) -> list[ScenarioEvent]:
    """Propagate the scenario and return its events in delivery order."""

    names = {id(detector): name for name, detector in scenario.detectors}
    final_state = scenario.propagator.propagate(scenario.start, scenario.target)
    events = [
        ScenarioEvent(
            name=names.get(id(logged.detector), type(logged.detector).__name__),
            time=logged.state.time,
            increasing=logged.increasing,
            position=logged.state.position,
            velocity=logged.state.velocity,
        )
        for logged in scenario.events_logger.get_logged_events()
    ]
    logger.info(
        "Scenario propagated",
        extra={
            "event": "scenario.finished",
            "final_time": final_state.time,
            "events": len(events),
        },
    )
    return events


def load_scenario(path: Path) -> Mapping[str, Any]:
    with Path(path).open("r", encoding="utf-8") as handle:
        try:
            payload = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in scenario: {path}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, ABCMapping):
        raise TypeError(f"Scenario {path} must decode to a mapping")
    return payload
