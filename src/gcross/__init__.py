"""gcross: event detection along propagated trajectories."""

from __future__ import annotations

from gcross._version import __version__
from gcross.configuration import load_project_config, resolve_project_config
from gcross.scenario import (
    HarmonicModel,
    OscillatorState,
    Scenario,
    ScenarioEvent,
    build_scenario,
    load_scenario,
    run_scenario,
)

__all__ = [
    "__version__",
    "HarmonicModel",
    "OscillatorState",
    "Scenario",
    "ScenarioEvent",
    "build_scenario",
    "load_project_config",
    "load_scenario",
    "resolve_project_config",
    "run_scenario",
]
