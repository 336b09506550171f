"""Immutable detection settings and adaptive check interval policies."""

from __future__ import annotations

import math
from collections.abc import Mapping as ABCMapping
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Mapping, Protocol, Union, runtime_checkable

from gcross_core.errors import DetectionConfigurationError

__all__ = [
    "DEFAULT_MAX_CHECK",
    "DEFAULT_THRESHOLD",
    "DEFAULT_MAX_ITER",
    "AdaptableInterval",
    "ConstantInterval",
    "CallableInterval",
    "MinimumInterval",
    "DetectionSettings",
    "as_adaptable_interval",
    "checked_interval",
]


DEFAULT_MAX_CHECK = 600.0
DEFAULT_THRESHOLD = 1.0e-6
DEFAULT_MAX_ITER = 100


@runtime_checkable
class AdaptableInterval(Protocol):
    """Policy returning the largest sampling interval allowed at a state."""

    def current_interval(self, state: Any) -> float: ...


@dataclass(frozen=True, slots=True)
class ConstantInterval:
    """Check interval that ignores the state."""

    value: float

    def __post_init__(self) -> None:
        value = float(self.value)
        if not value > 0.0:
            raise DetectionConfigurationError(
                "max check interval must be strictly positive",
                context={"max_check": value},
            )
        object.__setattr__(self, "value", value)

    def current_interval(self, state: Any) -> float:
        return self.value


@dataclass(frozen=True, slots=True)
class CallableInterval:
    """Check interval computed by a plain ``state -> float`` callable."""

    function: Callable[[Any], float]

    def current_interval(self, state: Any) -> float:
        return float(self.function(state))


@dataclass(frozen=True, slots=True)
class MinimumInterval:
    """Smallest interval among several policies, evaluated at the same state."""

    intervals: tuple[AdaptableInterval, ...]

    def __post_init__(self) -> None:
        if not self.intervals:
            raise DetectionConfigurationError("at least one interval is required")

    def current_interval(self, state: Any) -> float:
        return min(interval.current_interval(state) for interval in self.intervals)

    @classmethod
    def of(cls, intervals: Iterable[AdaptableInterval]) -> "MinimumInterval":
        return cls(tuple(intervals))


IntervalLike = Union[float, int, AdaptableInterval, Callable[[Any], float]]


def as_adaptable_interval(value: IntervalLike) -> AdaptableInterval:
    """Coerce numbers and callables into an :class:`AdaptableInterval`."""

    if isinstance(value, bool):
        raise DetectionConfigurationError(
            "max check interval must be a number, a callable or an interval policy",
            context={"max_check": value},
        )
    if isinstance(value, (int, float)):
        return ConstantInterval(float(value))
    if isinstance(value, AdaptableInterval):
        return value
    if callable(value):
        return CallableInterval(value)
    raise DetectionConfigurationError(
        "max check interval must be a number, a callable or an interval policy",
        context={"max_check": value},
    )


def checked_interval(interval: AdaptableInterval, state: Any) -> float:
    """Evaluate ``interval`` at ``state`` and reject non-positive results."""

    value = float(interval.current_interval(state))
    if not value > 0.0:
        raise DetectionConfigurationError(
            "max check interval must be strictly positive",
            context={"max_check": value, "time": getattr(state, "time", None)},
        )
    return value


@dataclass(frozen=True, slots=True)
class DetectionSettings:
    """Sampling and convergence parameters of one detector.

    ``max_check_interval`` bounds the time between two samples of the
    switching function. Two roots closer than this interval may be missed,
    the engine cannot detect that situation. ``threshold`` is the width of
    the converged bracket around each root and ``max_iteration_count`` the
    evaluation budget allowed to reach it.
    """

    max_check_interval: AdaptableInterval = ConstantInterval(DEFAULT_MAX_CHECK)
    threshold: float = DEFAULT_THRESHOLD
    max_iteration_count: int = DEFAULT_MAX_ITER

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "max_check_interval", as_adaptable_interval(self.max_check_interval)
        )
        try:
            threshold = float(self.threshold)
        except (TypeError, ValueError) as exc:
            raise DetectionConfigurationError(
                "threshold must be a number", context={"threshold": self.threshold}
            ) from exc
        if not (threshold > 0.0 and math.isfinite(threshold)):
            raise DetectionConfigurationError(
                "threshold must be strictly positive and finite",
                context={"threshold": threshold},
            )
        object.__setattr__(self, "threshold", threshold)
        count = self.max_iteration_count
        if (
            isinstance(count, bool)
            or not isinstance(count, (int, float))
            or int(count) != count
            or int(count) < 1
        ):
            raise DetectionConfigurationError(
                "max iteration count must be a positive integer",
                context={"max_iteration_count": count},
            )
        object.__setattr__(self, "max_iteration_count", int(count))

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any] | None = None,
        *,
        base: "DetectionSettings | None" = None,
    ) -> "DetectionSettings":
        """Build settings from a ``max_check``/``threshold``/``max_iterations`` mapping.

        Keys missing from ``config`` keep the values of ``base`` (or the
        library defaults).
        """

        reference = base or cls()
        if not isinstance(config, ABCMapping):
            return reference

        max_check: IntervalLike = reference.max_check_interval
        if config.get("max_check") is not None:
            max_check = _coerce_float(config["max_check"], "max_check")
        threshold = reference.threshold
        if config.get("threshold") is not None:
            threshold = _coerce_float(config["threshold"], "threshold")
        max_iterations = reference.max_iteration_count
        for key in ("max_iterations", "max_iteration_count"):
            if config.get(key) is not None:
                max_iterations = _coerce_int(config[key], key)
                break
        return cls(
            max_check_interval=max_check,
            threshold=threshold,
            max_iteration_count=max_iterations,
        )

    def with_max_check(self, max_check: IntervalLike) -> "DetectionSettings":
        return replace(self, max_check_interval=as_adaptable_interval(max_check))

    def with_threshold(self, threshold: float) -> "DetectionSettings":
        return replace(self, threshold=threshold)

    def with_max_iteration_count(self, count: int) -> "DetectionSettings":
        return replace(self, max_iteration_count=count)


def _coerce_float(value: Any, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise DetectionConfigurationError(
            f"'{key}' must be a number", context={key: value}
        ) from exc


def _coerce_int(value: Any, key: str) -> int:
    try:
        numeric = float(value)
    except (TypeError, ValueError) as exc:
        raise DetectionConfigurationError(
            f"'{key}' must be an integer", context={key: value}
        ) from exc
    if not numeric.is_integer():
        raise DetectionConfigurationError(
            f"'{key}' must be an integer", context={key: value}
        )
    return int(numeric)
