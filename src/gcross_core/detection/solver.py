"""Bracketing root solver used to refine switching function crossings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator

from gcross_core.errors import (
    DetectionConfigurationError,
    NoBracketingError,
    TooManyEvaluationsError,
)

__all__ = ["Interval", "solve_interval"]


@dataclass(frozen=True, slots=True)
class Interval:
    """Converged bracket around a root.

    Either both values are zero and both abscissae coincide (exact root),
    or the values have opposite signs and the width is at most the
    requested accuracy.
    """

    left_abscissa: float
    left_value: float
    right_abscissa: float
    right_value: float

    def __iter__(self) -> Iterator[float]:
        yield self.left_abscissa
        yield self.left_value
        yield self.right_abscissa
        yield self.right_value

    @property
    def width(self) -> float:
        return self.right_abscissa - self.left_abscissa


# Iterations allowed without halving the bracket before forcing a bisection.
_STALL_LIMIT = 3


def solve_interval(
    function: Callable[[float], float],
    lower: float,
    upper: float,
    *,
    absolute_accuracy: float,
    max_evaluations: int,
) -> Interval:
    """Shrink ``[lower, upper]`` around a sign change of ``function``.

    The iteration is an Illinois regula falsi: the secant candidate is
    used as long as the bracket keeps shrinking, the weight of an endpoint
    kept twice in a row is halved, and a bisection is forced after
    ``_STALL_LIMIT`` iterations without halving the bracket. Candidates are
    kept at least half the accuracy away from the endpoints so that a root
    lying at the accuracy scale closes the bracket in one step.

    Raises :class:`NoBracketingError` when the endpoint values share a sign
    and :class:`TooManyEvaluationsError` when ``max_evaluations`` calls were
    not enough.
    """

    if not absolute_accuracy > 0.0:
        raise DetectionConfigurationError(
            "solver accuracy must be strictly positive",
            context={"absolute_accuracy": absolute_accuracy},
        )
    if lower > upper:
        raise DetectionConfigurationError(
            "solver interval bounds are reversed",
            context={"lower": lower, "upper": upper},
        )

    evaluations = 0

    def evaluate(x: float) -> float:
        nonlocal evaluations
        if evaluations >= max_evaluations:
            raise TooManyEvaluationsError(
                "root refinement exceeded its evaluation budget",
                context={
                    "max_evaluations": max_evaluations,
                    "lower": x_lo,
                    "upper": x_hi,
                },
            )
        evaluations += 1
        return function(x)

    x_lo, x_hi = lower, upper
    f_lo = evaluate(x_lo)
    if f_lo == 0.0:
        return Interval(x_lo, 0.0, x_lo, 0.0)
    f_hi = evaluate(x_hi)
    if f_hi == 0.0:
        return Interval(x_hi, 0.0, x_hi, 0.0)
    if (f_lo > 0.0) == (f_hi > 0.0):
        raise NoBracketingError(
            "function values at the interval ends do not bracket a root",
            context={"lower": x_lo, "upper": x_hi, "f_lower": f_lo, "f_upper": f_hi},
        )

    half_accuracy = 0.5 * absolute_accuracy
    w_lo, w_hi = f_lo, f_hi
    kept = 0
    stalled = 0
    reference_width = x_hi - x_lo

    while True:
        width = x_hi - x_lo
        if width <= absolute_accuracy:
            return Interval(x_lo, f_lo, x_hi, f_hi)

        if stalled >= _STALL_LIMIT:
            x = x_lo + 0.5 * width
        else:
            x = (x_lo * w_hi - x_hi * w_lo) / (w_hi - w_lo)
            x = min(max(x, x_lo + half_accuracy), x_hi - half_accuracy)
        if not x_lo < x < x_hi:
            x = x_lo + 0.5 * width
            if not x_lo < x < x_hi:
                # no representable abscissa left inside the bracket
                return Interval(x_lo, f_lo, x_hi, f_hi)

        fx = evaluate(x)
        if fx == 0.0:
            return Interval(x, 0.0, x, 0.0)

        if (fx > 0.0) == (f_lo > 0.0):
            x_lo, f_lo, w_lo = x, fx, fx
            if kept == 1:
                w_hi *= 0.5
            kept = 1
        else:
            x_hi, f_hi, w_hi = x, fx, fx
            if kept == -1:
                w_lo *= 0.5
            kept = -1

        if x_hi - x_lo <= 0.5 * reference_width:
            reference_width = x_hi - x_lo
            stalled = 0
        else:
            stalled += 1
