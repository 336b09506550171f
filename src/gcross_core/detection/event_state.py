"""Run-scoped root tracking for a single detector."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

from gcross_core.detection.detectors import EventDetector
from gcross_core.detection.handlers import Action
from gcross_core.detection.runs import RunScope, active_run
from gcross_core.detection.settings import checked_interval
from gcross_core.detection.solver import solve_interval
from gcross_core.errors import (
    EventDetectionError,
    EventStateError,
    HandlerError,
    RootFindingError,
)
from gcross_core.runtime.shared import SupportsStepInterpolator

__all__ = ["EventOccurrence", "EventState"]


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EventOccurrence:
    """Outcome of a handled event.

    ``new_state`` is the replacement state for ``RESET_STATE`` and the event
    state otherwise. ``stop_time`` lies on the far side of the root, at most
    one threshold away, so that a run stopped there and restarted does not
    see the same crossing twice.
    """

    action: Action
    new_state: Any
    stop_time: float


class EventState:
    """Sign history, pending root and re-arming logic of one detector.

    The tracker remembers the last time the switching function was known
    to have a definite sign (``t0``, ``g0``). Each step is sampled from
    there with the detector's adaptive check interval. A sign change
    brackets a root that is refined with :func:`solve_interval` down to
    the detector threshold, the two sides of the root becoming the pending
    event time and the point where tracking resumes once the event is
    handled.
    """

    def __init__(self, detector: EventDetector) -> None:
        self._detector = detector
        self._run = RunScope()
        self._last_t = -math.inf
        self._last_g = math.nan
        self._t0: float | None = None
        self._g0 = math.nan
        self._g0_positive = True
        self._pending_event = False
        self._pending_event_time: float | None = None
        self._stop_time: float | None = None
        self._after_event: float | None = None
        self._after_g = math.nan
        self._earliest_time_considered: float | None = None
        self._forward = True
        self._increasing = True

    @property
    def detector(self) -> EventDetector:
        return self._detector

    @property
    def event_time(self) -> float:
        """Pending event time, or infinity in the propagation direction."""

        if self._pending_event and self._pending_event_time is not None:
            return self._pending_event_time
        return math.inf if self._forward else -math.inf

    @property
    def is_pending(self) -> bool:
        return self._pending_event

    @property
    def is_forward(self) -> bool:
        return self._forward

    def init(self, initial_state: Any, target_time: float) -> None:
        with active_run(self._run):
            self._detector.init(initial_state, target_time)
        self._last_t = -math.inf
        self._last_g = math.nan
        self._pending_event = False
        self._pending_event_time = None
        self._earliest_time_considered = None
        self._forward = target_time >= initial_state.time

    def finish(self, final_state: Any) -> None:
        with active_run(self._run):
            self._detector.finish(final_state)

    def reinitialize_begin(self, interpolator: SupportsStepInterpolator) -> None:
        """Arm the tracker at the start of ``interpolator``.

        Cached values are dropped since the state may have been replaced.
        When a previous event already moved tracking past the step start,
        tracking resumes from that later point.
        """

        self._forward = interpolator.is_forward
        self._last_t = -math.inf
        self._last_g = math.nan
        self._pending_event = False
        self._pending_event_time = None

        start = interpolator.previous_state
        t0 = start.time
        earliest = self._earliest_time_considered
        if earliest is not None and self._strictly_after(t0, earliest):
            t0 = earliest
            start = interpolator.interpolated_state(t0)
        self._t0 = t0
        self._g0 = self._g(start)
        while self._g0 == 0.0:
            # sitting on a root, move slightly away from it
            shift = 0.5 * self._detector.threshold
            moved = self._t0 + (shift if self._forward else -shift)
            if moved == self._t0:
                moved = self._next_after(moved)
            self._t0 = moved
            self._g0 = self._g(interpolator.interpolated_state(self._t0))
        self._g0_positive = self._g0 > 0.0
        self._increasing = self._g0_positive

    def evaluate_step(self, interpolator: SupportsStepInterpolator) -> bool:
        """Look for the first root in the step covered by ``interpolator``."""

        self._forward = interpolator.is_forward
        end = interpolator.current_state
        if self._t0 is None:
            raise EventStateError(
                "event state used before reinitialize_begin",
                context={"detector": self._detector},
            )
        if abs(end.time - self._t0) < self._detector.threshold:
            # step too short, nothing can be resolved inside it
            self._clear_pending()
            return False

        ta, ga = self._t0, self._g0
        done = interpolator.interpolated_state(ta)
        while True:
            sample = self._next_check(done, end, interpolator)
            if sample is None:
                break
            tb = sample.time
            gb = self._g(sample)
            if gb == 0.0 or self._g0_positive != (gb > 0.0):
                if self._find_root(interpolator, ta, ga, tb, gb):
                    return True
            else:
                ta, ga = tb, gb
            done = sample

        self._clear_pending()
        return False

    def try_advance(self, state: Any, interpolator: SupportsStepInterpolator) -> bool:
        """Move tracking to ``state`` unless a root of this detector comes first.

        Returns ``True`` when a new pending event earlier than ``state`` was
        found, which means the caller must handle it before ``state``.
        """

        t = state.time
        self._check(
            not self._pending_event or not self._strictly_after(self._pending_event_time, t),
            "pending event lies before the advance time",
        )
        if self._strictly_after(t, self._earliest_time_considered):
            me_first = False
        else:
            g = self._g(state)
            if (g > 0.0) == self._g0_positive:
                self._g0 = g
                me_first = False
            else:
                previous_pending = self._pending_event_time
                found = self._find_root(interpolator, self._t0, self._g0, t, g)
                me_first = found and self._pending_event_time != previous_pending
        if not me_first:
            self._t0 = t
        return me_first

    def do_event(self, state: Any) -> EventOccurrence:
        """Invoke the handler for the pending event at ``state``."""

        self._check(self._pending_event, "no pending event to handle")
        self._check(
            state.time == self._pending_event_time,
            "event state does not match the pending event time",
        )
        handler = self._detector.handler
        increasing = self._increasing == self._forward
        with active_run(self._run):
            action = handler.event_occurred(state, self._detector, increasing)
        if not isinstance(action, Action):
            raise HandlerError(
                "event handler must return an Action",
                context={"handler": type(handler).__name__, "returned": action},
            )
        if action is Action.RESET_STATE:
            with active_run(self._run):
                new_state = handler.reset_state(self._detector, state)
            if new_state is None or new_state.time != state.time:
                raise HandlerError(
                    "reset state must be supplied at the event time",
                    context={
                        "event_time": state.time,
                        "reset_time": getattr(new_state, "time", None),
                    },
                )
        else:
            new_state = state

        logger.debug(
            "Event handled",
            extra={
                "event": "detection.event",
                "detector": type(self._detector).__name__,
                "time": state.time,
                "increasing": increasing,
                "action": action.value,
            },
        )

        self._clear_pending()
        self._earliest_time_considered = self._after_event
        self._t0 = self._after_event
        self._g0 = self._after_g
        self._g0_positive = self._increasing
        self._check(
            self._g0 == 0.0 or self._g0_positive == (self._g0 > 0.0),
            "sign after the event is inconsistent",
        )
        return EventOccurrence(action, new_state, self._stop_time)

    def _find_root(
        self,
        interpolator: SupportsStepInterpolator,
        ta: float,
        ga: float,
        tb: float,
        gb: float,
    ) -> bool:
        self._check(
            ga == 0.0 or gb == 0.0 or (ga > 0.0 and gb < 0.0) or (ga < 0.0 and gb > 0.0),
            "bracket ends do not enclose a sign change",
        )
        convergence = self._detector.threshold
        max_iterations = self._detector.max_iteration_count

        loop_t, loop_g = ta, ga
        before_t: float | None = None
        before_g = math.nan
        after_t, after_g = ta, 0.0

        if ta == tb:
            before_t, before_g = ta, ga
            after_t = self._shifted_by(before_t, convergence)
            after_g = self._g(interpolator.interpolated_state(after_t))
        elif ga != 0.0 and gb == 0.0:
            # root sits exactly on the sample, look just past it
            before_t, before_g = tb, gb
            after_t = self._shifted_by(before_t, convergence)
            after_g = self._g(interpolator.interpolated_state(after_t))
        elif ga != 0.0:
            fresh_ga = self._g(interpolator.interpolated_state(ta))
            if (ga > 0.0) != (fresh_ga > 0.0):
                # g changed under our feet, typically after a reset
                next_t = self._min_time(self._shifted_by(ta, convergence), tb)
                next_g = self._g(interpolator.interpolated_state(next_t))
                if (next_g > 0.0) == self._g0_positive:
                    loop_t, loop_g = next_t, next_g
                else:
                    before_t, before_g = ta, fresh_ga
                    after_t, after_g = next_t, next_g

        while (after_g == 0.0 or (after_g > 0.0) == self._g0_positive) and self._strictly_after(
            after_t, tb
        ):
            if loop_g == 0.0:
                before_t, before_g = loop_t, loop_g
                after_t = self._min_time(self._shifted_by(before_t, convergence), tb)
                after_g = self._g(interpolator.interpolated_state(after_t))
            else:
                before_t, before_g, after_t, after_g = self._solve(
                    interpolator, loop_t, tb, convergence, max_iterations
                )
            if before_t == after_t:
                after_t = self._next_after(after_t)
                after_g = self._g(interpolator.interpolated_state(after_t))
            self._check(
                (self._forward and after_t > before_t)
                or (not self._forward and after_t < before_t),
                "root refinement made no progress",
            )
            loop_t, loop_g = after_t, after_g

        if after_g == 0.0 or (after_g > 0.0) == self._g0_positive:
            # tangential contact or a root beyond the step end
            return False

        self._check(
            before_t is not None and not math.isnan(float(before_g)), "missing root bracket"
        )
        self._increasing = not self._g0_positive
        self._pending_event_time = before_t
        self._stop_time = before_t if before_g == 0.0 else after_t
        self._pending_event = True
        self._after_event = after_t
        self._after_g = after_g
        self._check((after_g > 0.0) == self._increasing, "crossing direction is inconsistent")
        return True

    def _solve(
        self,
        interpolator: SupportsStepInterpolator,
        loop_t: float,
        tb: float,
        convergence: float,
        max_iterations: int,
    ) -> tuple[float, float, float, float]:
        # Solve in offsets from the bracket ends to keep resolution near both.
        span = tb - loop_t
        middle = 0.5 * span
        forward = self._forward

        def time_at(offset: float) -> float:
            if forward == (offset <= middle):
                return loop_t + offset
            return tb + (offset - span)

        def g_at(offset: float) -> float:
            return self._g(interpolator.interpolated_state(time_at(offset)))

        try:
            if forward:
                interval = solve_interval(
                    g_at,
                    0.0,
                    span,
                    absolute_accuracy=convergence,
                    max_evaluations=max_iterations,
                )
                return (
                    time_at(interval.left_abscissa),
                    interval.left_value,
                    time_at(interval.right_abscissa),
                    interval.right_value,
                )
            interval = solve_interval(
                g_at,
                span,
                0.0,
                absolute_accuracy=convergence,
                max_evaluations=max_iterations,
            )
            return (
                time_at(interval.right_abscissa),
                interval.right_value,
                time_at(interval.left_abscissa),
                interval.left_value,
            )
        except RootFindingError as exc:
            context = dict(exc.context)
            context.update({"detector": self._detector, "start": loop_t, "end": tb})
            raise type(exc)(str(exc), context=context) from exc

    def _g(self, state: Any) -> float:
        time = state.time
        if time != self._last_t:
            with active_run(self._run):
                value = self._detector.g(state)
            if math.isnan(float(value)):
                raise EventDetectionError(
                    "switching function returned NaN",
                    context={"detector": self._detector, "time": time},
                )
            self._last_t = time
            self._last_g = value
        return self._last_g

    def _next_check(
        self, done: Any, target: Any, interpolator: SupportsStepInterpolator
    ) -> Any:
        if done is target or done.time == target.time:
            return None
        dt = target.time - done.time
        max_check = checked_interval(self._detector.max_check_interval, done)
        n = max(1, math.ceil(float(abs(dt)) / max_check))
        if n == 1:
            return target
        next_time = done.time + dt / n
        if next_time == done.time:
            return target
        return interpolator.interpolated_state(next_time)

    def _clear_pending(self) -> None:
        self._pending_event = False
        self._pending_event_time = None

    def _shifted_by(self, t: float, delta: float) -> float:
        # Round toward the propagation side so the shift is never shorter than delta.
        if self._forward:
            shifted = t + delta
            if shifted - t > delta:
                shifted = _nudged(shifted, -math.inf)
            return shifted
        shifted = t - delta
        if t - shifted > delta:
            shifted = math.nextafter(shifted, math.inf)
        return shifted

    def _next_after(self, t: float) -> float:
        return _nudged(t, math.inf if self._forward else -math.inf)

    def _min_time(self, a: float, b: float) -> float:
        return a if self._forward != (a > b) else b

    def _strictly_after(self, t1: float | None, t2: float | None) -> bool:
        """Whether ``t1`` comes strictly before ``t2`` in the propagation direction."""

        if t1 is None or t2 is None:
            return False
        return t1 < t2 if self._forward else t2 < t1

    def _check(self, condition: bool, message: str) -> None:
        if not condition:
            raise EventStateError(
                message,
                context={
                    "detector": self._detector,
                    "t0": self._t0,
                    "pending_time": self._pending_event_time,
                },
            )


def _nudged(t: Any, toward: float) -> Any:
    """``t`` moved by one unit in the last place of its real part."""

    value = float(t)
    return t + (math.nextafter(value, toward) - value)
