"""Per-run storage for detectors that keep tracking data while propagating.

A detector instance may be registered with several schedulers at once.
Each registration gets its own :class:`RunScope`; the event state activates
that scope around every call into the detector so that :class:`RunLocal`
slots resolve to the data of the run currently driving the detector.
"""

from __future__ import annotations

import weakref
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Generic, Iterator, Optional, TypeVar

__all__ = ["RunScope", "RunLocal", "active_run", "current_run"]

T = TypeVar("T")


class RunScope:
    """Identity of one detector registration in one propagation run."""

    __slots__ = ("__weakref__",)


_current_run: ContextVar[Optional[RunScope]] = ContextVar("gcross_current_run", default=None)


@contextmanager
def active_run(scope: RunScope) -> Iterator[RunScope]:
    """Make ``scope`` the current run until the block exits."""

    token = _current_run.set(scope)
    try:
        yield scope
    finally:
        _current_run.reset(token)


def current_run() -> Optional[RunScope]:
    return _current_run.get()


class RunLocal(Generic[T]):
    """Value slot resolved against the current run.

    Outside any run the slot falls back to a detached value, which is what a
    detector sees when it is initialised and evaluated by hand.
    """

    def __init__(self, factory: Callable[[], T]) -> None:
        self._factory = factory
        self._values: "weakref.WeakKeyDictionary[RunScope, T]" = weakref.WeakKeyDictionary()
        self._detached: T = factory()

    def get(self) -> T:
        scope = current_run()
        if scope is None:
            return self._detached
        value = self._values.get(scope)
        if value is None:
            value = self._factory()
            self._values[scope] = value
        return value

    def set(self, value: T) -> None:
        scope = current_run()
        if scope is None:
            self._detached = value
        else:
            self._values[scope] = value

    def copy(self, clone: Callable[[T], T]) -> "RunLocal[T]":
        """Independent slot seeded with a clone of every value held here."""

        duplicate: RunLocal[T] = RunLocal(self._factory)
        duplicate._detached = clone(self._detached)
        for scope, value in list(self._values.items()):
            duplicate._values[scope] = clone(value)
        return duplicate
