"""Error taxonomy shared by the event detection engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, MutableMapping, Optional

__all__ = [
    "ErrorPayload",
    "EventDetectionError",
    "DetectionConfigurationError",
    "RootFindingError",
    "NoBracketingError",
    "TooManyEvaluationsError",
    "EventStateError",
    "HandlerError",
    "build_error_payload",
]


@dataclass(frozen=True, slots=True)
class ErrorPayload:
    """Structured description of an engine failure."""

    category: str
    message: str
    context: Mapping[str, Any]

    def as_dict(self) -> Mapping[str, Any]:
        return {
            "category": self.category,
            "message": self.message,
            "context": dict(self.context),
        }


def _normalise_context(context: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    if not context:
        return {}
    payload: MutableMapping[str, Any] = {}
    for key, value in context.items():
        if isinstance(value, (str, int, float, bool)) or value is None:
            payload[str(key)] = value
        else:
            payload[str(key)] = repr(value)
    return dict(payload)


def build_error_payload(
    message: str,
    *,
    category: str,
    context: Optional[Mapping[str, Any]] = None,
) -> ErrorPayload:
    """Create an :class:`ErrorPayload` with a JSON friendly context."""

    return ErrorPayload(
        category=category,
        message=message,
        context=_normalise_context(context),
    )


class EventDetectionError(RuntimeError):
    """Base class for every failure raised by :mod:`gcross_core`."""

    category = "runtime"

    def __init__(
        self,
        message: str,
        *,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self._payload = build_error_payload(
            message, category=self.category, context=context
        )

    @property
    def payload(self) -> ErrorPayload:
        return self._payload

    @property
    def context(self) -> Mapping[str, Any]:
        return self._payload.context


class DetectionConfigurationError(EventDetectionError, ValueError):
    """Invalid detector, settings or combinator configuration."""

    category = "configuration"


class RootFindingError(EventDetectionError):
    """The bracketing solver could not isolate a root."""

    category = "convergence"


class NoBracketingError(RootFindingError):
    """The solver endpoints do not enclose a sign change."""


class TooManyEvaluationsError(RootFindingError):
    """The evaluation budget was exhausted before the bracket converged."""


class EventStateError(EventDetectionError):
    """An internal consistency check of the root tracker failed."""

    category = "internal"


class HandlerError(EventDetectionError):
    """An event handler broke its contract."""

    category = "handler"
