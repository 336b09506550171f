"""Error helpers for the gcross command line."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from gcross_core.errors import EventDetectionError

__all__ = [
    "CliError",
    "CliErrorPayload",
    "build_cli_error_payload",
    "cli_error_from_engine",
    "log_cli_error",
]


_CATEGORY_STATUS_CODES: Mapping[str, int] = {
    "runtime": 1,
    "usage": 2,
    "io": 3,
    "not_found": 4,
}

# Engine error categories mapped onto CLI categories.
_ENGINE_CATEGORIES: Mapping[str, str] = {
    "configuration": "usage",
    "handler": "runtime",
    "convergence": "runtime",
    "internal": "runtime",
}

_DEFAULT_CATEGORY = "runtime"
_LOGGER_NAME = "gcross.cli"


@dataclass(frozen=True, slots=True)
class CliErrorPayload:
    """What the CLI reports about a failure, including its exit status."""

    status_code: int
    category: str
    message: str
    context: Mapping[str, Any]

    def as_dict(self) -> Mapping[str, Any]:
        return {
            "status_code": self.status_code,
            "category": self.category,
            "message": self.message,
            "context": dict(self.context),
        }


def build_cli_error_payload(
    message: str,
    *,
    category: str = _DEFAULT_CATEGORY,
    status_code: Optional[int] = None,
    context: Optional[Mapping[str, Any]] = None,
) -> CliErrorPayload:
    category = category or _DEFAULT_CATEGORY
    if status_code is None:
        status_code = _CATEGORY_STATUS_CODES.get(
            category, _CATEGORY_STATUS_CODES[_DEFAULT_CATEGORY]
        )
    safe_context = {
        str(key): value if isinstance(value, (str, int, float, bool)) or value is None else str(value)
        for key, value in (context or {}).items()
    }
    return CliErrorPayload(
        status_code=status_code,
        category=category,
        message=message,
        context=safe_context,
    )


def log_cli_error(
    payload: CliErrorPayload,
    *,
    logger: Optional[logging.Logger] = None,
    exc_info: Optional[BaseException] = None,
) -> None:
    """Emit ``payload`` through ``logger.error`` with structured fields."""

    target = logger or logging.getLogger(_LOGGER_NAME)
    target.error(
        payload.message,
        extra={
            "event": "cli.error",
            "category": payload.category,
            "status_code": payload.status_code,
            "context": dict(payload.context),
        },
        exc_info=exc_info,
    )


class CliError(RuntimeError):
    """Failure reported to the user with an exit status."""

    __slots__ = ("category", "status_code", "context", "_payload", "logged")

    def __init__(
        self,
        message: str,
        *,
        category: str = _DEFAULT_CATEGORY,
        status_code: Optional[int] = None,
        context: Optional[Mapping[str, Any]] = None,
        logged: bool = False,
    ) -> None:
        super().__init__(message)
        payload = build_cli_error_payload(
            message, category=category, status_code=status_code, context=context
        )
        self.category = payload.category
        self.status_code = payload.status_code
        self.context = dict(payload.context)
        self._payload = payload
        self.logged = logged

    @property
    def payload(self) -> CliErrorPayload:
        return self._payload


def cli_error_from_engine(exc: EventDetectionError) -> CliError:
    """Translate an engine failure into a :class:`CliError`."""

    category = _ENGINE_CATEGORIES.get(exc.payload.category, _DEFAULT_CATEGORY)
    context = dict(exc.payload.context)
    context["engine_category"] = exc.payload.category
    return CliError(str(exc), category=category, context=context)
