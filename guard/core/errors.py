"""Domain errors raised by the protection layer.

Each error class carries the HTTP status it is rendered with, so the
exception handlers need no type switch. Rate limit denials are not errors:
the gate reports them as decisions and the middleware answers with a 429.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Optional context attached to an error response."""

    hint: str
    field: str
    allowed: list[str]
    limit_class: str
    http_status: int
    url: str
    context: dict[str, Any]


@dataclass
class AppError(Exception):
    """Base class for expected failures with a stable error code.

    Attributes:
        code: Machine-readable identifier, e.g. ``unknown_limit_class``.
        message: Text shown to the caller.
        details: Extra structured context, omitted from responses when empty.
    """

    http_status: ClassVar[int] = 400

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)


class ValidationAppError(AppError):
    """A request parameter is outside the accepted set."""


class AuthenticationAppError(AppError):
    """API key rejected or key authentication misconfigured."""

    http_status: ClassVar[int] = 403


class ConfigurationAppError(AppError):
    """Policy tables or limit classes are miswired."""

    http_status: ClassVar[int] = 500


class UpstreamAppError(AppError):
    """An upstream fetch answered with an error status."""

    http_status: ClassVar[int] = 502
