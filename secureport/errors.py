"""
errors.py — error taxonomy shared by the store, policy, HTTP and shell layers.

Every failure raised inside secureport is an AppError subclass tagged with an
ErrorKind. The HTTP layer maps the kind to a status code; the application
shell turns it into an Err result plus a notification.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Generic, Optional, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    validation = "VALIDATION_ERROR"
    transport = "TRANSPORT_ERROR"
    authentication = "UNAUTHORIZED"
    authorization = "FORBIDDEN"
    not_found = "NOT_FOUND"
    conflict = "CONFLICT"


class AppError(Exception):
    """Base class. `message` is safe to show to the signed-in user."""

    kind: ErrorKind = ErrorKind.transport

    def __init__(self, message: str, details: Optional[list[dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class ValidationError(AppError):
    """Malformed input, detected before any network call."""

    kind = ErrorKind.validation

    @classmethod
    def from_violations(cls, violations: list[dict[str, Any]], message: str = "Validation failed") -> "ValidationError":
        if len(violations) == 1:
            message = violations[0]["issue"]
        return cls(message, details=violations)


class TransportError(AppError):
    """Backend / storage failure; message carries the backend's own error text."""

    kind = ErrorKind.transport


class AuthenticationError(AppError):
    """Missing, expired or wrong credentials."""

    kind = ErrorKind.authentication


class AuthorizationError(AppError):
    kind = ErrorKind.authorization


class NotFoundError(AppError):
    kind = ErrorKind.not_found


class ConflictError(AppError):
    kind = ErrorKind.conflict


# ---------------------------------------------------------------------------
# Typed result returned by application shell commands
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str
    ok: bool = field(default=False, init=False)


Result = Union[Ok[T], Err]


async def capture(awaitable: Awaitable[T]) -> Result[T]:
    """Await and fold any AppError into an Err; other exceptions propagate."""
    try:
        return Ok(await awaitable)
    except AppError as exc:
        return Err(exc.kind, exc.message)


def unwrap_envelope(envelope: dict[str, Any], action: str) -> dict[str, Any]:
    """
    Convert a privileged-procedure `{success, error}` envelope into either the
    envelope itself or an AuthorizationError carrying the backend message.
    """
    if not envelope.get("success"):
        raise AuthorizationError(envelope.get("error") or f"Failed to {action}")
    return envelope
