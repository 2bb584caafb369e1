"""
Domain exceptions for Apex.

Two families reach the user: validation failures (raised synchronously with
per-field messages, shown next to the form inputs) and remote-operation
failures from the backend or device plugins (shown as toasts).
"""

from __future__ import annotations

import re
from typing import Any


class ApexError(RuntimeError):
    """Base exception for all Apex failures."""


class NotAuthenticatedError(ApexError):
    """Raised when an operation needs a signed-in rider and there is none."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class PermissionDeniedError(ApexError):
    """Raised when a row exists but does not belong to the current rider."""


class NotFoundError(ApexError):
    """Raised when a requested row does not exist."""


class BikeInUseError(ApexError):
    """Raised when deleting a bike that still has rides attached."""


class ExportError(ApexError):
    """Raised when a ride cannot be exported or shared."""


class BackendError(ApexError):
    """
    Remote operation failure.

    Attributes:
        code: Backend error code (PostgREST / Postgres SQLSTATE) if known
        details: Extra detail string from the backend
        hint: Backend hint string
        status: HTTP status, when the failure came over HTTP
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: str | None = None,
        hint: str | None = None,
        status: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.hint = hint
        self.status = status

    @classmethod
    def from_payload(cls, payload: Any, status: int | None = None) -> "BackendError":
        """Build from a PostgREST/GoTrue error body."""
        if not isinstance(payload, dict):
            return cls(str(payload) or "Backend request failed", status=status)
        message = (
            payload.get("message")
            or payload.get("msg")
            or payload.get("error_description")
            or payload.get("error")
            or "Backend request failed"
        )
        return cls(
            str(message),
            code=payload.get("code"),
            details=payload.get("details"),
            hint=payload.get("hint"),
            status=status,
        )

    def full_message(self) -> str:
        """Message with details and hint appended, for logs and debug toasts."""
        text = self.message
        if self.details:
            text += f": {self.details}"
        if self.hint:
            text += f" ({self.hint})"
        return text


class ValidationError(ApexError):
    """
    Form validation failure.

    Attributes:
        field_errors: Mapping of field name to a user-facing message
    """

    def __init__(self, field_errors: dict[str, str], message: str = "Please fix the errors below"):
        super().__init__(message)
        self.field_errors = dict(field_errors)


# Ordered: first match wins.
_FRIENDLY_MESSAGES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"permission|denied"), "Permission denied. Please check your account settings."),
    (re.compile(r"network|fetch|connection"), "Network error. Please check your connection and try again."),
    (re.compile(r"timeout|timed out"), "Request timed out. Please try again."),
    (re.compile(r"authenticated|auth"), "Session expired. Please sign in again."),
    (re.compile(r"function\b.*\b(does not exist|not found)|could not find the function"), "Database function missing. Please contact support."),
    (re.compile(r"violates|constraint"), "Invalid data. Please check your information."),
]


_FUNCTION_MISSING_CODES = {"PGRST202", "42883"}


def is_function_missing(error: BaseException) -> bool:
    """True when a backend RPC failed because the function is not deployed."""
    if isinstance(error, BackendError) and error.code in _FUNCTION_MISSING_CODES:
        return True
    message = str(error).lower()
    return "function" in message and (
        "does not exist" in message or "not found" in message or "could not find" in message
    )


def friendly_error_message(error: BaseException, default: str = "Something went wrong. Please try again.") -> str:
    """
    Map a technical error onto a message suitable for a toast.

    Matching is by pattern over the lowercased error message; an error with a
    message that matches nothing is shown as-is, an empty one gets ``default``.
    """
    message = str(error).strip()
    if not message:
        return default

    lowered = message.lower()
    for pattern, friendly in _FRIENDLY_MESSAGES:
        if pattern.search(lowered):
            return friendly

    return message
