"""Custom exception hierarchy for pypatients."""

from __future__ import annotations


class PatientsError(Exception):
    """Base exception for all pypatients errors."""


class PatientsConfigError(PatientsError):
    """Invalid configuration or caller contract violation.

    Raised for programming mistakes such as a zero page size.  These are
    never absorbed by the loading/error tracker.
    """


class PatientsValidationError(PatientsError):
    """An edit form was submitted while one or more fields fail validation."""

    def __init__(self, message: str, *, failures: dict[str, object] | None = None) -> None:
        self.failures = dict(failures or {})
        super().__init__(message)


class PatientsTransportError(PatientsError):
    """HTTP-level failure (network, non-2xx, invalid JSON).

    The exception text is meant for the user.  Each subclass carries a
    fixed ``default_message``; request details stay in ``status_code``,
    ``endpoint`` and the debug log.
    """

    kind: str = "transportUnexpected"
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message or self.default_message)


class PatientsUnauthorizedError(PatientsTransportError):
    """Credentials were rejected (HTTP 401)."""

    kind = "transportUnauthorized"
    default_message = "Authentication failed. Please check your credentials."


class PatientsNotFoundError(PatientsTransportError):
    """The requested resource does not exist (HTTP 404)."""

    kind = "transportNotFound"
    default_message = "The requested resource was not found."


class PatientsServerError(PatientsTransportError):
    """The server failed to handle the request (HTTP 5xx)."""

    kind = "transportServerError"
    default_message = "Internal server error. Please try again later."


class PatientsUnexpectedError(PatientsTransportError):
    """Any other transport failure.

    Covers unmapped status codes, connection errors, timeouts and response
    bodies that are not the expected JSON shape.  A ``message`` field in an
    error body replaces the default text.
    """

    kind = "transportUnexpected"


def error_for_status(status_code: int) -> type[PatientsTransportError]:
    """Return the exception class matching an HTTP status code."""
    if status_code == 401:
        return PatientsUnauthorizedError
    if status_code == 404:
        return PatientsNotFoundError
    if 500 <= status_code < 600:
        return PatientsServerError
    return PatientsUnexpectedError
