"""
auth/errors.py -- Typed failures raised by the account services.

Every failure the core can produce maps to exactly one of these classes, and
every class carries the HTTP status it translates to. The API layer has one
exception handler for AccountError and never inspects messages.

Anything that is not an AccountError reaching the boundary is, by definition,
unexpected and becomes a 500.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AccountError(Exception):
    """Base class for all expected account-service failures."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, *, detail: str | None = None) -> None:
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)


class ValidationFailed(AccountError):
    status_code = 400
    code = "validation_error"
    default_message = "Request validation failed."


class BadCredentials(AccountError):
    """Unknown email or wrong password -- one class, one message for both."""

    status_code = 400
    code = "bad_credentials"
    default_message = "Invalid email or password."


class Unauthorized(AccountError):
    status_code = 401
    code = "unauthorized"
    default_message = "Authentication required."


class Forbidden(AccountError):
    status_code = 403
    code = "forbidden"
    default_message = "Insufficient permissions."


class NotFound(AccountError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found."


class Conflict(AccountError):
    status_code = 409
    code = "conflict"
    default_message = "Resource already exists."
