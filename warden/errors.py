"""
warden.errors — Error Taxonomy
===============================

Every failure the core reports upward is one of these.  The request layer
maps them to transport statuses; ``status_code`` is the suggested HTTP
status so callers don't each keep their own table.

    ValidationError       bad input, detected before any DB call
    NotFoundError         missing row (or ownership failure we refuse to reveal)
    AuthenticationError   bad / expired / malformed credentials
    AuthorizationError    role level too low for the operation
    ConflictError         state precondition lost (someone else acted first)
    InternalError         persistence failure; detail stays in the logs
"""

from __future__ import annotations


class WardenError(Exception):
    """Base class for all errors raised by the core."""

    status_code: int = 500
    code: str = "error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict[str, str]:
        return {"error": self.code, "message": self.message}


class ValidationError(WardenError):
    status_code = 400
    code = "validation_error"


class NotFoundError(WardenError):
    status_code = 404
    code = "not_found"


class AuthenticationError(WardenError):
    status_code = 401
    code = "authentication_failed"


class AuthorizationError(WardenError):
    status_code = 403
    code = "insufficient_permissions"


class ConflictError(WardenError):
    status_code = 409
    code = "conflict"


class InternalError(WardenError):
    status_code = 500
    code = "internal_error"
