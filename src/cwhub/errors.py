"""
Service error taxonomy.

Services raise these for expected conditions; the error handler middleware
turns each one into a JSON body with its own status code. Anything else is an
unexpected failure and surfaces as an opaque 500.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for expected, caller-facing failures."""

    status_code: int = 400
    code: str = "error"
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(ServiceError):
    status_code = 401
    code = "unauthenticated"
    default_message = "Authentication required"


class Forbidden(ServiceError):
    status_code = 403
    code = "forbidden"
    default_message = "Not allowed"


class NotFound(ServiceError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class Conflict(ServiceError):
    status_code = 409
    code = "conflict"
    default_message = "Already exists"


class AlreadyEntitled(ServiceError):
    status_code = 409
    code = "already_entitled"
    default_message = "User already has premium access"


class Invalid(ServiceError):
    status_code = 400
    code = "invalid"
    default_message = "Invalid input"


class PaymentRequired(ServiceError):
    """Raised at the HTTP boundary when the access policy denies a content body."""

    status_code = 402
    code = "payment_required"
    default_message = "Premium access required"
