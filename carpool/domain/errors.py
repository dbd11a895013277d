"""
Typed domain failures.

Every engine failure is one of these; the API layer maps each to a stable
``(kind, message)`` pair and an HTTP status code.
"""

from __future__ import annotations


class DomainError(Exception):
    kind = "domain_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Malformed or missing input."""

    kind = "validation_error"
    status_code = 400


class NotFound(DomainError):
    """Entity absent or not visible to the caller."""

    kind = "not_found"
    status_code = 404


class Forbidden(DomainError):
    """Authenticated but not authorised for this entity."""

    kind = "forbidden"
    status_code = 403


class Conflict(DomainError):
    """State-machine, capacity or uniqueness violation."""

    kind = "conflict"
    status_code = 409


class Unauthenticated(DomainError):
    kind = "unauthenticated"
    status_code = 401


class InvalidStateTransition(Conflict):
    """Raised when a status change violates the state machine."""
