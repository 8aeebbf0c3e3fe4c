# Overview: Domain error types raised by the service layer.

"""
Custody Ledger Errors

Every public operation either returns its success payload or raises one of
the errors below. Callers catch CustodyError and read `kind` (a stable tag)
and `to_dict()` for a serializable failure.

No operation writes anything before all of its preconditions have passed, so
catching one of these errors never leaves a partial mutation behind.
"""

from __future__ import annotations


class CustodyError(Exception):
    """Base class for all domain failures."""

    kind = "custody_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class NotFoundError(CustodyError):
    """
    A keyed record does not exist.

    entity is one of: Product, Checkpoint, Transfer, Certification, Counter,
    Authorization.
    """

    kind = "not_found"

    def __init__(self, entity: str, key):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key} not found")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "entity": self.entity}


class UnauthorizedError(CustodyError):
    """The caller identity is not allowed to perform the operation."""

    kind = "unauthorized"


class InvalidStateError(CustodyError):
    """The record is in a state that forbids the operation (recalled, terminal, expired window)."""

    kind = "invalid_state"


class ValidationError(CustodyError, ValueError):
    """Malformed input: empty identity, bad digest, non-integer counter value."""

    kind = "invalid_argument"


class ConcurrencyConflictError(CustodyError):
    """Another unit of work changed the same product first."""

    kind = "conflict"
