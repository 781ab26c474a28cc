"""
Domain errors for the idea ledger.

Every error carries a machine-readable ``kind`` and the HTTP status the API
layer renders it with, so endpoints never need their own mapping.
"""

from typing import Any

from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from ..models import HistoryImmutableError


# =============================================================================
# EXCEPTIONS
# =============================================================================


class IdeaLedgerError(Exception):
    """Base exception for idea ledger operations."""

    kind = "internal_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        details: list[dict[str, Any]] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or []


class ValidationFailedError(IdeaLedgerError):
    """Input failed validation."""
    kind = "validation_failed"
    status_code = 400


class NotFoundError(IdeaLedgerError):
    """Entity does not exist."""
    kind = "not_found"
    status_code = 404


class AccessDeniedError(IdeaLedgerError):
    """Entity exists but is not visible to the actor."""
    kind = "access_denied"
    status_code = 403


class PermissionDeniedError(IdeaLedgerError):
    """Actor's role does not allow the operation."""
    kind = "permission_denied"
    status_code = 403


class SelfVoteRejectedError(IdeaLedgerError):
    """Creators cannot vote on their own ideas."""
    kind = "self_vote_rejected"
    status_code = 400


class InvalidVoteTypeError(IdeaLedgerError):
    """Vote type must be 1 or -1."""
    kind = "invalid_vote_type"
    status_code = 400


class InvalidCategoryError(IdeaLedgerError):
    """Category is missing or inactive."""
    kind = "invalid_category"
    status_code = 400


class StoreUnavailableError(IdeaLedgerError):
    """The relational store timed out, refused a connection, or kept conflicting."""
    kind = "store_unavailable"
    status_code = 503


class ConflictError(IdeaLedgerError):
    """Concurrent modification detected. Retried internally."""
    kind = "conflict"
    status_code = 409


# Low-level failures that mean "the store is unavailable right now"
STORE_UNAVAILABLE_ERRORS = (
    OperationalError,
    InterfaceError,
    PoolTimeoutError,
    TimeoutError,
)

# SQLSTATE for unique_violation on PostgreSQL
UNIQUE_VIOLATION = "23505"


def is_unique_violation(error: IntegrityError) -> bool:
    """True when an IntegrityError is a duplicate key rather than, say, a missing foreign key."""
    orig = error.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code:
        return code == UNIQUE_VIOLATION
    # SQLite and wrapped driver errors only carry a message
    message = str(orig).lower()
    return "unique" in message or "duplicate" in message


__all__ = [
    "IdeaLedgerError",
    "ValidationFailedError",
    "NotFoundError",
    "AccessDeniedError",
    "PermissionDeniedError",
    "SelfVoteRejectedError",
    "InvalidVoteTypeError",
    "InvalidCategoryError",
    "StoreUnavailableError",
    "ConflictError",
    "HistoryImmutableError",
    "STORE_UNAVAILABLE_ERRORS",
    "is_unique_violation",
]
