"""
Domain-specific exceptions for the Fellowship API.

These exceptions represent business logic and store constraint violations
and are mapped to appropriate HTTP status codes in the API layer.
"""

from typing import Any

from sqlalchemy.exc import IntegrityError

# PostgreSQL SQLSTATE codes for integrity violations
SQLSTATE_UNIQUE_VIOLATION = "23505"
SQLSTATE_FOREIGN_KEY_VIOLATION = "23503"
SQLSTATE_CHECK_VIOLATION = "23514"


class FellowshipError(Exception):
    """Base exception for all Fellowship domain errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(FellowshipError):
    """
    Raised when input data fails validation.

    Examples:
    - Soft-deleting a fact kind that has no deleted_at column
    - Unknown fact or owner kind

    HTTP Status: 400 Bad Request
    """

    pass


class NotFoundError(FellowshipError):
    """
    Raised when a requested resource does not exist.

    Examples:
    - Comment ID not found
    - Parent post of a new reaction not found
    - Owner row missing on delete

    HTTP Status: 404 Not Found
    """

    pass


class ConflictError(FellowshipError):
    """
    Raised when an operation conflicts with current state.

    HTTP Status: 409 Conflict
    """

    pass


class UniqueConstraintViolation(ConflictError):
    """
    Raised when an insert violates a unique constraint.

    Examples:
    - Second reaction of the same type by the same user on one post
    - Duplicate user email

    HTTP Status: 409 Conflict
    """

    pass


class ForeignKeyRestriction(ConflictError):
    """
    Raised when a delete is blocked by a RESTRICT relation.

    Examples:
    - Deleting a user who still authors posts
    - Deleting a user who still created groups

    HTTP Status: 409 Conflict
    """

    pass


class CheckConstraintViolation(FellowshipError):
    """
    Raised when a value breaks a check constraint.

    Examples:
    - Negative XP amount
    - Event ending before (or when) it starts

    HTTP Status: 422 Unprocessable Entity
    """

    pass


# HTTP Status Code Mapping
ERROR_STATUS_MAP = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    UniqueConstraintViolation: 409,
    ForeignKeyRestriction: 409,
    CheckConstraintViolation: 422,
}


def get_status_code(error: Exception) -> int:
    """
    Get the HTTP status code for a given exception.

    Args:
        error: The exception instance

    Returns:
        HTTP status code (defaults to 500 for unknown errors)
    """
    return ERROR_STATUS_MAP.get(type(error), 500)


def _sqlstate(error: IntegrityError) -> str | None:
    orig = error.orig
    # psycopg exposes .sqlstate, the asyncpg adapter exposes .pgcode
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def translate_integrity_error(
    error: IntegrityError, details: dict[str, Any] | None = None
) -> FellowshipError:
    """
    Map a store IntegrityError onto the typed error taxonomy.

    PostgreSQL errors are classified by SQLSTATE; SQLite only reports
    the constraint kind in its message text.

    Args:
        error: The IntegrityError raised by the driver
        details: Extra context to attach to the typed error

    Returns:
        The typed error (the caller raises it)
    """
    context = {**(details or {}), "error": str(error.orig)}
    code = _sqlstate(error)
    text = str(error.orig).upper()

    if code == SQLSTATE_UNIQUE_VIOLATION or "UNIQUE" in text:
        return UniqueConstraintViolation("Unique constraint violated", details=context)
    if code == SQLSTATE_FOREIGN_KEY_VIOLATION or "FOREIGN KEY" in text:
        return ForeignKeyRestriction("Foreign key constraint violated", details=context)
    if code == SQLSTATE_CHECK_VIOLATION or "CHECK" in text:
        return CheckConstraintViolation("Check constraint violated", details=context)
    return ConflictError("Integrity constraint violated", details=context)
