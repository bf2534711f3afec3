"""
Tests for the error taxonomy and integrity-error translation.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from fellowship.core.errors import (
    CheckConstraintViolation,
    ConflictError,
    FellowshipError,
    ForeignKeyRestriction,
    NotFoundError,
    UniqueConstraintViolation,
    ValidationError,
    get_status_code,
    translate_integrity_error,
)


class _PsycopgError(Exception):
    def __init__(self, message: str, sqlstate: str):
        super().__init__(message)
        self.sqlstate = sqlstate


class _AsyncpgAdaptedError(Exception):
    def __init__(self, message: str, pgcode: str):
        super().__init__(message)
        self.pgcode = pgcode


def _integrity_error(orig: Exception) -> IntegrityError:
    return IntegrityError("INSERT ...", {}, orig)


class TestStatusCodes:
    @pytest.mark.parametrize(
        ("error", "status"),
        [
            (ValidationError("bad"), 400),
            (NotFoundError("missing"), 404),
            (ConflictError("conflict"), 409),
            (UniqueConstraintViolation("dup"), 409),
            (ForeignKeyRestriction("blocked"), 409),
            (CheckConstraintViolation("negative"), 422),
            (FellowshipError("base"), 500),
            (RuntimeError("boom"), 500),
        ],
    )
    def test_status_map(self, error, status):
        assert get_status_code(error) == status

    def test_details_default_to_empty(self):
        error = NotFoundError("Post not found")
        assert error.details == {}
        assert str(error) == "Post not found"


class TestTranslateIntegrityError:
    @pytest.mark.parametrize(
        ("code", "expected"),
        [
            ("23505", UniqueConstraintViolation),
            ("23503", ForeignKeyRestriction),
            ("23514", CheckConstraintViolation),
            ("23502", ConflictError),
        ],
    )
    def test_postgres_sqlstate(self, code, expected):
        error = _integrity_error(_PsycopgError("violation", code))

        translated = translate_integrity_error(error, details={"kind": "REACTION"})

        assert type(translated) is expected
        assert translated.details["kind"] == "REACTION"
        assert translated.details["error"] == "violation"

    def test_asyncpg_pgcode(self):
        error = _integrity_error(_AsyncpgAdaptedError("duplicate key value", "23505"))

        assert isinstance(translate_integrity_error(error), UniqueConstraintViolation)

    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            (
                "UNIQUE constraint failed: reactions.post_id, reactions.user_id, reactions.type",
                UniqueConstraintViolation,
            ),
            ("FOREIGN KEY constraint failed", ForeignKeyRestriction),
            ("CHECK constraint failed: xp_events_amount_non_negative", CheckConstraintViolation),
            ("NOT NULL constraint failed: posts.content", ConflictError),
        ],
    )
    def test_sqlite_message(self, message, expected):
        error = _integrity_error(Exception(message))

        assert type(translate_integrity_error(error)) is expected
