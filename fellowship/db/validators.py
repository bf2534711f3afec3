"""Reusable SQLAlchemy validators for the Fellowship models."""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from fellowship.core.errors import CheckConstraintViolation

JsonType = dict[str, "JsonType"] | list["JsonType"] | str | int | float | bool | None


def validate_non_negative(key: str, value: int) -> int:
    """Reject negative integers before they reach the store.

    Used with SQLAlchemy's @validates decorator on additive columns
    (XpEvent.amount) so a bad value never gets near the totals.

    Raises:
        CheckConstraintViolation: If value < 0
    """
    if value is None:
        return value
    if value < 0:
        raise CheckConstraintViolation(
            f"{key} must be >= 0", details={"field": key, "value": value}
        )
    return value


def validate_time_window(starts_at: datetime | None, ends_at: datetime | None) -> None:
    """Ensure an interval ends strictly after it starts.

    Raises:
        CheckConstraintViolation: If ends_at <= starts_at
    """
    if starts_at is None or ends_at is None:
        return
    if ends_at <= starts_at:
        raise CheckConstraintViolation(
            "ends_at must be after starts_at",
            details={"starts_at": starts_at.isoformat(), "ends_at": ends_at.isoformat()},
        )


def to_jsonable(value: Any) -> JsonType:
    """Convert complex types to JSON-serializable format.

    Handles Enum, datetime, date, Decimal, UUID, dict, and list types.
    """
    if value is None:
        return None

    if isinstance(value, Enum):
        return value.value

    if isinstance(value, (str, int, float, bool)):
        return value

    if isinstance(value, (datetime, date)):
        return value.isoformat()

    if isinstance(value, (Decimal, uuid.UUID)):
        return str(value)

    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}

    if isinstance(value, (list, tuple, set)):
        return [to_jsonable(v) for v in value]

    return str(value)
