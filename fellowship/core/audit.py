"""Audit helper utilities.

This module provides helpers to:
1. Snapshot ORM entities into JSON-serializable dictionaries for `AuditLog.metadata`
2. Create audit log entries with a single function call
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.db.models import AuditLog
from fellowship.db.validators import to_jsonable


def snapshot_entity(
    entity: Any, *, include: Iterable[str] | None = None, exclude: Iterable[str] | None = None
) -> dict:
    """Snapshot an ORM entity into a JSON-serializable dict.

    By default, includes all mapped column attributes.

    Args:
        entity: SQLAlchemy ORM instance.
        include: Optional whitelist of field names.
        exclude: Optional blacklist of field names.

    Returns:
        Dict of field->value, JSON-serializable.
    """
    mapper = inspect(entity).mapper
    column_names = [attr.key for attr in mapper.column_attrs]

    if include is not None:
        include_set = set(include)
        column_names = [n for n in column_names if n in include_set]

    if exclude is not None:
        exclude_set = set(exclude)
        column_names = [n for n in column_names if n not in exclude_set]

    return {name: to_jsonable(getattr(entity, name)) for name in column_names}


async def create_audit_log_async(
    db: AsyncSession,
    *,
    entity_type: str,
    entity_id: str,
    action: str,
    metadata: dict | None = None,
    performed_by: str | None = None,
) -> AuditLog:
    """Create and add an audit log entry to the session.

    Args:
        db: Async database session
        entity_type: Type of entity (e.g., "USER", "POST")
        entity_id: ID of the entity
        action: Action performed (e.g., "DELETE")
        metadata: JSON-serializable context for the entry
        performed_by: User ID who performed the action, if known

    Returns:
        The created AuditLog instance (not yet flushed to database)
    """
    audit = AuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        metadata_=to_jsonable(metadata) if metadata is not None else None,
        user_id=performed_by,
    )
    db.add(audit)
    return audit
