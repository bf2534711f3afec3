"""
Repository layer for data access operations.

External interface of the aggregate engine. Every function takes an
AsyncSession, flushes, and leaves the commit to the caller.
"""

from fellowship.repos.fact_repo import delete_fact, insert_fact, restore_fact, soft_delete_fact
from fellowship.repos.owner_repo import delete_owner
from fellowship.repos.xp_repo import record_xp_event, recompute_xp_totals

__all__ = [
    "insert_fact",
    "soft_delete_fact",
    "restore_fact",
    "delete_fact",
    "record_xp_event",
    "delete_owner",
    "recompute_xp_totals",
]
