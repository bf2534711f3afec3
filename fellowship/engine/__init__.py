"""
Aggregate consistency engine.

- counters: parent child-count maintenance
- xp_totals: per-user XP projection
- policies: referential delete policies
- soft_delete: deleted_at state machine and the active() filter
"""
