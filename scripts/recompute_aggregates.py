#!/usr/bin/env python3
"""
Rebuild derived aggregates from their facts.

Operator repair tool; safe to run against a live database. Each command
runs in a single transaction.

Usage:
    python scripts/recompute_aggregates.py xp --user-id <uuid>
    python scripts/recompute_aggregates.py xp --all
    python scripts/recompute_aggregates.py counters            # report drift
    python scripts/recompute_aggregates.py counters --fix      # and repair it

Environment Variables:
    DATABASE_URL_APP      - App connection
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path for imports
ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

from fellowship.core.config import settings  # noqa: E402
from fellowship.core.db import reset_async_engine, transaction  # noqa: E402
from fellowship.core.errors import FellowshipError  # noqa: E402
from fellowship.core.observability import configure_structured_logging  # noqa: E402
from fellowship.engine.counters import reconcile_counters  # noqa: E402
from fellowship.repos.xp_repo import recompute_all_xp_totals, recompute_xp_totals  # noqa: E402

logger = logging.getLogger("fellowship.scripts.recompute")


async def recompute_xp(user_id: str | None) -> int:
    if user_id is not None:
        async with transaction() as db:
            totals = await recompute_xp_totals(db, user_id)
        print(f"{user_id}: {totals.as_dict()}")
        return 0

    async with transaction() as db:
        count = await recompute_all_xp_totals(db)
    print(f"Recomputed XP totals for {count} users")
    return 0


async def recompute_counters(fix: bool) -> int:
    async with transaction() as db:
        drifts = await reconcile_counters(db, fix=fix)

    for drift in drifts:
        print(
            f"{drift.kind.value} parent={drift.parent_id} stored={drift.stored} "
            f"actual={drift.actual}"
        )
    verb = "Repaired" if fix else "Found"
    print(f"{verb} {len(drifts)} drifted counters")
    return 1 if drifts and not fix else 0


async def run(args: argparse.Namespace) -> int:
    try:
        if args.command == "xp":
            return await recompute_xp(None if args.all else args.user_id)
        return await recompute_counters(args.fix)
    except FellowshipError as e:
        logger.error(e.message, extra={"details": e.details})
        return 1
    finally:
        await reset_async_engine()


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Recompute denormalized aggregates from facts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    xp_parser = subparsers.add_parser("xp", help="Rebuild XP totals from XP events")
    target = xp_parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--user-id", help="Rebuild a single user's totals")
    target.add_argument("--all", action="store_true", help="Rebuild every user with events")

    counters_parser = subparsers.add_parser("counters", help="Check post/prayer counters")
    counters_parser.add_argument(
        "--fix", action="store_true", help="Overwrite drifted counters with live counts"
    )

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        return 1

    if settings.observability_structured_logs:
        configure_structured_logging(settings.app_log_level)

    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
