#!/usr/bin/env python3
"""
Fellowship database setup.

Creates or drops the schema from the ORM metadata using the sync engine
(psycopg for PostgreSQL, pysqlite for SQLite).

Usage:
    python scripts/setup_database.py init
    python scripts/setup_database.py reset --yes
    python scripts/setup_database.py verify

Environment Variables:
    DATABASE_URL_ADMIN    - Admin connection (schema management), preferred
    DATABASE_URL_APP      - App connection, used when no admin URL is set
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine

# Add project root to path for imports
ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

from fellowship.core.config import AppEnvironment, driver_url, settings, url_backend  # noqa: E402
from fellowship.core.db import configure_sqlite_engine, get_engine  # noqa: E402
from fellowship.db.models import Base  # noqa: E402


# ANSI colors for terminal output
class Colors:
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BLUE = "\033[94m"
    END = "\033[0m"


def log_info(msg: str) -> None:
    print(f"{Colors.BLUE}[INFO]{Colors.END} {msg}")


def log_success(msg: str) -> None:
    print(f"{Colors.GREEN}[OK]{Colors.END} {msg}")


def log_warning(msg: str) -> None:
    print(f"{Colors.YELLOW}[WARN]{Colors.END} {msg}")


def log_error(msg: str) -> None:
    print(f"{Colors.RED}[ERROR]{Colors.END} {msg}")


def build_engine(url: str | None) -> Engine:
    """Sync engine for --url or DATABASE_URL_ADMIN, else the app engine."""
    url = url or settings.database_url_admin
    if not url:
        return get_engine()
    engine = create_engine(driver_url(url, use_async=False))
    if url_backend(url) == "sqlite":
        configure_sqlite_engine(engine)
    return engine


def init_schema(engine: Engine) -> int:
    Base.metadata.create_all(engine)
    log_success(f"Created {len(Base.metadata.tables)} tables")
    return 0


def reset_schema(engine: Engine, *, force: bool) -> int:
    if settings.app_env == AppEnvironment.PROD and not force:
        log_error("Refusing to drop the production schema without --yes")
        return 1
    Base.metadata.drop_all(engine)
    log_warning("Dropped all tables")
    Base.metadata.create_all(engine)
    log_success(f"Recreated {len(Base.metadata.tables)} tables")
    return 0


def verify_schema(engine: Engine) -> int:
    existing = set(inspect(engine).get_table_names())
    missing = sorted(set(Base.metadata.tables) - existing)
    if missing:
        log_error(f"Missing tables: {', '.join(missing)}")
        return 1
    log_success(f"All {len(Base.metadata.tables)} tables present")
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Database setup for the Fellowship API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--url", help="Database URL (overrides env vars)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    subparsers.add_parser("init", help="Create all tables")
    reset_parser = subparsers.add_parser("reset", help="Drop and recreate all tables")
    reset_parser.add_argument(
        "--yes", "-y", dest="force", action="store_true", help="Bypass safety checks"
    )
    subparsers.add_parser("verify", help="Check that every table exists")

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        return 1

    engine = build_engine(args.url)
    log_info(f"Using {engine.url.render_as_string(hide_password=True)}")
    try:
        if args.command == "init":
            return init_schema(engine)
        if args.command == "reset":
            return reset_schema(engine, force=args.force)
        return verify_schema(engine)
    finally:
        engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
