"""Application configuration using Pydantic Settings.

This project loads configuration from environment variables.

Optionally, you may point `ENV_FILE` at a local env file (for development).
"""

import os
from enum import Enum

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppEnvironment(str, Enum):
    """Application environment values."""

    LOCAL = "local"
    TEST = "test"
    PROD = "prod"


# Driver names per backend: (async driver, sync driver)
_DRIVERS = {
    "postgresql": ("asyncpg", "psycopg"),
    "sqlite": ("aiosqlite", None),
}


def _with_driver(url: str, driver: str | None) -> str:
    """Rewrite `scheme[+driver]://...` to use the given driver."""
    scheme, sep, rest = url.partition("://")
    if not sep:
        raise ValueError(f"Invalid database URL: {url!r}")
    backend = scheme.split("+", 1)[0]
    if backend == "postgres":
        backend = "postgresql"
    new_scheme = f"{backend}+{driver}" if driver else backend
    return f"{new_scheme}://{rest}"


def url_backend(url: str) -> str:
    """Backend name of a database URL: 'postgresql' or 'sqlite'."""
    backend = url.split("://", 1)[0].split("+", 1)[0]
    return "postgresql" if backend == "postgres" else backend


def driver_url(url: str, *, use_async: bool) -> str:
    """Rewrite a database URL for the async (asyncpg / aiosqlite) or sync driver."""
    drivers = _DRIVERS[url_backend(url)]
    return _with_driver(url, drivers[0] if use_async else drivers[1])


class Settings(BaseSettings):
    """
    Application settings with type validation.

    Configuration is loaded from environment variables, with support
    for .env files in development.
    """

    model_config = SettingsConfigDict(
        env_file=os.getenv("ENV_FILE") or None, env_prefix="", extra="ignore"
    )

    # Application
    app_env: AppEnvironment = AppEnvironment.LOCAL
    app_name: str = "fellowship-api"
    app_log_level: str = "INFO"

    # Observability
    observability_enabled: bool = True
    observability_structured_logs: bool = True
    observability_request_id_header: str = "X-Request-ID"

    # Database - Runtime app user (used by FastAPI and the engine)
    database_url_app: str

    # Database - Admin user (for schema setup scripts)
    database_url_admin: str | None = None

    # Connection pool (ignored for SQLite)
    db_pool_size: int = 20
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 3600

    # SQLite writers wait this long for the database write lock
    db_busy_timeout_seconds: float = 30.0

    @field_validator("app_env", mode="before")
    @classmethod
    def validate_app_env(cls, v: str | AppEnvironment) -> AppEnvironment:
        """Validate and parse app_env to AppEnvironment enum."""
        if isinstance(v, AppEnvironment):
            return v
        try:
            return AppEnvironment(v.lower())
        except ValueError:
            raise ValueError(
                f"app_env must be one of {[e.value for e in AppEnvironment]}, got '{v}'"
            )

    @field_validator("database_url_app")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        backend = url_backend(v)
        if backend not in ("postgresql", "sqlite"):
            raise ValueError(f"DATABASE_URL_APP must be PostgreSQL or SQLite, got '{backend}'")
        return v

    @property
    def backend(self) -> str:
        """Database backend name: 'postgresql' or 'sqlite'."""
        return url_backend(self.database_url_app)

    @property
    def is_sqlite(self) -> bool:
        return self.backend == "sqlite"

    @property
    def async_url(self) -> str:
        """DATABASE_URL_APP rewritten for the async driver (asyncpg / aiosqlite)."""
        return driver_url(self.database_url_app, use_async=True)

    @property
    def sync_url(self) -> str:
        """DATABASE_URL_APP rewritten for the sync driver (psycopg / pysqlite)."""
        return driver_url(self.database_url_app, use_async=False)

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """
        Validate production-specific settings.

        These checks prevent unsafe configurations from being deployed to production.
        """
        if self.app_env == AppEnvironment.PROD:
            if self.is_sqlite:
                raise ValueError("DATABASE_URL_APP must use PostgreSQL in production")
            if "sslmode=require" not in self.database_url_app and "ssl=require" not in (
                self.database_url_app
            ):
                raise ValueError("DATABASE_URL_APP must require SSL in production")

        return self


settings = Settings()
