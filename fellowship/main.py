import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from fellowship.api.routes.facts import router as facts_router
from fellowship.api.routes.flags import router as flags_router
from fellowship.api.routes.owners import router as owners_router
from fellowship.api.routes.xp import router as xp_router
from fellowship.core.config import AppEnvironment, settings
from fellowship.core.errors import FellowshipError, get_status_code
from fellowship.core.observability import (
    ObservabilityMiddleware,
    configure_structured_logging,
    extract_request_context,
    metrics_endpoint,
)

# Configure structured logging before creating logger
if settings.observability_structured_logs:
    configure_structured_logging(settings.app_log_level)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def _sanitize_error_details(details: dict[str, Any]) -> dict[str, Any]:
    """
    Drop raw driver messages from error details in production.

    The `error` key carries the store's own text (constraint names, SQL);
    useful locally, noise or leakage in production.
    """
    if settings.app_env != AppEnvironment.PROD:
        return details
    return {k: v for k, v in details.items() if k != "error"}


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Sets up:
    - Structured logging with correlation IDs
    - Observability middleware (metrics, request tracking)
    - Exception handlers for domain errors
    - API routers
    - Metrics endpoint for Prometheus scraping
    """
    app = FastAPI(
        title="Fellowship API",
        description="Aggregate consistency engine for posts, prayers and XP",
        version="0.1.0",
    )

    if settings.observability_enabled:
        app.add_middleware(
            ObservabilityMiddleware, request_id_header=settings.observability_request_id_header
        )

    # ============================================================================
    # Exception Handlers
    # ============================================================================

    @app.exception_handler(FellowshipError)
    async def fellowship_error_handler(request: Request, exc: FellowshipError) -> JSONResponse:
        """Map domain exceptions to status codes and a structured body."""
        status_code = get_status_code(exc)

        context = {
            "details": exc.details,
            "path": request.url.path,
            **extract_request_context(request),
        }
        if status_code >= 500:
            logger.error(f"{exc.__class__.__name__}: {exc.message}", extra=context)
        else:
            logger.warning(f"{exc.__class__.__name__}: {exc.message}", extra=context)

        return JSONResponse(
            status_code=status_code,
            content={
                "error": exc.__class__.__name__,
                "message": exc.message,
                "details": _sanitize_error_details(exc.details),
            },
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": "HTTPException", "message": exc.detail, "details": {}},
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Catch-all handler for unexpected exceptions.

        Logs the full exception and returns a generic 500 without internals.
        """
        logger.error(
            f"Unhandled exception: {exc}",
            exc_info=True,
            extra={"path": request.url.path, **extract_request_context(request)},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "InternalServerError",
                "message": "An unexpected error occurred",
                "details": {},
            },
        )

    # ============================================================================
    # Router Registration
    # ============================================================================

    app.include_router(facts_router, prefix=API_PREFIX)
    app.include_router(xp_router, prefix=API_PREFIX)
    app.include_router(owners_router, prefix=API_PREFIX)
    app.include_router(flags_router, prefix=API_PREFIX)

    if settings.observability_enabled:
        app.add_route("/metrics", metrics_endpoint)

    return app


app = create_app()
