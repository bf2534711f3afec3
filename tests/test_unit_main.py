"""Unit tests for app wiring in fellowship.main."""

from unittest.mock import patch

import httpx
import pytest
from fastapi import APIRouter

from fellowship.core.config import AppEnvironment
from fellowship.core.errors import UniqueConstraintViolation
from fellowship.main import API_PREFIX, _sanitize_error_details, create_app


def test_details_kept_outside_production() -> None:
    details = {"kind": "REACTION", "error": "UNIQUE constraint failed"}

    with patch("fellowship.main.settings.app_env", AppEnvironment.LOCAL):
        assert _sanitize_error_details(details) == details


def test_driver_message_dropped_in_production() -> None:
    details = {"kind": "REACTION", "error": "UNIQUE constraint failed"}

    with patch("fellowship.main.settings.app_env", AppEnvironment.PROD):
        assert _sanitize_error_details(details) == {"kind": "REACTION"}


def test_routes_are_mounted_under_prefix() -> None:
    paths = {route.path for route in create_app().routes}

    assert f"{API_PREFIX}/comments" in paths
    assert f"{API_PREFIX}/owners/{{kind}}/{{owner_id}}" in paths
    assert f"{API_PREFIX}/users/{{user_id}}/xp-totals/recompute" in paths
    assert "/metrics" in paths


@pytest.mark.anyio
async def test_unhandled_exception_is_generic_500() -> None:
    app = create_app()
    router = APIRouter()

    @router.get("/boom")
    async def boom():
        raise RuntimeError("secret internals")

    @router.get("/dup")
    async def dup():
        raise UniqueConstraintViolation("Unique constraint violated", details={"kind": "X"})

    app.include_router(router)
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/boom")
        assert response.status_code == 500
        assert response.json()["error"] == "InternalServerError"
        assert "secret" not in response.text

        response = await client.get("/dup")
        assert response.status_code == 409
        assert response.json() == {
            "error": "UniqueConstraintViolation",
            "message": "Unique constraint violated",
            "details": {"kind": "X"},
        }
