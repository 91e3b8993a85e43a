"""
Unit tests for main FastAPI application.

Tests the root endpoints, router wiring and global exception handlers.
"""

import json
from unittest.mock import Mock, patch

import httpx
import pytest
from fastapi import Request
from fastapi.testclient import TestClient

from core.exceptions import ConflictError, NotFoundError, StoreUnavailableError
from main import (
    app,
    booking_error_handler,
    global_exception_handler,
    health_check,
    http_status_error_handler,
    lifespan,
    root,
    value_error_handler,
)


def _body(response):
    return json.loads(response.body)


class TestRootEndpoints:

    def test_root_endpoint(self):
        response = TestClient(app).get("/")

        assert response.status_code == 200
        assert response.json()["message"] == "Booking Engine Backend API"

    @pytest.mark.asyncio
    async def test_functions_directly(self):
        assert (await root())["status"] == "running"
        assert await health_check() == {"status": "healthy"}


class TestExceptionHandlers:
    """Test global exception handlers."""

    @pytest.mark.asyncio
    async def test_booking_errors_keep_status_and_code(self):
        request = Mock(spec=Request)

        not_found = await booking_error_handler(request, NotFoundError("Payer", 7))
        conflict = await booking_error_handler(request, ConflictError())
        unavailable = await booking_error_handler(request, StoreUnavailableError())

        assert not_found.status_code == 404
        assert _body(not_found) == {"detail": "Payer not found (id: 7)", "type": "not_found"}
        assert conflict.status_code == 409
        assert _body(conflict)["type"] == "slot_conflict"
        assert unavailable.status_code == 503
        assert _body(unavailable)["type"] == "store_unavailable"

    @pytest.mark.asyncio
    async def test_value_error_handler(self):
        response = await value_error_handler(Mock(spec=Request), ValueError("end before start"))

        assert response.status_code == 400
        assert _body(response) == {"detail": "end before start", "type": "validation_error"}

    @pytest.mark.asyncio
    async def test_global_exception_handler_hides_details(self):
        with patch("main.logger") as mock_logger:
            response = await global_exception_handler(Mock(spec=Request), RuntimeError("secret"))

        assert response.status_code == 500
        assert _body(response) == {"detail": "Internal server error", "type": "internal_error"}
        mock_logger.exception.assert_called_once()

    @pytest.mark.asyncio
    async def test_http_status_error_handler(self):
        error = httpx.HTTPStatusError("Bad gateway", request=Mock(), response=Mock())

        response = await http_status_error_handler(Mock(spec=Request), error)

        assert response.status_code == 502
        assert _body(response)["type"] == "external_service_error"


class TestAppConfiguration:

    def test_router_inclusion(self):
        paths = {route.path for route in app.routes}

        assert "/api/bookability/{payer_id}" in paths
        assert "/api/availability/merged" in paths
        assert "/api/appointments" in paths
        assert "/api/admin/bookability/health" in paths

    def test_cors_preflight(self):
        response = TestClient(app).options(
            "/api/availability/merged",
            headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "GET"},
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"

    @pytest.mark.asyncio
    async def test_lifespan_skips_scheduler_when_disabled(self):
        with patch("main.ENABLE_POPULATION_SCHEDULER", False), \
             patch("main.start_population_scheduler") as start, \
             patch("main.stop_population_scheduler") as stop:
            async with lifespan(app):
                pass

        start.assert_not_called()
        stop.assert_not_called()

    @pytest.mark.asyncio
    async def test_lifespan_starts_and_stops_scheduler(self):
        with patch("main.ENABLE_POPULATION_SCHEDULER", True), \
             patch("main.start_population_scheduler") as start, \
             patch("main.stop_population_scheduler") as stop:
            async with lifespan(app):
                start.assert_awaited_once()

        stop.assert_awaited_once()
