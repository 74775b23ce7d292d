"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from handoff.core.errors import (
    AppError,
    ConflictAppError,
    InvalidOtpAppError,
    NotFoundAppError,
    OtpExpiredAppError,
    PersistenceAppError,
    RateLimitAppError,
    TooManyAttemptsAppError,
    ValidationAppError,
)
from handoff.core.exception_handlers import setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client with handlers enabled."""
    return TestClient(app_with_handlers, raise_server_exceptions=False)


def _route_raising(app: FastAPI, path: str, exc: Exception) -> None:
    @app.get(path)
    async def endpoint():
        raise exc


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    @pytest.mark.parametrize(
        "error_cls,status",
        [
            (ValidationAppError, 400),
            (NotFoundAppError, 404),
            (ConflictAppError, 409),
            (TooManyAttemptsAppError, 429),
            (OtpExpiredAppError, 400),
            (InvalidOtpAppError, 401),
        ],
    )
    def test_status_mapping(self, client: TestClient, app_with_handlers: FastAPI, error_cls, status):
        _route_raising(app_with_handlers, "/boom", error_cls(code="some_code", message="Some message"))

        response = client.get("/boom")

        assert response.status_code == status
        assert response.json() == {
            "success": False,
            "error": "Some message",
            "code": "some_code",
            "request_id": None,
        }

    def test_details_are_included_for_client_errors(self, client: TestClient, app_with_handlers: FastAPI):
        _route_raising(
            app_with_handlers,
            "/invalid",
            InvalidOtpAppError(
                code="otp_invalid",
                message="Invalid OTP. 2 attempt(s) remaining.",
                details={"attempts": 3, "attempts_remaining": 2},
            ),
        )

        data = client.get("/invalid").json()

        assert data["details"] == {"attempts": 3, "attempts_remaining": 2}

    def test_rate_limit_error_sets_headers(self, client: TestClient, app_with_handlers: FastAPI):
        _route_raising(
            app_with_handlers,
            "/limited",
            RateLimitAppError(
                code="rate_limit_exceeded",
                message="Too many requests. Try again later.",
                details={"retry_after": 42, "limit": 5, "remaining": 0, "reset_at": 1700000000},
            ),
        )

        response = client.get("/limited")

        assert response.status_code == 429
        data = response.json()
        assert data["retry_after"] == 42
        assert "details" not in data
        assert response.headers["Retry-After"] == "42"
        assert response.headers["X-RateLimit-Limit"] == "5"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.headers["X-RateLimit-Reset"] == "1700000000"

    def test_persistence_error_is_opaque(self, client: TestClient, app_with_handlers: FastAPI):
        _route_raising(
            app_with_handlers,
            "/db",
            PersistenceAppError(
                code="internal_error",
                message="disk I/O error at /var/lib/handoff.db",
                details={"order_id": "order-1"},
            ),
        )

        response = client.get("/db")

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "Internal server error"
        assert data["code"] == "internal_error"
        assert "details" not in data
        assert "handoff.db" not in response.text


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_handler_registered(self, app_with_handlers: FastAPI):
        """Verify fallback exception handler is registered."""
        assert Exception in app_with_handlers.exception_handlers

    def test_general_exception_handler_logic(self):
        """Verify general_exception_handler returns correct structure."""
        from handoff.core.exception_handlers import general_exception_handler

        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = RuntimeError("Unexpected error: database connection failed")
        response = asyncio.run(general_exception_handler(request, exc))

        response_body = response.body if isinstance(response.body, bytes) else bytes(response.body)
        data = json.loads(response_body.decode())
        assert response.status_code == 500
        assert data["success"] is False
        assert data["code"] == "internal_server_error"
        # Original error message should NOT be in response
        assert "database connection" not in data["error"]
        assert "request_id" in data

    def test_general_exception_handler_never_leaks_stack_trace(self, client: TestClient, app_with_handlers: FastAPI):
        """Verify stack traces are never included in response."""
        _route_raising(app_with_handlers, "/crash", ValueError("Test error with details"))

        response = client.get("/crash")

        assert response.status_code == 500
        assert "Traceback" not in response.text
        assert "File \"" not in response.text
        assert "ValueError" not in response.text


class TestRequestValidationHandler:
    def test_validation_errors_return_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/items/{item_id}")
        async def read_item(item_id: int):
            return {"item_id": item_id}

        response = client.get("/items/not-a-number")

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "validation_error"
        assert data["error"].startswith("path.item_id:")


class TestErrorHandlerIntegration:
    """Integration tests for exception handler setup."""

    def test_setup_exception_handlers_registers_handlers(self, app_with_handlers: FastAPI):
        """Verify setup_exception_handlers properly registers handlers."""
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers

    def test_app_error_str_is_message(self):
        error = NotFoundAppError(code="order_not_found", message="Order not found")

        assert str(error) == "Order not found"
        assert error.http_status == 404
