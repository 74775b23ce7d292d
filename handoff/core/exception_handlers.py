"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return the structured failure body
``{"success": false, "error": ..., "code": ..., "request_id": ...}``.

Design:
- AppError subclasses → their ``http_status`` (400, 401, 404, 409, 429, 500)
- Request validation errors → 400 with the first problem described
- Unexpected Exception → generic 500 (safety net)
- 5xx responses never carry internal messages or details
"""

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from handoff.core.errors import AppError, RateLimitAppError
from handoff.core.logging import get_request_id

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


def _error_body(code: str, message: str, **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "success": False,
        "error": message,
        "code": code,
        "request_id": get_request_id(),
    }
    body.update({k: v for k, v in extra.items() if v is not None})
    return body


def _rate_limit_headers(request: Request, exc: RateLimitAppError) -> dict[str, str] | None:
    app_settings = getattr(request.app.state, "settings", None)
    if app_settings is not None and not app_settings.rate_limit.include_headers:
        return None
    details = exc.details or {}
    headers = {"Retry-After": str(details.get("retry_after", 0))}
    for header, key in (
        ("X-RateLimit-Limit", "limit"),
        ("X-RateLimit-Remaining", "remaining"),
        ("X-RateLimit-Reset", "reset_at"),
    ):
        if key in details:
            headers[header] = str(details[key])
    return headers


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with the structured failure format.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with the error's HTTP status.
    """
    status_code = exc.http_status

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "request_path": request.url.path,
            "cause_type": type(exc.__cause__).__name__ if exc.__cause__ else None,
        },
    )

    if status_code >= 500:
        return JSONResponse(
            status_code=status_code,
            content=_error_body(exc.code, INTERNAL_ERROR_MESSAGE),
        )

    headers = None
    retry_after = None
    if isinstance(exc, RateLimitAppError):
        headers = _rate_limit_headers(request, exc)
        retry_after = (exc.details or {}).get("retry_after")

    details = None
    if exc.details and not isinstance(exc, RateLimitAppError):
        details = dict(exc.details)

    return JSONResponse(
        status_code=status_code,
        content=_error_body(exc.code, exc.message, retry_after=retry_after, details=details),
        headers=headers,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Map FastAPI/Pydantic request validation failures to a 400 response."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"

    logger.warning(
        "request_validation_failed",
        extra={"request_path": request.url.path, "error_count": len(errors)},
    )
    return JSONResponse(
        status_code=400,
        content=_error_body("validation_error", message),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic message.
    Prevents information leakage (no stack traces to client).
    """
    logger.error(
        "unhandled_exception",
        exc_info=exc,
        extra={
            "error_type": type(exc).__name__,
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content=_error_body("internal_server_error", INTERNAL_ERROR_MESSAGE),
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
