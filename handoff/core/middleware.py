"""HTTP middleware for request ID propagation and correlation.

The middleware:
- Accepts the incoming request-id header or generates a UUID
- Stores request_id in contextvars so logs and error bodies can carry it
- Echoes the id and the request duration in response headers
- Clears context after the request completes

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from handoff.core.logging import clear_request_id, set_request_id

DEFAULT_REQUEST_ID_HEADER = "X-Request-ID"


async def request_id_middleware(request: Request, call_next) -> Response:
    """Attach a correlation id to the request and its response.

    The header name comes from ``LOG_REQUEST_ID_HEADER`` on the app's settings.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with request-id and duration headers.
    """
    app_settings = getattr(request.app.state, "settings", None)
    header_name = (
        app_settings.log.request_id_header if app_settings else DEFAULT_REQUEST_ID_HEADER
    )
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
