"""Rate limiting dependency for FastAPI routes.

This module wires the fixed-window limiters into the HTTP layer.

Design goals:
- Minimal coupling: routes depend on ``rate_limited(<limiter name>)`` only.
- Per-endpoint quotas: each OTP route has its own limiter and counters.
- Keyed by caller IP by default; a custom key function can be supplied.

Requests are counted before the handler runs, so a client that disconnects
mid-request keeps its increment.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Callable

from fastapi import Request

from handoff.core.container import get_container
from handoff.core.errors import RateLimitAppError
from handoff.core.logging import hash_for_log

logger = logging.getLogger(__name__)

KeyFunc = Callable[[Request], str]


def client_ip_key(request: Request) -> str:
    """Build the limiter key from the caller's IP address.

    Honours the first ``X-Forwarded-For`` hop only when the deployment says
    the proxy in front of the app can be trusted.
    """
    cfg = get_container(request).settings.rate_limit
    if cfg.trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return f"ip:{first_hop}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


def rate_limited(limiter_name: str, key_func: KeyFunc = client_ip_key):
    """Create a dependency enforcing the named limiter.

    Args:
        limiter_name: Key of the limiter in the service container.
        key_func: Maps a request to its rate-limit key.

    Returns:
        An async generator dependency for ``Depends``.
    """

    async def enforce_rate_limit(request: Request) -> AsyncIterator[None]:
        container = get_container(request)
        if not container.settings.rate_limit.enabled:
            yield
            return

        limiter = container.limiters[limiter_name]
        key = key_func(request)
        result = limiter.check(key)
        log_extra = {
            "limiter": limiter_name,
            "key_hash": hash_for_log(key),
            "limit": result.limit,
            "remaining": result.remaining,
            "window_s": limiter.window_seconds,
        }

        if not result.allowed:
            retry_after = result.retry_after_seconds or 0
            logger.warning(
                "rate_limit.exceeded",
                extra={**log_extra, "retry_after_s": retry_after},
            )
            raise RateLimitAppError(
                code="rate_limit_exceeded",
                message="Too many requests. Try again later.",
                details={
                    "retry_after": retry_after,
                    "limit": result.limit,
                    "remaining": result.remaining,
                    "reset_at": result.reset_at,
                },
            )

        logger.debug("rate_limit.allowed", extra=log_extra)
        try:
            yield
        except Exception:
            limiter.record_outcome(key, succeeded=False)
            raise
        else:
            limiter.record_outcome(key, succeeded=True)

    return enforce_rate_limit
