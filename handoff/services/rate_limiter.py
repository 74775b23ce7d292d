"""Fixed-window rate limiter.

The window for a key opens on its first request and lasts ``window_seconds``;
every request in the window is counted, including rejected ones, so a caller
hammering the endpoint does not earn extra budget.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable

from handoff.adapters.rate_limit.base import AbstractRateLimitStore, RateLimitResult
from handoff.adapters.rate_limit.in_memory import InMemoryRateLimitStore

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter:
    """Admit or reject requests per key under a fixed-window quota.

    Attributes:
        name: Label used in logs and metrics (e.g., ``otp_generate``).
        window_seconds: Length of a window.
        max_requests: Requests admitted per window.
        skip_successful_requests: Do not count requests whose handler succeeded.
        skip_failed_requests: Do not count requests whose handler failed.
    """

    def __init__(
        self,
        *,
        window_seconds: float,
        max_requests: int,
        name: str = "default",
        store: AbstractRateLimitStore | None = None,
        skip_successful_requests: bool = False,
        skip_failed_requests: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            window_seconds: Size of the fixed window in seconds.
            max_requests: Maximum number of admitted requests per window.
            name: Label for logs.
            store: Counter store; a private in-memory store when omitted.
            skip_successful_requests: Refund requests that completed successfully.
            skip_failed_requests: Refund requests that failed downstream.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If max_requests or window_seconds are invalid.
        """
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")

        self.name = name
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.skip_successful_requests = skip_successful_requests
        self.skip_failed_requests = skip_failed_requests
        self._store = store if store is not None else InMemoryRateLimitStore()
        self._clock = clock

    @property
    def store(self) -> AbstractRateLimitStore:
        return self._store

    def check(self, key: str) -> RateLimitResult:
        """Count a request for ``key`` and decide whether it is admitted.

        Args:
            key: Unique identifier for rate limiting (e.g., caller IP).

        Returns:
            RateLimitResult with the decision and window metadata.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()
        entry = self._store.hit(key, now=now, window_seconds=self.window_seconds)

        allowed = entry.count <= self.max_requests
        remaining = max(0, self.max_requests - entry.count)
        retry_after = None if allowed else max(0, int(math.ceil(entry.reset_at - now)))

        return RateLimitResult(
            allowed=allowed,
            limit=self.max_requests,
            remaining=remaining,
            reset_at=int(math.ceil(entry.reset_at)),
            retry_after_seconds=retry_after,
        )

    def record_outcome(self, key: str, *, succeeded: bool) -> None:
        """Apply the skip flags once the downstream handler has finished."""
        if (succeeded and self.skip_successful_requests) or (
            not succeeded and self.skip_failed_requests
        ):
            self._store.release(key, now=self._clock())

    def sweep(self) -> int:
        """Drop stale entries so idle keys do not accumulate."""
        removed = self._store.purge_expired(now=self._clock())
        if removed:
            logger.debug(
                "rate_limit.swept",
                extra={"limiter": self.name, "removed": removed},
            )
        return removed
