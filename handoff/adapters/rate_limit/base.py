"""Rate limit store interface and result types.

The limiter depends on this abstraction (not the concrete implementation) so
storage backends can be swapped later with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class RateLimitEntry:
    """Counter for one key in the current fixed window.

    Attributes:
        count: Requests counted since the window opened (admitted or not).
        reset_at: UNIX time in seconds when the window closes.
    """

    count: int
    reset_at: float

    def is_stale(self, now: float) -> bool:
        return now >= self.reset_at


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window resets.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractRateLimitStore(ABC):
    """Keyed bucket of fixed-window counters.

    Implementations must make ``hit`` and ``release`` atomic per key so that no
    two concurrent callers observe the same pre-increment count.
    """

    @abstractmethod
    def hit(self, key: str, *, now: float, window_seconds: float) -> RateLimitEntry:
        """Count one request for ``key`` and return a snapshot of its entry.

        A missing or stale entry is replaced by a fresh window
        ``{count: 0, reset_at: now + window_seconds}`` before incrementing.
        """
        raise NotImplementedError

    @abstractmethod
    def release(self, key: str, *, now: float) -> None:
        """Give back one unit of the current window for ``key``.

        No-op when the entry is missing, stale or already at zero.
        """
        raise NotImplementedError

    @abstractmethod
    def purge_expired(self, *, now: float) -> int:
        """Delete stale entries and return how many were removed."""
        raise NotImplementedError

    @abstractmethod
    def get(self, key: str) -> RateLimitEntry | None:
        """Return a snapshot of the entry for ``key`` (for inspection only)."""
        raise NotImplementedError
