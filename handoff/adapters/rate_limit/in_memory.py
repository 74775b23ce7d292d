"""In-memory fixed-window rate limit store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import threading
from dataclasses import replace

from handoff.adapters.rate_limit.base import AbstractRateLimitStore, RateLimitEntry


class InMemoryRateLimitStore(AbstractRateLimitStore):
    """Dictionary-backed bucket of rate limit entries.

    Important:
        Each store instance is private state. Two limiters only share counters
        when they are explicitly given the same store.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._entries: dict[str, RateLimitEntry] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def hit(self, key: str, *, now: float, window_seconds: float) -> RateLimitEntry:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.is_stale(now):
                entry = RateLimitEntry(count=0, reset_at=now + window_seconds)
                self._entries[key] = entry
            entry.count += 1
            return replace(entry)

    def release(self, key: str, *, now: float) -> None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.is_stale(now) or entry.count <= 0:
                return
            entry.count -= 1

    def purge_expired(self, *, now: float) -> int:
        with self._lock:
            stale = [key for key, entry in self._entries.items() if entry.is_stale(now)]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def get(self, key: str) -> RateLimitEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            return replace(entry) if entry is not None else None
