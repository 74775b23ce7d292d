"""In-memory OTP store and order gateway.

Notes:
- Per-process only: state is lost on restart and not shared between workers.
- Thread-safe: every read-modify-write runs under one lock, and callers only
  ever receive copies of the stored records.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import replace
from datetime import datetime

from handoff.adapters.storage.base import (
    AbstractOrderGateway,
    AbstractOtpStore,
    Order,
    OrderStatus,
    OtpRecord,
)
from handoff.core.errors import PersistenceAppError


class InMemoryOtpStore(AbstractOtpStore):
    """Dictionary-backed OTP records keyed by record id."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, OtpRecord] = {}
        self._sequence = itertools.count(1)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    async def get(self, record_id: str) -> OtpRecord | None:
        with self._lock:
            record = self._records.get(record_id)
            return replace(record) if record else None

    async def insert(self, record: OtpRecord) -> OtpRecord:
        with self._lock:
            stored = replace(record, sequence=next(self._sequence))
            self._records[stored.id] = stored
            return replace(stored)

    async def fetch_latest_active(self, order_id: str) -> OtpRecord | None:
        with self._lock:
            candidates = [
                r for r in self._records.values()
                if r.order_id == order_id and not r.invalidated
            ]
            if not candidates:
                return None
            latest = max(candidates, key=lambda r: (r.created_at, r.sequence))
            return replace(latest)

    async def increment_attempts(self, record_id: str) -> int | None:
        with self._lock:
            record = self._records.get(record_id)
            if record is None or record.invalidated:
                return None
            record.attempts += 1
            return record.attempts

    async def invalidate(self, record_id: str, *, now: datetime) -> bool:
        with self._lock:
            record = self._records.get(record_id)
            if record is None or record.invalidated:
                return False
            record.invalidated = True
            record.verified_at = now
            return True

    async def supersede_active(self, order_id: str, *, keep: str | None = None) -> int:
        with self._lock:
            superseded = 0
            for record in self._records.values():
                if record.order_id == order_id and not record.invalidated and record.id != keep:
                    record.invalidated = True
                    superseded += 1
            return superseded

    async def purge_expired(self, *, now: datetime) -> int:
        with self._lock:
            doomed = [
                rid for rid, r in self._records.items()
                if r.invalidated or r.expires_at < now
            ]
            for rid in doomed:
                del self._records[rid]
            return len(doomed)


class InMemoryOrderGateway(AbstractOrderGateway):
    """Orders held in a dict; ``add`` stands in for the CRUD layer."""

    def __init__(self, orders: list[Order] | None = None) -> None:
        self._lock = threading.Lock()
        self._orders: dict[str, Order] = {o.id: replace(o) for o in orders or []}

    def add(self, order: Order) -> None:
        with self._lock:
            self._orders[order.id] = replace(order)

    async def fetch_order(self, order_id: str) -> Order | None:
        with self._lock:
            order = self._orders.get(order_id)
            return replace(order) if order else None

    async def update_order_status(self, order_id: str, status: OrderStatus) -> Order:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise PersistenceAppError(
                    code="internal_error",
                    message="Failed to update order status",
                    details={"order_id": order_id},
                )
            order.status = status
            return replace(order)
