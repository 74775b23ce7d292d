"""SQLite-backed OTP store and order gateway.

This module provides:
- SqliteDatabase: one shared connection, WAL mode, schema on first use
- SqliteOtpStore: OTP records with conditional (compare-and-set) updates
- SqliteOrderGateway: order reads and the status update

Blocking sqlite3 calls run in a worker thread under a lock, so the event loop
never waits on disk I/O and each unit of work is one transaction.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, TypeVar

from handoff.adapters.storage.base import (
    AbstractOrderGateway,
    AbstractOtpStore,
    Order,
    OrderStatus,
    OtpRecord,
)
from handoff.core.errors import PersistenceAppError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCHEMA_SQL = """
-- Orders are owned by the CRUD layer; only the columns read here are declared
CREATE TABLE IF NOT EXISTS orders (
    id TEXT PRIMARY KEY,
    customer_contact TEXT,
    status TEXT NOT NULL DEFAULT 'NEW',
    public_token TEXT,
    readable_id TEXT,
    sme_id TEXT,
    updated_at TEXT
);

-- sequence gives a total order between records created in the same instant
CREATE TABLE IF NOT EXISTS orders_otp (
    sequence INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    order_id TEXT NOT NULL,
    otp_hash TEXT NOT NULL,
    salt TEXT NOT NULL,
    created_at TEXT NOT NULL,
    expires_at TEXT NOT NULL,
    attempts INTEGER NOT NULL DEFAULT 0,
    invalidated INTEGER NOT NULL DEFAULT 0,
    verified_at TEXT,
    updated_at TEXT,
    FOREIGN KEY (order_id) REFERENCES orders(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_orders_otp_order_id ON orders_otp(order_id);
CREATE INDEX IF NOT EXISTS idx_orders_otp_expires_at ON orders_otp(expires_at);
"""


def _to_db_time(value: datetime) -> str:
    # Fixed-width UTC text keeps lexical order equal to chronological order.
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db_time(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SqliteDatabase:
    """SQLite connection wrapper shared by the store and the gateway.

    Provides:
    - WAL mode for crash recovery
    - Parameterized queries only
    - One transaction per ``run`` call, rolled back on error
    """

    def __init__(self, db_path: str) -> None:
        """Open the database and create the schema.

        Args:
            db_path: Path to the SQLite database file (``:memory:`` for tests).
        """
        self._db_path = db_path
        self._lock = threading.Lock()
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(SCHEMA_SQL)
        self._conn.commit()

    def _run_locked(self, work: Callable[[sqlite3.Connection], T]) -> T:
        with self._lock:
            try:
                result = work(self._conn)
                self._conn.commit()
                return result
            except sqlite3.Error as exc:
                self._conn.rollback()
                logger.error(
                    "storage.sqlite_error",
                    extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
                )
                raise PersistenceAppError(
                    code="internal_error",
                    message="A storage error occurred",
                ) from exc

    async def run(self, work: Callable[[sqlite3.Connection], T]) -> T:
        """Execute ``work`` in one transaction on a worker thread."""
        return await asyncio.to_thread(self._run_locked, work)

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def _row_to_record(row: sqlite3.Row) -> OtpRecord:
    return OtpRecord(
        id=row["id"],
        order_id=row["order_id"],
        otp_hash=row["otp_hash"],
        salt=row["salt"],
        created_at=_from_db_time(row["created_at"]),  # type: ignore[arg-type]
        expires_at=_from_db_time(row["expires_at"]),  # type: ignore[arg-type]
        attempts=row["attempts"],
        invalidated=bool(row["invalidated"]),
        verified_at=_from_db_time(row["verified_at"]),
        sequence=row["sequence"],
    )


def _row_to_order(row: sqlite3.Row) -> Order:
    return Order(
        id=row["id"],
        customer_contact=row["customer_contact"],
        status=OrderStatus(row["status"]),
        public_token=row["public_token"],
        readable_id=row["readable_id"],
        sme_id=row["sme_id"],
    )


class SqliteOtpStore(AbstractOtpStore):
    """OTP records in the ``orders_otp`` table."""

    def __init__(self, db: SqliteDatabase) -> None:
        self._db = db

    async def insert(self, record: OtpRecord) -> OtpRecord:
        def work(conn: sqlite3.Connection) -> OtpRecord:
            cursor = conn.execute(
                """INSERT INTO orders_otp
                   (id, order_id, otp_hash, salt, created_at, expires_at,
                    attempts, invalidated, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    record.id,
                    record.order_id,
                    record.otp_hash,
                    record.salt,
                    _to_db_time(record.created_at),
                    _to_db_time(record.expires_at),
                    record.attempts,
                    int(record.invalidated),
                    _to_db_time(record.created_at),
                ),
            )
            row = conn.execute(
                "SELECT * FROM orders_otp WHERE sequence = ?", (cursor.lastrowid,)
            ).fetchone()
            return _row_to_record(row)

        return await self._db.run(work)

    async def fetch_latest_active(self, order_id: str) -> OtpRecord | None:
        def work(conn: sqlite3.Connection) -> OtpRecord | None:
            row = conn.execute(
                """SELECT * FROM orders_otp
                   WHERE order_id = ? AND invalidated = 0
                   ORDER BY created_at DESC, sequence DESC
                   LIMIT 1""",
                (order_id,),
            ).fetchone()
            return _row_to_record(row) if row else None

        return await self._db.run(work)

    async def increment_attempts(self, record_id: str) -> int | None:
        def work(conn: sqlite3.Connection) -> int | None:
            cursor = conn.execute(
                """UPDATE orders_otp
                   SET attempts = attempts + 1, updated_at = ?
                   WHERE id = ? AND invalidated = 0""",
                (_to_db_time(datetime.now(timezone.utc)), record_id),
            )
            if cursor.rowcount != 1:
                return None
            row = conn.execute(
                "SELECT attempts FROM orders_otp WHERE id = ?", (record_id,)
            ).fetchone()
            return int(row["attempts"])

        return await self._db.run(work)

    async def invalidate(self, record_id: str, *, now: datetime) -> bool:
        def work(conn: sqlite3.Connection) -> bool:
            cursor = conn.execute(
                """UPDATE orders_otp
                   SET invalidated = 1, verified_at = ?, updated_at = ?
                   WHERE id = ? AND invalidated = 0""",
                (_to_db_time(now), _to_db_time(now), record_id),
            )
            return cursor.rowcount == 1

        return await self._db.run(work)

    async def supersede_active(self, order_id: str, *, keep: str | None = None) -> int:
        def work(conn: sqlite3.Connection) -> int:
            cursor = conn.execute(
                """UPDATE orders_otp
                   SET invalidated = 1, updated_at = ?
                   WHERE order_id = ? AND invalidated = 0 AND id IS NOT ?""",
                (_to_db_time(datetime.now(timezone.utc)), order_id, keep),
            )
            return cursor.rowcount

        return await self._db.run(work)

    async def purge_expired(self, *, now: datetime) -> int:
        def work(conn: sqlite3.Connection) -> int:
            cursor = conn.execute(
                "DELETE FROM orders_otp WHERE invalidated = 1 OR expires_at < ?",
                (_to_db_time(now),),
            )
            return cursor.rowcount

        return await self._db.run(work)


class SqliteOrderGateway(AbstractOrderGateway):
    """Orders in the ``orders`` table."""

    def __init__(self, db: SqliteDatabase) -> None:
        self._db = db

    async def save_order(self, order: Order) -> None:
        """Insert or replace an order row (stand-in for the CRUD layer)."""

        def work(conn: sqlite3.Connection) -> None:
            conn.execute(
                """INSERT INTO orders
                   (id, customer_contact, status, public_token, readable_id, sme_id, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                     customer_contact = excluded.customer_contact,
                     status = excluded.status,
                     public_token = excluded.public_token,
                     readable_id = excluded.readable_id,
                     sme_id = excluded.sme_id,
                     updated_at = excluded.updated_at""",
                (
                    order.id,
                    order.customer_contact,
                    order.status.value,
                    order.public_token,
                    order.readable_id,
                    order.sme_id,
                    _to_db_time(datetime.now(timezone.utc)),
                ),
            )

        await self._db.run(work)

    async def fetch_order(self, order_id: str) -> Order | None:
        def work(conn: sqlite3.Connection) -> Order | None:
            row = conn.execute("SELECT * FROM orders WHERE id = ?", (order_id,)).fetchone()
            return _row_to_order(row) if row else None

        return await self._db.run(work)

    async def update_order_status(self, order_id: str, status: OrderStatus) -> Order:
        def work(conn: sqlite3.Connection) -> Order | None:
            conn.execute(
                "UPDATE orders SET status = ?, updated_at = ? WHERE id = ?",
                (status.value, _to_db_time(datetime.now(timezone.utc)), order_id),
            )
            row = conn.execute("SELECT * FROM orders WHERE id = ?", (order_id,)).fetchone()
            return _row_to_order(row) if row else None

        order = await self._db.run(work)
        if order is None:
            raise PersistenceAppError(
                code="internal_error",
                message="Failed to update order status",
                details={"order_id": order_id},
            )
        return order
