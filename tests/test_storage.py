"""Contract tests run against both OTP store / order gateway backends."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from handoff.adapters.storage.base import Order, OrderStatus, OtpRecord
from handoff.adapters.storage.in_memory import InMemoryOrderGateway, InMemoryOtpStore
from handoff.adapters.storage.sqlite import SqliteDatabase, SqliteOrderGateway, SqliteOtpStore
from handoff.core.errors import PersistenceAppError

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def backend(request, order: Order):
    if request.param == "memory":
        yield InMemoryOtpStore(), InMemoryOrderGateway([order])
        return

    db = SqliteDatabase(":memory:")
    gateway = SqliteOrderGateway(db)
    await gateway.save_order(order)
    await gateway.save_order(Order(id="order-2", customer_contact="08012345678"))
    yield SqliteOtpStore(db), gateway
    db.close()


def make_record(order_id: str = "order-1", created_at=T0, ttl: int = 300) -> OtpRecord:
    return OtpRecord(
        order_id=order_id,
        otp_hash="ab" * 16,
        salt="cd" * 16,
        created_at=created_at,
        expires_at=created_at + timedelta(seconds=ttl),
    )


@pytest.mark.asyncio
async def test_insert_assigns_increasing_sequence(backend) -> None:
    store, _ = backend

    first = await store.insert(make_record())
    second = await store.insert(make_record())

    assert first.sequence >= 1
    assert second.sequence > first.sequence
    assert first.created_at == T0
    assert first.expires_at == T0 + timedelta(seconds=300)


@pytest.mark.asyncio
async def test_latest_active_breaks_timestamp_ties_by_sequence(backend) -> None:
    store, _ = backend

    await store.insert(make_record())
    newest = await store.insert(make_record())

    latest = await store.fetch_latest_active("order-1")
    assert latest.id == newest.id


@pytest.mark.asyncio
async def test_latest_active_prefers_newer_created_at(backend) -> None:
    store, _ = backend

    newer = await store.insert(make_record(created_at=T0 + timedelta(seconds=5)))
    await store.insert(make_record(created_at=T0))

    assert (await store.fetch_latest_active("order-1")).id == newer.id


@pytest.mark.asyncio
async def test_latest_active_skips_invalidated_and_other_orders(backend) -> None:
    store, _ = backend
    kept = await store.insert(make_record())
    used = await store.insert(make_record())
    await store.insert(make_record(order_id="order-2"))

    assert await store.invalidate(used.id, now=T0) is True

    assert (await store.fetch_latest_active("order-1")).id == kept.id
    assert await store.fetch_latest_active("missing") is None


@pytest.mark.asyncio
async def test_invalidate_is_won_once(backend) -> None:
    store, _ = backend
    record = await store.insert(make_record())

    assert await store.invalidate(record.id, now=T0) is True
    assert await store.invalidate(record.id, now=T0) is False
    assert await store.invalidate("unknown", now=T0) is False


@pytest.mark.asyncio
async def test_increment_attempts(backend) -> None:
    store, _ = backend
    record = await store.insert(make_record())

    assert await store.increment_attempts(record.id) == 1
    assert await store.increment_attempts(record.id) == 2
    assert (await store.fetch_latest_active("order-1")).attempts == 2

    await store.invalidate(record.id, now=T0)
    assert await store.increment_attempts(record.id) is None
    assert await store.increment_attempts("unknown") is None


@pytest.mark.asyncio
async def test_supersede_active(backend) -> None:
    store, _ = backend
    await store.insert(make_record())
    await store.insert(make_record())
    await store.insert(make_record(order_id="order-2"))

    assert await store.supersede_active("order-1") == 2
    assert await store.fetch_latest_active("order-1") is None
    assert await store.fetch_latest_active("order-2") is not None


@pytest.mark.asyncio
async def test_supersede_active_spares_kept_record(backend) -> None:
    store, _ = backend
    old = await store.insert(make_record())
    new = await store.insert(make_record())

    assert await store.supersede_active("order-1", keep=new.id) == 1
    assert (await store.fetch_latest_active("order-1")).id == new.id
    await store.invalidate(new.id, now=T0)
    assert await store.fetch_latest_active("order-1") is None
    assert await store.increment_attempts(old.id) is None


@pytest.mark.asyncio
async def test_purge_expired_removes_expired_and_used(backend) -> None:
    store, _ = backend
    await store.insert(make_record(created_at=T0 - timedelta(hours=1)))
    used = await store.insert(make_record())
    live = await store.insert(make_record())
    await store.invalidate(used.id, now=T0)

    assert await store.purge_expired(now=T0 + timedelta(seconds=1)) == 2
    assert (await store.fetch_latest_active("order-1")).id == live.id


@pytest.mark.asyncio
async def test_order_gateway_fetch_and_update(backend) -> None:
    _, orders = backend

    fetched = await orders.fetch_order("order-1")
    assert fetched.customer_contact == "+2348012345678"
    assert fetched.status is OrderStatus.DISPATCHED
    assert fetched.public_token == "pub-token-1"
    assert fetched.reference == "A1B2"
    assert await orders.fetch_order("missing") is None

    updated = await orders.update_order_status("order-1", OrderStatus.COMPLETED)
    assert updated.status is OrderStatus.COMPLETED
    assert (await orders.fetch_order("order-1")).status is OrderStatus.COMPLETED


@pytest.mark.asyncio
async def test_update_missing_order_raises_persistence_error(backend) -> None:
    _, orders = backend

    with pytest.raises(PersistenceAppError):
        await orders.update_order_status("missing", OrderStatus.COMPLETED)


@pytest.mark.asyncio
async def test_returned_records_are_copies() -> None:
    store = InMemoryOtpStore()
    record = await store.insert(make_record())

    record.attempts = 99
    record.invalidated = True

    stored = await store.get(record.id)
    assert stored.attempts == 0
    assert stored.invalidated is False


@pytest.mark.asyncio
async def test_sqlite_errors_become_persistence_errors() -> None:
    db = SqliteDatabase(":memory:")
    store = SqliteOtpStore(db)

    # order_id references a missing order row
    with pytest.raises(PersistenceAppError) as exc_info:
        await store.insert(make_record(order_id="ghost"))

    assert exc_info.value.message == "A storage error occurred"
    assert exc_info.value.__cause__ is not None
    db.close()


def test_sqlite_file_database_creates_parent_dir(tmp_path) -> None:
    path = tmp_path / "nested" / "handoff.db"

    db = SqliteDatabase(str(path))
    db.close()

    assert path.exists()
