"""Domain records and persistence interfaces.

The OTP manager depends on these abstractions only, so the in-memory adapters
used in tests and single-process deployments can be swapped for a database
without touching the service.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class OrderStatus(str, Enum):
    NEW = "NEW"
    PROCESSING = "PROCESSING"
    READY = "READY"
    DISPATCHED = "DISPATCHED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_closed(self) -> bool:
        return self in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


class OtpState(str, Enum):
    ACTIVE = "ACTIVE"
    VERIFIED = "VERIFIED"
    SUPERSEDED = "SUPERSEDED"
    EXHAUSTED = "EXHAUSTED"
    EXPIRED = "EXPIRED"


@dataclass
class Order:
    """Read model of an order owned by the CRUD layer.

    Attributes:
        id: Order primary key.
        customer_contact: Customer phone number used for WhatsApp delivery.
        status: Current lifecycle status.
        public_token: Opaque token behind the customer tracking/survey pages.
        readable_id: Short human-facing reference shown in messages.
        sme_id: Owning business, forwarded to the notification channel.
    """

    id: str
    customer_contact: str | None
    status: OrderStatus = OrderStatus.NEW
    public_token: str | None = None
    readable_id: str | None = None
    sme_id: str | None = None

    @property
    def reference(self) -> str:
        return self.readable_id or self.id


@dataclass
class OtpRecord:
    """A hashed delivery passcode issued for one order.

    ``sequence`` is assigned by the store on insert and breaks ties between
    records sharing the same ``created_at``.
    """

    order_id: str
    otp_hash: str
    salt: str
    created_at: datetime
    expires_at: datetime
    attempts: int = 0
    invalidated: bool = False
    verified_at: datetime | None = None
    sequence: int = 0
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def state(self, now: datetime, *, max_attempts: int) -> OtpState:
        if self.invalidated:
            return OtpState.VERIFIED if self.verified_at else OtpState.SUPERSEDED
        if self.attempts >= max_attempts:
            return OtpState.EXHAUSTED
        if self.is_expired(now):
            return OtpState.EXPIRED
        return OtpState.ACTIVE


class AbstractOtpStore(ABC):
    """Storage for OTP records.

    ``increment_attempts`` and ``invalidate`` must be atomic with respect to
    concurrent callers; ``invalidate`` is a conditional update that exactly one
    caller can win.

    All methods raise PersistenceAppError on backend failures.
    """

    @abstractmethod
    async def insert(self, record: OtpRecord) -> OtpRecord:
        """Persist a new record and return it with its sequence assigned."""

    @abstractmethod
    async def fetch_latest_active(self, order_id: str) -> OtpRecord | None:
        """Return the newest non-invalidated record for the order.

        Ordered by ``created_at`` then ``sequence``, both descending. Expired
        or exhausted records are still returned; callers classify them.
        """

    @abstractmethod
    async def increment_attempts(self, record_id: str) -> int | None:
        """Add one failed attempt; return the new count, or None if the record
        is gone or already invalidated."""

    @abstractmethod
    async def invalidate(self, record_id: str, *, now: datetime) -> bool:
        """Mark a record as verified if it is still active.

        Returns:
            True for the single caller that performed the transition.
        """

    @abstractmethod
    async def supersede_active(self, order_id: str, *, keep: str | None = None) -> int:
        """Invalidate every still-active record of an order except ``keep``.

        Returns:
            Number of records invalidated.
        """

    @abstractmethod
    async def purge_expired(self, *, now: datetime) -> int:
        """Delete records that are expired or invalidated; return the count."""


class AbstractOrderGateway(ABC):
    """Access to orders owned by the CRUD layer."""

    @abstractmethod
    async def fetch_order(self, order_id: str) -> Order | None:
        """Return the order or None when it does not exist."""

    @abstractmethod
    async def update_order_status(self, order_id: str, status: OrderStatus) -> Order:
        """Set the order status and return the updated order.

        Raises:
            PersistenceAppError: If the order vanished or the backend failed.
        """
