"""Delivery confirmation by one-time passcode.

A courier proves physical handoff by relaying the code the customer received
on WhatsApp. This service is the core business logic that:
- Issues short-lived numeric codes and stores only their scrypt digests
- Verifies submitted codes with attempt accounting and lazy expiry
- Moves the order to COMPLETED exactly once per verified code
- Notifies the customer, best-effort, without coupling state to delivery
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from handoff.adapters.storage.base import (
    AbstractOrderGateway,
    AbstractOtpStore,
    Order,
    OrderStatus,
    OtpRecord,
)
from handoff.core.errors import (
    ConflictAppError,
    InvalidOtpAppError,
    NotFoundAppError,
    OtpExpiredAppError,
    TooManyAttemptsAppError,
    ValidationAppError,
)
from handoff.services.notification_dispatcher import NotificationDispatcher
from handoff.utils.otp_crypto import ScryptHasher, generate_code, generate_salt

logger = logging.getLogger(__name__)


def build_otp_message(code: str, ttl_seconds: int) -> str:
    minutes = max(1, ttl_seconds // 60)
    return f"Your delivery OTP is {code}. It expires in {minutes} minutes."


def build_completion_message(order: Order, survey_url: str | None) -> str:
    message = (
        f"Your order #{order.reference} has been delivered. "
        "Thank you for your purchase! ✅"
    )
    if survey_url:
        message += f"\n\nPlease rate your experience: {survey_url}"
    return message


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_open(order: Order) -> None:
    if order.status.is_closed:
        raise ConflictAppError(
            code="order_closed",
            message=f"Order is already {order.status.value.lower()}",
            details={"status": order.status.value},
        )


@dataclass(frozen=True)
class OtpResult:
    """Successful outcome of an OTP operation.

    Attributes:
        success: Always True; failures are raised as AppError subclasses.
        message: Human-readable outcome.
        warning: Advisory note, e.g. when the customer could not be notified.
    """

    message: str
    warning: str | None = None
    success: bool = True


class OtpManager:
    """Gate an order's transition to COMPLETED behind a delivery code.

    Attributes:
        otp_store: Persistence for OTP records.
        orders: Gateway to the order CRUD layer.
        notifier: Best-effort customer notification dispatcher.
        hasher: Key derivation used for codes.
    """

    def __init__(
        self,
        *,
        otp_store: AbstractOtpStore,
        orders: AbstractOrderGateway,
        notifier: NotificationDispatcher,
        hasher: ScryptHasher | None = None,
        ttl_seconds: int = 300,
        max_attempts: int = 5,
        code_range: tuple[int, int] = (1000, 9999),
        salt_bytes: int = 16,
        frontend_url: str | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.otp_store = otp_store
        self.orders = orders
        self.notifier = notifier
        self.hasher = hasher or ScryptHasher()
        self.ttl = timedelta(seconds=ttl_seconds)
        self.max_attempts = max_attempts
        self.code_range = code_range
        self.salt_bytes = salt_bytes
        self.frontend_url = frontend_url.rstrip("/") if frontend_url else None
        self._clock = clock

    def survey_url(self, order: Order) -> str | None:
        if not (self.frontend_url and order.public_token):
            return None
        return f"{self.frontend_url}/csat/{order.public_token}"

    async def _load_deliverable_order(self, order_id: str) -> Order:
        order = await self.orders.fetch_order(order_id)
        if order is None:
            raise NotFoundAppError(code="order_not_found", message="Order not found")
        if not order.customer_contact:
            raise NotFoundAppError(
                code="customer_contact_missing",
                message="Customer phone not found on order",
            )
        if not self.notifier.channel.accepts_contact(order.customer_contact):
            raise NotFoundAppError(
                code="customer_contact_invalid",
                message="Customer phone number cannot receive messages",
            )
        _ensure_open(order)
        return order

    async def generate(self, order_id: str) -> OtpResult:
        """Issue a new code for the order and send it to the customer.

        Args:
            order_id: Order to confirm.

        Returns:
            OtpResult, with ``warning`` set when WhatsApp delivery failed.

        Raises:
            ValidationAppError: If order_id is missing.
            NotFoundAppError: If the order is missing or its contact is unusable.
            ConflictAppError: If the order is already completed or cancelled.
            PersistenceAppError: If the OTP store or order gateway fails.
        """
        if not order_id:
            raise ValidationAppError(code="order_id_required", message="Order ID is required")

        order = await self._load_deliverable_order(order_id)

        code = generate_code(*self.code_range)
        salt = generate_salt(self.salt_bytes)
        # scrypt is CPU-bound; run it off the event loop
        otp_hash = await asyncio.to_thread(self.hasher.derive, code, salt)

        now = self._clock()
        record = await self.otp_store.insert(
            OtpRecord(
                order_id=order_id,
                otp_hash=otp_hash,
                salt=salt,
                created_at=now,
                expires_at=now + self.ttl,
            )
        )
        # Older codes stay valid until the new one is safely stored
        superseded = await self.otp_store.supersede_active(order_id, keep=record.id)
        logger.info(
            "otp.generated",
            extra={
                "order_id": order_id,
                "otp_id": record.id,
                "sequence": record.sequence,
                "superseded": superseded,
                "expires_at": record.expires_at.isoformat(),
            },
        )

        delivery = await self.notifier.deliver(
            order.customer_contact,  # type: ignore[arg-type]
            build_otp_message(code, int(self.ttl.total_seconds())),
            correlation_id=order_id,
            purpose="otp",
        )
        if not delivery.success:
            return OtpResult(
                message="OTP generated but could not be delivered",
                warning=f"WhatsApp delivery failed: {delivery.error}",
            )
        return OtpResult(message="OTP generated and sent")

    async def verify(self, order_id: str, submitted_code: str | None) -> OtpResult:
        """Check a courier-submitted code and complete the order on match.

        Args:
            order_id: Order being delivered.
            submitted_code: Code relayed by the customer.

        Returns:
            OtpResult on success (order is COMPLETED).

        Raises:
            ValidationAppError: If order_id or the code is missing.
            NotFoundAppError: If there is no active code (or it was just used).
            ConflictAppError: If the order was closed after the code was issued.
            TooManyAttemptsAppError: If the code used up its attempts.
            OtpExpiredAppError: If the code is past its expiry.
            InvalidOtpAppError: If the code does not match.
            PersistenceAppError: If the OTP store or order gateway fails.
        """
        if not order_id:
            raise ValidationAppError(code="order_id_required", message="Order ID is required")
        if not submitted_code:
            raise ValidationAppError(code="otp_required", message="OTP is required")

        record = await self.otp_store.fetch_latest_active(order_id)
        if record is None:
            raise NotFoundAppError(code="otp_not_found", message="OTP not found for order")

        if record.attempts >= self.max_attempts:
            raise TooManyAttemptsAppError(
                code="otp_attempts_exhausted",
                message="Too many attempts. Request a new OTP.",
                details={"max_attempts": self.max_attempts},
            )

        if record.is_expired(self._clock()):
            raise OtpExpiredAppError(
                code="otp_expired",
                message="OTP expired. Request a new OTP.",
            )

        matched = await asyncio.to_thread(
            self.hasher.matches, submitted_code, record.salt, record.otp_hash
        )
        if not matched:
            attempts = await self.otp_store.increment_attempts(record.id)
            if attempts is None:
                # Verified or superseded while we were hashing
                raise NotFoundAppError(code="otp_not_found", message="OTP not found for order")
            remaining = max(0, self.max_attempts - attempts)
            logger.warning(
                "otp.verify_failed",
                extra={"order_id": order_id, "otp_id": record.id, "attempts": attempts},
            )
            raise InvalidOtpAppError(
                code="otp_invalid",
                message=f"Invalid OTP. {remaining} attempt(s) remaining.",
                details={"attempts": attempts, "attempts_remaining": remaining},
            )

        current = await self.orders.fetch_order(order_id)
        if current is None:
            raise NotFoundAppError(code="order_not_found", message="Order not found")
        _ensure_open(current)

        # Only the caller that flips the record may complete the order
        if not await self.otp_store.invalidate(record.id, now=self._clock()):
            logger.info(
                "otp.verify_lost_race",
                extra={"order_id": order_id, "otp_id": record.id},
            )
            raise NotFoundAppError(code="otp_not_found", message="OTP not found for order")

        order = await self.orders.update_order_status(order_id, OrderStatus.COMPLETED)
        logger.info(
            "otp.verified",
            extra={"order_id": order_id, "otp_id": record.id, "status": order.status.value},
        )

        if order.customer_contact:
            self.notifier.schedule(
                order.customer_contact,
                build_completion_message(order, self.survey_url(order)),
                correlation_id=order_id,
                purpose="completion",
            )

        return OtpResult(message="OTP verified, order marked as COMPLETED")
