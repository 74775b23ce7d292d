"""Development channel that records deliveries in the log only.

Message bodies carry OTP codes, so only the masked recipient, correlation id
and body length are logged.
"""

from __future__ import annotations

import logging
import uuid

from handoff.adapters.notifications.base import AbstractNotificationChannel, DeliveryResult
from handoff.core.logging import mask_contact

logger = logging.getLogger(__name__)


class LoggingNotificationChannel(AbstractNotificationChannel):
    """Pretend-delivery channel for local development and demos."""

    name = "log"

    def __init__(self) -> None:
        self.sent_count = 0

    async def send(
        self,
        contact: str,
        message: str,
        *,
        correlation_id: str | None = None,
    ) -> DeliveryResult:
        if not contact:
            return DeliveryResult(success=False, error="Recipient is required")
        self.sent_count += 1
        message_id = f"log-{uuid.uuid4().hex[:12]}"
        logger.info(
            "notification.logged",
            extra={
                "channel": self.name,
                "correlation_id": correlation_id,
                "recipient": mask_contact(contact),
                "body_chars": len(message),
                "provider_message_id": message_id,
            },
        )
        return DeliveryResult(success=True, provider_message_id=message_id)
