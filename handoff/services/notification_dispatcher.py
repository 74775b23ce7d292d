"""Best-effort customer notifications.

Business state (OTP creation, order completion) never depends on delivery.
The dispatcher converts every channel failure, including unexpected
exceptions, into a logged DeliveryResult, and tracks background deliveries so
they stay observable and can be drained on shutdown.
"""

from __future__ import annotations

import asyncio
import logging

from handoff.adapters.notifications.base import AbstractNotificationChannel, DeliveryResult

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Wrap a channel with failure isolation and task tracking.

    Attributes:
        channel: Underlying delivery channel.
        delivered: Count of successful deliveries.
        failed: Count of failed deliveries.
    """

    def __init__(self, channel: AbstractNotificationChannel) -> None:
        self.channel = channel
        self.delivered = 0
        self.failed = 0
        self._pending: set[asyncio.Task[DeliveryResult]] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def deliver(
        self,
        contact: str,
        message: str,
        *,
        correlation_id: str | None = None,
        purpose: str = "generic",
    ) -> DeliveryResult:
        """Send now and return the outcome; never raises for delivery problems."""
        try:
            result = await self.channel.send(contact, message, correlation_id=correlation_id)
        except Exception as exc:  # channel bug or unexpected provider error
            logger.error(
                "notification.channel_error",
                extra={
                    "channel": self.channel.name,
                    "purpose": purpose,
                    "correlation_id": correlation_id,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            result = DeliveryResult(success=False, error="Notification channel error")

        if result.success:
            self.delivered += 1
        else:
            self.failed += 1
            logger.warning(
                "notification.undelivered",
                extra={
                    "channel": self.channel.name,
                    "purpose": purpose,
                    "correlation_id": correlation_id,
                    "reason": result.error,
                },
            )
        return result

    def schedule(
        self,
        contact: str,
        message: str,
        *,
        correlation_id: str | None = None,
        purpose: str = "generic",
    ) -> asyncio.Task[DeliveryResult]:
        """Deliver in the background; the task is tracked until it finishes."""
        task = asyncio.get_running_loop().create_task(
            self.deliver(contact, message, correlation_id=correlation_id, purpose=purpose),
            name=f"notify:{purpose}:{correlation_id}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for scheduled deliveries (used on shutdown and in tests)."""
        if not self._pending:
            return
        pending = list(self._pending)
        done, not_done = await asyncio.wait(pending, timeout=timeout)
        if not_done:
            logger.warning(
                "notification.drain_timeout",
                extra={"unfinished": len(not_done), "finished": len(done)},
            )
            for task in not_done:
                task.cancel()
