from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class DeliveryResult:
	"""Outcome of one message delivery (after the channel's own retries).

	Attributes:
		success: Whether the provider accepted the message.
		provider_message_id: Provider reference (e.g., Twilio message SID).
		error: Human-readable failure reason when ``success`` is False.
	"""

	success: bool
	provider_message_id: str | None = None
	error: str | None = None


class AbstractNotificationChannel(ABC):
	"""Interface for channels that deliver text messages to customers."""

	name: str = "abstract"

	@abstractmethod
	async def send(
		self,
		contact: str,
		message: str,
		*,
		correlation_id: str | None = None,
	) -> DeliveryResult:
		"""Deliver ``message`` to ``contact``.

		Args:
			contact: Customer phone number as stored on the order.
			message: Message body.
			correlation_id: Identifier tying the delivery to a business object
				(typically the order id) in provider logs.

		Returns:
			DeliveryResult: Never raises for provider or input failures; those
			are reported through ``success``/``error``.
		"""
		...

	def accepts_contact(self, contact: str) -> bool:
		"""Whether ``contact`` is an address this channel can deliver to."""
		return bool(contact)

	async def aclose(self) -> None:
		"""Release provider resources (no-op by default)."""
