"""Twilio WhatsApp notification channel.

Sends messages through the Twilio Messages REST API with bounded retries and
exponential backoff. Input problems (unparseable number, empty or oversized
body) fail fast without contacting the provider.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

from handoff.adapters.notifications.base import AbstractNotificationChannel, DeliveryResult
from handoff.core.logging import mask_contact
from handoff.utils.phone import normalize_ng_phone

logger = logging.getLogger(__name__)

MAX_BODY_CHARS = 4096


class _RetryableError(Exception):
    """Provider failure worth another attempt (5xx, 429, transport errors)."""


class TwilioWhatsAppChannel(AbstractNotificationChannel):
    """Deliver WhatsApp messages via Twilio.

    Attributes:
        max_retries: Total delivery attempts per message.
        backoff_base_seconds: Delay before the second attempt; doubles after.
    """

    name = "twilio"

    def __init__(
        self,
        *,
        account_sid: str,
        auth_token: str,
        from_number: str,
        base_url: str = "https://api.twilio.com",
        timeout_seconds: float = 10.0,
        max_retries: int = 3,
        backoff_base_seconds: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the channel.

        Args:
            account_sid: Twilio account SID (also the basic-auth user).
            auth_token: Twilio auth token.
            from_number: WhatsApp-enabled sender, ``whatsapp:`` prefix optional.
            base_url: Twilio REST API base URL.
            timeout_seconds: Per-request timeout.
            max_retries: Total attempts per message (>= 1).
            backoff_base_seconds: Initial backoff delay.
            transport: Optional httpx transport (tests use httpx.MockTransport).
            sleep: Awaitable sleep used between attempts.
        """
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_number = from_number.removeprefix("whatsapp:")
        self._url = f"{base_url.rstrip('/')}/2010-04-01/Accounts/{account_sid}/Messages.json"
        self._timeout = timeout_seconds
        self._transport = transport
        self._sleep = sleep
        self.max_retries = max_retries
        self.backoff_base_seconds = backoff_base_seconds

    def accepts_contact(self, contact: str) -> bool:
        return normalize_ng_phone(contact) is not None

    def _validate(self, contact: str, message: str) -> tuple[str | None, str | None]:
        """Return (normalized_number, error)."""
        to_number = normalize_ng_phone(contact)
        if to_number is None:
            return None, "Invalid phone number format. Use +234XXXXXXXXXX or 0XXXXXXXXXX"
        if not message:
            return None, "Message cannot be empty"
        if len(message) > MAX_BODY_CHARS:
            return None, f"Message exceeds maximum length of {MAX_BODY_CHARS} characters"
        return to_number, None

    async def _post(self, to_number: str, message: str) -> str:
        """Send one request; return the message SID.

        Raises:
            _RetryableError: For transient provider or network failures.
            RuntimeError: For permanent rejections (4xx other than 429).
        """
        data = {
            "From": f"whatsapp:{self._from_number}",
            "To": f"whatsapp:{to_number}",
            "Body": message,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self._url,
                    data=data,
                    auth=(self._account_sid, self._auth_token),
                )
        except httpx.HTTPError as exc:
            raise _RetryableError(f"Twilio request failed: {type(exc).__name__}") from exc

        if response.status_code == 429 or response.status_code >= 500:
            raise _RetryableError(f"Twilio returned HTTP {response.status_code}")
        if response.status_code >= 400:
            try:
                reason = response.json().get("message") or response.text
            except ValueError:
                reason = response.text
            raise RuntimeError(f"Twilio rejected message ({response.status_code}): {reason}")

        try:
            return str(response.json().get("sid", ""))
        except ValueError:
            return ""

    async def send(
        self,
        contact: str,
        message: str,
        *,
        correlation_id: str | None = None,
    ) -> DeliveryResult:
        to_number, error = self._validate(contact, message)
        if to_number is None:
            logger.warning(
                "notification.rejected",
                extra={
                    "channel": self.name,
                    "correlation_id": correlation_id,
                    "recipient": mask_contact(contact),
                    "reason": error,
                },
            )
            return DeliveryResult(success=False, error=error)

        last_error = "Max retries exceeded"
        for attempt in range(1, self.max_retries + 1):
            try:
                sid = await self._post(to_number, message)
            except _RetryableError as exc:
                last_error = str(exc)
            except RuntimeError as exc:
                last_error = str(exc)
                break
            else:
                logger.info(
                    "notification.sent",
                    extra={
                        "channel": self.name,
                        "correlation_id": correlation_id,
                        "recipient": mask_contact(to_number),
                        "provider_message_id": sid,
                        "attempt": attempt,
                    },
                )
                return DeliveryResult(success=True, provider_message_id=sid)

            if attempt < self.max_retries:
                delay = self.backoff_base_seconds * (2 ** (attempt - 1))
                logger.info(
                    "notification.retry",
                    extra={
                        "channel": self.name,
                        "correlation_id": correlation_id,
                        "attempt": attempt,
                        "max_retries": self.max_retries,
                        "delay_s": delay,
                    },
                )
                await self._sleep(delay)

        logger.warning(
            "notification.failed",
            extra={
                "channel": self.name,
                "correlation_id": correlation_id,
                "recipient": mask_contact(to_number),
                "reason": last_error,
            },
        )
        return DeliveryResult(success=False, error=last_error)
