"""Factory pattern for creating notification channel instances."""

from handoff.adapters.notifications.base import AbstractNotificationChannel
from handoff.adapters.notifications.logging_channel import LoggingNotificationChannel
from handoff.adapters.notifications.twilio_whatsapp import TwilioWhatsAppChannel
from handoff.core.config import NotificationSettings
from handoff.core.errors import ValidationAppError


def create_notification_channel(cfg: NotificationSettings) -> AbstractNotificationChannel:
    """Instantiate the configured notification channel.

    Args:
        cfg: Notification settings (``NOTIFY_*`` environment variables).

    Returns:
        AbstractNotificationChannel: Configured channel instance.

    Raises:
        ValidationAppError: If the provider is unknown or its credentials are missing.
    """
    provider = cfg.provider.lower()

    if provider == "log":
        return LoggingNotificationChannel()

    if provider == "twilio":
        missing = [
            name
            for name, value in (
                ("NOTIFY_TWILIO_ACCOUNT_SID", cfg.twilio_account_sid),
                ("NOTIFY_TWILIO_AUTH_TOKEN", cfg.twilio_auth_token),
                ("NOTIFY_TWILIO_WHATSAPP_NUMBER", cfg.twilio_whatsapp_number),
            )
            if not value
        ]
        if missing:
            raise ValidationAppError(
                code="notify_missing_credentials",
                message=f"Twilio provider requires {', '.join(missing)}",
            )
        return TwilioWhatsAppChannel(
            account_sid=cfg.twilio_account_sid,  # type: ignore[arg-type]
            auth_token=cfg.twilio_auth_token,  # type: ignore[arg-type]
            from_number=cfg.twilio_whatsapp_number,  # type: ignore[arg-type]
            base_url=cfg.twilio_base_url,
            timeout_seconds=cfg.timeout_seconds,
            max_retries=cfg.max_retries,
            backoff_base_seconds=cfg.backoff_base_seconds,
        )

    raise ValidationAppError(
        code="notify_unknown_provider",
        message=f"Unknown notification provider: '{provider}'. Supported providers: twilio, log",
    )
