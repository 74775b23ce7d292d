"""Customer notification channels (WhatsApp via Twilio, log-only for development)."""
