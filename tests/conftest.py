"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins the environment so settings never pick up a developer's .env file
or real Twilio credentials.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ["NOTIFY_PROVIDER"] = "log"
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("LOG_FORMAT", "json")

from datetime import datetime, timezone  # noqa: E402
from unittest.mock import Mock  # noqa: E402

import pytest  # noqa: E402

from handoff.adapters.notifications.logging_channel import LoggingNotificationChannel  # noqa: E402
from handoff.adapters.storage.base import Order, OrderStatus  # noqa: E402
from handoff.adapters.storage.in_memory import InMemoryOrderGateway, InMemoryOtpStore  # noqa: E402
from handoff.services.notification_dispatcher import NotificationDispatcher  # noqa: E402
from handoff.utils.otp_crypto import ScryptHasher  # noqa: E402

# Cheap scrypt parameters keep hashing fast in tests
FAST_HASHER = ScryptHasher(n=16, r=1, p=1, dklen=16)

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def fast_hasher() -> ScryptHasher:
    return FAST_HASHER


@pytest.fixture
def utc_clock() -> Mock:
    """Controllable UTC clock starting at ``T0``."""
    return Mock(return_value=T0)


@pytest.fixture
def order() -> Order:
    return Order(
        id="order-1",
        customer_contact="+2348012345678",
        status=OrderStatus.DISPATCHED,
        public_token="pub-token-1",
        readable_id="A1B2",
        sme_id="sme-1",
    )


@pytest.fixture
def otp_store() -> InMemoryOtpStore:
    return InMemoryOtpStore()


@pytest.fixture
def orders(order: Order) -> InMemoryOrderGateway:
    return InMemoryOrderGateway([order])


@pytest.fixture
def log_channel() -> LoggingNotificationChannel:
    return LoggingNotificationChannel()


@pytest.fixture
def notifier(log_channel: LoggingNotificationChannel) -> NotificationDispatcher:
    return NotificationDispatcher(log_channel)
