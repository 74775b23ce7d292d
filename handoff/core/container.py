"""Service wiring for the application.

Every long-lived object (stores, limiters, channel, OTP manager, sweepers) is
built here from one Settings instance and owned by the FastAPI app via
``app.state.container``; nothing lives in module globals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from fastapi import Request

from handoff.adapters.notifications.base import AbstractNotificationChannel
from handoff.adapters.notifications.factory import create_notification_channel
from handoff.adapters.storage.base import AbstractOrderGateway, AbstractOtpStore
from handoff.adapters.storage.in_memory import InMemoryOrderGateway, InMemoryOtpStore
from handoff.adapters.storage.sqlite import SqliteDatabase, SqliteOrderGateway, SqliteOtpStore
from handoff.core.config import Settings
from handoff.services.notification_dispatcher import NotificationDispatcher
from handoff.services.otp_manager import OtpManager
from handoff.services.rate_limiter import FixedWindowRateLimiter
from handoff.utils.otp_crypto import ScryptHasher
from handoff.utils.periodic import PeriodicSweeper

logger = logging.getLogger(__name__)

GENERATE_LIMITER = "otp_generate"
VERIFY_LIMITER = "otp_verify"

_DRAIN_TIMEOUT_SECONDS = 10.0


@dataclass
class ServiceContainer:
    """Long-lived collaborators shared by request handlers."""

    settings: Settings
    otp_store: AbstractOtpStore
    orders: AbstractOrderGateway
    channel: AbstractNotificationChannel
    notifier: NotificationDispatcher
    otp_manager: OtpManager
    limiters: dict[str, FixedWindowRateLimiter]
    sweepers: list[PeriodicSweeper] = field(default_factory=list)
    database: SqliteDatabase | None = None

    def sweep_rate_limits(self) -> int:
        return sum(limiter.sweep() for limiter in self.limiters.values())

    async def purge_expired_otps(self) -> int:
        removed = await self.otp_store.purge_expired(now=datetime.now(timezone.utc))
        logger.info("otp.cleanup", extra={"deleted": removed})
        return removed

    async def start(self) -> None:
        for sweeper in self.sweepers:
            sweeper.start()

    async def stop(self) -> None:
        for sweeper in self.sweepers:
            await sweeper.stop()
        await self.notifier.drain(timeout=_DRAIN_TIMEOUT_SECONDS)
        await self.channel.aclose()
        if self.database is not None:
            self.database.close()


def _build_storage(
    cfg: Settings,
) -> tuple[AbstractOtpStore, AbstractOrderGateway, SqliteDatabase | None]:
    if cfg.storage.backend == "sqlite":
        database = SqliteDatabase(cfg.storage.sqlite_path)
        return SqliteOtpStore(database), SqliteOrderGateway(database), database
    return InMemoryOtpStore(), InMemoryOrderGateway(), None


def build_container(cfg: Settings) -> ServiceContainer:
    """Create every collaborator from configuration.

    Args:
        cfg: Resolved application settings.

    Returns:
        ServiceContainer ready to be attached to the app.

    Raises:
        ValidationAppError: If the notification provider is misconfigured.
    """
    otp_store, orders, database = _build_storage(cfg)
    channel = create_notification_channel(cfg.notify)
    notifier = NotificationDispatcher(channel)

    otp_manager = OtpManager(
        otp_store=otp_store,
        orders=orders,
        notifier=notifier,
        hasher=ScryptHasher(
            n=cfg.otp.scrypt_n,
            r=cfg.otp.scrypt_r,
            p=cfg.otp.scrypt_p,
            dklen=cfg.otp.scrypt_dklen,
        ),
        ttl_seconds=cfg.otp.ttl_seconds,
        max_attempts=cfg.otp.max_attempts,
        code_range=(cfg.otp.code_min, cfg.otp.code_max),
        salt_bytes=cfg.otp.salt_bytes,
        frontend_url=cfg.app.frontend_url,
    )

    # Each limiter owns a private store; the endpoints never share counters.
    limiters = {
        GENERATE_LIMITER: FixedWindowRateLimiter(
            name=GENERATE_LIMITER,
            window_seconds=cfg.rate_limit.generate_window_seconds,
            max_requests=cfg.rate_limit.generate_requests,
            skip_successful_requests=cfg.rate_limit.skip_successful_requests,
            skip_failed_requests=cfg.rate_limit.skip_failed_requests,
        ),
        VERIFY_LIMITER: FixedWindowRateLimiter(
            name=VERIFY_LIMITER,
            window_seconds=cfg.rate_limit.verify_window_seconds,
            max_requests=cfg.rate_limit.verify_requests,
            skip_successful_requests=cfg.rate_limit.skip_successful_requests,
            skip_failed_requests=cfg.rate_limit.skip_failed_requests,
        ),
    }

    container = ServiceContainer(
        settings=cfg,
        otp_store=otp_store,
        orders=orders,
        channel=channel,
        notifier=notifier,
        otp_manager=otp_manager,
        limiters=limiters,
        database=database,
    )
    container.sweepers = [
        PeriodicSweeper(
            "rate_limit",
            container.sweep_rate_limits,
            cfg.rate_limit.sweep_interval_seconds,
        ),
        PeriodicSweeper(
            "otp_cleanup",
            container.purge_expired_otps,
            cfg.otp.cleanup_interval_minutes * 60,
            run_immediately=True,
        ),
    ]
    return container


def get_container(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the app's service container."""
    return request.app.state.container


def get_otp_manager(request: Request) -> OtpManager:
    """FastAPI dependency returning the OTP manager."""
    return get_container(request).otp_manager
