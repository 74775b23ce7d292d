"""Application factory for FastAPI app.

Centralizes app construction (settings, services, middleware, handlers,
routers) so tests can build isolated apps with their own configuration.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from handoff.api.routes import health_router, otp_router
from handoff.core.config import Settings, settings
from handoff.core.container import ServiceContainer, build_container
from handoff.core.exception_handlers import setup_exception_handlers
from handoff.core.logging import configure_logging
from handoff.core.middleware import request_id_middleware

logger = logging.getLogger(__name__)


def create_app(
    config: Settings | None = None,
    container: ServiceContainer | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        config: Settings to use; defaults to the environment-loaded settings.
        container: Pre-built services, mainly for tests. Built from ``config``
            when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    cfg = config or (container.settings if container else settings)

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    services = container or build_container(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await services.start()
        logger.info(
            "app.started",
            extra={
                "env": cfg.app_env,
                "storage_backend": cfg.storage.backend,
                "notify_provider": services.channel.name,
            },
        )
        try:
            yield
        finally:
            await services.stop()
            logger.info("app.stopped")

    app = FastAPI(
        title="Handoff Delivery OTP API",
        description=(
            "Delivery confirmation for SME orders: issues a one-time code to the "
            "customer over WhatsApp, verifies the code relayed by the courier and "
            "marks the order COMPLETED. Both endpoints are rate limited per client."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.container = services

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(otp_router, prefix="/v1")
    app.include_router(health_router)

    return app
