from __future__ import annotations

from handoff.api.routes.health import router as health_router
from handoff.api.routes.otp import router as otp_router

__all__ = ["health_router", "otp_router"]
