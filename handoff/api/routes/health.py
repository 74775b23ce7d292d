from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from handoff.core.container import ServiceContainer, get_container

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(container: Annotated[ServiceContainer, Depends(get_container)]) -> dict:
    """Liveness probe for load balancers and uptime checks.

    Also reports which storage backend and notification provider are wired,
    which helps spot a deployment still running on in-memory storage.
    """
    return {
        "status": "ok",
        "storage": container.settings.storage.backend,
        "notifications": container.channel.name,
    }
