"""Health check and metrics endpoints."""

import time
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from lesson_ai_system import __version__

from ..dependencies import AppContainer, get_container

router = APIRouter(tags=["health"])

START_TIME = time.time()


@router.get("/health")
async def health(container: AppContainer = Depends(get_container)) -> Dict[str, Any]:
    """Basic health check endpoint."""
    cache = container.cache
    cache_health = await cache.health_check() if cache is not None else {"backend": "disabled"}
    return {
        "status": "healthy",
        "version": __version__,
        "environment": container.settings.environment,
        "uptime": time.time() - START_TIME,
        "providers": container.registry.names(),
        "cache": cache_health,
    }


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
