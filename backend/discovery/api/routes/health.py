"""Liveness and readiness probes for the load balancer."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from discovery.core.logging import SERVICE_NAME
from discovery.db.base import database_is_healthy
from discovery.db.redis import redis_is_healthy

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Liveness. Answers 503 once SIGTERM has started the drain."""
    if getattr(request.app.state, "shutting_down", False):
        return JSONResponse(status_code=503, content={"status": "shutting_down", "service": SERVICE_NAME})
    return {"status": "healthy", "service": SERVICE_NAME}


@router.get("/ready")
async def readiness_check():
    """Readiness: the store and the cache must both answer."""
    checks = {"database": await database_is_healthy(), "redis": await redis_is_healthy()}
    ready = all(checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "degraded", "checks": checks},
    )
