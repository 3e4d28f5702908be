"""Health check endpoints for debugging and monitoring."""

from fastapi import APIRouter

from src.api.core.dependencies import AsyncSessionDep, RedisDep
from src.modules.health.service import HealthService, OverallHealthStatus

# Create separate routers for root and health endpoints
root_router = APIRouter()
router = APIRouter(prefix="/health", tags=["health"])


@root_router.get("/")
async def root():
    """Root endpoint."""
    return {"service": "prpm-playground-api", "docs": "/docs"}


@router.get("")
async def health_check(
    db: AsyncSessionDep,
    redis_client: RedisDep,
) -> OverallHealthStatus:
    """Comprehensive health check for all services."""
    health_service = HealthService(db, redis_client)
    return await health_service.run_all_checks()


@router.get("/liveness")
async def liveness_check():
    """Simple liveness check - indicates if service is running."""
    return {"status": "alive", "service": "prpm-playground-api"}
