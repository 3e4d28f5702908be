import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

import redis.asyncio as redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.modules.credits.constants import MODEL_COST_PROFILES
from src.utils.logger import get_logger
from src.utils.settings.providers import ProviderSettings


logger = get_logger(__name__)


@dataclass
class HealthCheckResult:
    """Result of a health check."""

    service: str
    status: Literal["healthy", "unhealthy", "degraded"]
    connected: bool
    details: dict
    error: str | None = None


@dataclass
class OverallHealthStatus:
    """Overall health status with individual service results."""

    status: Literal["healthy", "degraded", "unhealthy"]
    services: dict[str, HealthCheckResult]
    timestamp: str


class HealthService:
    """Service for performing health checks on the database and Redis."""

    def __init__(self, db: AsyncSession, redis: redis.Redis):
        self.db = db
        self.redis = redis

    async def check_database_health(self) -> HealthCheckResult:
        """Database connection health check."""
        try:
            result = await self.db.execute(text("SELECT 1 as test"))
            test_value = result.scalar()

            return HealthCheckResult(
                service="database",
                status="healthy",
                connected=True,
                details={"test_query_result": test_value},
            )
        except Exception as e:
            logger.error("Database health check error", error=str(e))
            return HealthCheckResult(
                service="database",
                status="unhealthy",
                connected=False,
                details={},
                error=str(e),
            )

    async def check_redis_health(self) -> HealthCheckResult:
        """Redis health check.

        Redis only backs request throttling, which fails open, so an
        unreachable Redis degrades the service rather than taking it down.
        """
        try:
            await self.redis.ping()

            return HealthCheckResult(
                service="redis",
                status="healthy",
                connected=True,
                details={},
            )
        except Exception as e:
            logger.error("Redis health check error", error=str(e))
            return HealthCheckResult(
                service="redis",
                status="degraded",
                connected=False,
                details={"rate_limiting": "failing open"},
                error=str(e),
            )

    async def check_providers_health(self) -> HealthCheckResult:
        """Report which model providers have an API key. Makes no network calls."""
        settings = ProviderSettings()
        keys = {
            "anthropic": settings.ANTHROPIC_API_KEY.get_secret_value(),
            "openai": settings.OPENAI_API_KEY.get_secret_value(),
        }
        providers = {profile.provider for profile in MODEL_COST_PROFILES.values()}
        configured = sorted(p for p in providers if keys.get(p))
        missing = sorted(providers - set(configured))

        if not configured:
            status = "unhealthy"
        elif missing:
            status = "degraded"
        else:
            status = "healthy"
        return HealthCheckResult(
            service="providers",
            status=status,
            connected=bool(configured),
            details={"configured": configured, "missing": missing},
        )

    async def run_all_checks(self) -> OverallHealthStatus:
        """Run all health checks in parallel and return overall status."""
        results = await asyncio.gather(
            self.check_database_health(),
            self.check_redis_health(),
            self.check_providers_health(),
        )

        services = {}
        overall_status: Literal["healthy", "degraded", "unhealthy"] = "healthy"
        for service_result in results:
            if service_result.status == "unhealthy":
                overall_status = "unhealthy"
            elif service_result.status == "degraded" and overall_status == "healthy":
                overall_status = "degraded"
            services[service_result.service] = service_result

        return OverallHealthStatus(
            status=overall_status,
            services=services,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
