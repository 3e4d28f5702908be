"""Tests for the health endpoints."""

import pytest
from httpx import AsyncClient

from src.modules.health.service import HealthCheckResult, HealthService


@pytest.fixture
def redis_down(monkeypatch):
    async def check_redis_health(self):
        return HealthCheckResult(
            service="redis",
            status="degraded",
            connected=False,
            details={"rate_limiting": "failing open"},
            error="Connection refused",
        )

    monkeypatch.setattr(HealthService, "check_redis_health", check_redis_health)


@pytest.mark.asyncio
async def test_root(public_client: AsyncClient):
    response = await public_client.get("/")

    assert response.status_code == 200
    assert response.json()["service"] == "prpm-playground-api"


@pytest.mark.asyncio
async def test_liveness(public_client: AsyncClient):
    response = await public_client.get("/health/liveness")

    assert response.status_code == 200
    assert response.json() == {"status": "alive", "service": "prpm-playground-api"}


@pytest.mark.asyncio
async def test_health_degraded_without_redis(
    monkeypatch, redis_down, public_client: AsyncClient
):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-openai-test")

    response = await public_client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["services"]["database"]["status"] == "healthy"
    assert data["services"]["redis"]["connected"] is False
    assert data["services"]["providers"]["status"] == "healthy"


@pytest.mark.asyncio
async def test_health_unhealthy_without_provider_keys(
    monkeypatch, redis_down, public_client: AsyncClient
):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "")
    monkeypatch.setenv("OPENAI_API_KEY", "")

    response = await public_client.get("/health")

    data = response.json()
    assert data["status"] == "unhealthy"
    assert data["services"]["providers"]["details"]["missing"] == [
        "anthropic",
        "openai",
    ]
