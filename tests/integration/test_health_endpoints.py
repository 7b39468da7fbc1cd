"""Integration tests for health endpoints."""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from src.main import app

pytestmark = pytest.mark.integration


class TestHealthEndpoints:
    @pytest.mark.asyncio
    async def test_health_endpoint(self):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/health")
            assert response.status_code == 200
            data = response.json()
            assert data["status"] == "healthy"
            assert "version" in data
            assert "uptime_seconds" in data
            assert "X-Request-ID" in response.headers

    @pytest.mark.asyncio
    async def test_ready_when_database_up(self):
        with patch("src.api.routes.health.check_db", AsyncMock(return_value=True)):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                response = await client.get("/ready")
        assert response.status_code == 200
        assert response.json() == {"status": "ready", "database": True}

    @pytest.mark.asyncio
    async def test_degraded_when_database_down(self):
        with patch("src.api.routes.health.check_db", AsyncMock(return_value=False)):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                response = await client.get("/ready")
        assert response.status_code == 503
        assert response.json()["status"] == "degraded"
