"""Health endpoint tests."""

import pytest


@pytest.mark.asyncio
async def test_health_reports_dependencies(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["server"] == "ok"
    assert data["database"] == "ok"
    assert "version" in data


@pytest.mark.asyncio
async def test_health_degraded_without_redis(client):
    """Redis is not initialized under test, which only degrades status."""
    data = (await client.get("/api/v1/health")).json()
    assert data["redis"].startswith("error")
    assert data["status"] == "degraded"
