"""Unit tests for health endpoints."""

import pytest


@pytest.mark.asyncio
async def test_health_check(test_client):
    """Liveness reports the service name and version."""
    response = await test_client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "marketplace-api"
    assert "version" in data


@pytest.mark.asyncio
async def test_ready_check(test_client):
    """Readiness checks both the database and the cache."""
    response = await test_client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"] == {"cache": "ok", "database": "ok"}


@pytest.mark.asyncio
async def test_not_ready_once_cache_is_destroyed(test_client, cache):
    cache.destroy()

    response = await test_client.get("/ready")

    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "not_ready"
    assert data["checks"]["cache"] == "destroyed"


@pytest.mark.asyncio
async def test_info_endpoint(test_client):
    """Service info lists features and background workers."""
    response = await test_client.get("/info")
    assert response.status_code == 200
    data = response.json()
    assert data["features"]["query_cache"] is True
    # Lifespan does not run under the test transport, so workers are idle
    assert data["workers"] == {"cache_sweep": False}


@pytest.mark.asyncio
async def test_health_ping_rpc(test_client):
    """Test the RPC-style health ping endpoint."""
    response = await test_client.post("/v1/health/ping", json={})
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "timestamp" in data


@pytest.mark.asyncio
async def test_info_reports_cache_size(test_client, cache):
    cache.set("equipment:abc", {"id": "abc"})

    response = await test_client.get("/info")

    assert response.json()["cache_entries"] == 1
