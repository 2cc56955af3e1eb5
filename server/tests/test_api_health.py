"""API smoke tests against a bare application, without a test database."""

import pytest
from httpx import ASGITransport, AsyncClient

from marketplace.core.cache import QueryCache
from marketplace.main import create_app


@pytest.mark.asyncio
async def test_api_health_endpoints():
    """Liveness and info need neither the database nor the workers."""
    app = create_app()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

        response = await client.get("/info")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "marketplace-api"
        assert data["endpoints"]["metrics"] == "/metrics"


@pytest.mark.asyncio
async def test_each_app_gets_its_own_cache():
    cache = QueryCache(max_entries=5)
    first = create_app(cache=cache)
    second = create_app()

    assert first.state.cache is cache
    assert second.state.cache is not cache
    assert second.state.booking_locks is not first.state.booking_locks


@pytest.mark.asyncio
async def test_metrics_endpoint():
    """Test the metrics endpoint."""
    app = create_app()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/metrics")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")


@pytest.mark.asyncio
async def test_openapi_docs():
    """Test that OpenAPI docs are available in development."""
    app = create_app()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/docs")
        assert response.status_code == 200
