"""Unit tests for health endpoints."""

import pytest
from sqlalchemy.exc import OperationalError

from reservation_core.core.dependencies import get_session_factory


@pytest.mark.asyncio
async def test_health_check(test_client):
    """Test the health check endpoint."""
    response = await test_client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "service" in data
    assert "version" in data


@pytest.mark.asyncio
async def test_ready_check(test_client):
    """Test the readiness check endpoint."""
    response = await test_client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"] == {"database": "ok"}


@pytest.mark.asyncio
async def test_ready_check_database_down(test_app, test_client):
    """Readiness reports 503 when the database does not answer."""

    class _BrokenSession:
        async def __aenter__(self):
            return self

        async def __aexit__(self, *exc_info):
            return False

        async def execute(self, statement):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    test_app.dependency_overrides[get_session_factory] = lambda: _BrokenSession

    response = await test_client.get("/ready")
    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "not_ready"
    assert data["checks"]["database"] == "unavailable"


@pytest.mark.asyncio
async def test_info_endpoint(test_client):
    """Test the service info endpoint."""
    response = await test_client.get("/info")
    assert response.status_code == 200
    data = response.json()
    assert "service" in data
    assert "version" in data
    assert "features" in data


@pytest.mark.asyncio
async def test_health_ping_rpc(test_client):
    """Test the RPC-style health ping endpoint."""
    response = await test_client.post("/v1/health/ping", json={})
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "reservation-core"
    assert data["uptime_seconds"] >= 0
    assert "timestamp" in data


@pytest.mark.asyncio
async def test_request_id_is_echoed(test_client):
    """The X-Request-ID sent by the caller comes back on the response."""
    response = await test_client.post("/v1/health/ping", json={}, headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_request_id_is_generated(test_client):
    response = await test_client.post("/v1/health/ping", json={})
    assert response.headers["X-Request-ID"]
