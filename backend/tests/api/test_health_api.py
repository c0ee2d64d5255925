"""Liveness and readiness probes."""

import pytest

import discovery.db.redis as redis_mod

pytestmark = pytest.mark.integration


async def test_health_reports_healthy(client):
    response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "discovery-backend"}


async def test_health_returns_503_while_draining(app, client):
    app.state.shutting_down = True

    response = await client.get("/api/health")

    assert response.status_code == 503
    assert response.json()["status"] == "shutting_down"


async def test_ready_checks_database_and_redis(client):
    response = await client.get("/api/ready")

    assert response.status_code == 200
    assert response.json() == {"status": "ready", "checks": {"database": True, "redis": True}}


async def test_responses_carry_a_request_id(client):
    response = await client.get("/api/health", headers={"X-Request-ID": "4f1b2c3d4e5f46a7b8c9d0e1f2a3b4c5"})
    assert response.headers["X-Request-ID"] == "4f1b2c3d4e5f46a7b8c9d0e1f2a3b4c5"


async def test_request_id_is_generated_when_absent(client):
    response = await client.get("/api/health")

    assert len(response.headers["X-Request-ID"]) == 32


async def test_ready_degrades_when_redis_is_gone(client, monkeypatch):
    def not_initialized():
        raise RuntimeError("Redis not initialized. Call init_redis() first.")

    monkeypatch.setattr(redis_mod, "get_redis", not_initialized)

    response = await client.get("/api/ready")

    assert response.status_code == 503
    assert response.json() == {"status": "degraded", "checks": {"database": True, "redis": False}}
