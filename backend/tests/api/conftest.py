"""API-specific test fixtures.

The app runs in-process through httpx's ASGITransport. ASGITransport does
not run the lifespan, so the database and redis globals are initialized
here: SQLite in memory and the shared fakeredis client.
"""

import pytest
from httpx import ASGITransport, AsyncClient

import discovery.db.redis as redis_mod
from discovery.api.dependencies import get_blob_storage, get_gateway, get_task_spawner
from discovery.core.config import get_settings
from discovery.db.base import close_db, get_session_factory, init_db
from discovery.db.redis import init_redis
from discovery.main import create_app
from discovery.repositories.store import DiscoveryStore

_TEST_DB_URL = "sqlite+aiosqlite:///:memory:"
ADMIN_PASSWORD = "s3cret"


@pytest.fixture
async def app(redis_client, gateway, tasks, blobs, monkeypatch):
    """FastAPI app wired to in-process collaborators."""
    monkeypatch.setattr(get_settings(), "admin_password", ADMIN_PASSWORD)
    monkeypatch.setattr(get_settings(), "public_base_url", "")

    await init_db(_TEST_DB_URL)
    await init_redis(client=redis_client)

    app = create_app()
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_task_spawner] = lambda: tasks
    app.dependency_overrides[get_blob_storage] = lambda: blobs

    yield app

    app.dependency_overrides.clear()
    # The root redis_client fixture owns (and closes) the fakeredis client
    redis_mod._client = None
    await close_db()


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def admin_headers(client) -> dict[str, str]:
    response = await client.post("/api/admin/login", json={"password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def api_store(app) -> DiscoveryStore:
    """Store bound to the same database the app uses."""
    return DiscoveryStore(get_session_factory())


@pytest.fixture
def create_engagement(client, admin_headers):
    """Factory: ``await create_engagement(name=..., context=...)`` returns the engagement JSON."""

    async def _create(**fields):
        payload = {"name": "Acme Rollout", "description": "Field-service rollout", **fields}
        response = await client.post("/api/admin/engagements", json=payload, headers=admin_headers)
        assert response.status_code == 201
        return response.json()["engagement"]

    return _create
