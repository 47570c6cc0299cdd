"""
Tests for the read-only API
"""
import httpx
import pytest
import pytest_asyncio

from catalog_sync.api.deps import get_session_factory
from catalog_sync.core.database import get_async_session
from catalog_sync.main import create_application
from conftest import search_item, search_page


@pytest_asyncio.fixture
async def api_client(session_factory):
    app = create_application()

    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_async_session] = override_session

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
async def test_health(api_client):
    response = await api_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_readiness_checks_database(api_client):
    response = await api_client.get("/health/ready")

    assert response.status_code == 200
    assert response.json()["checks"]["database"] is True


@pytest.mark.asyncio
async def test_stats_on_empty_catalog(api_client):
    response = await api_client.get("/api/v1/catalog/stats")

    assert response.status_code == 200
    assert response.json() == {
        "items": 0,
        "enriched": 0,
        "deleted": 0,
        "images": 0,
        "queue": {"total": 0, "due": 0, "failing": 0},
    }


@pytest.mark.asyncio
async def test_stats_and_runs_after_discovery(api_client, pipeline_factory, upstream):
    upstream.serve_search_pages({None: search_page([search_item(1), search_item(2)], None)})
    summary = await pipeline_factory().discover()

    stats = (await api_client.get("/api/v1/catalog/stats")).json()
    assert stats["items"] == 2
    assert stats["queue"]["due"] == 2

    runs = (await api_client.get("/api/v1/catalog/runs", params={"limit": 5})).json()
    assert runs["total"] == 1
    (run,) = runs["items"]
    assert run["run_id"] == str(summary.run_id)
    assert run["status"] == "completed"
    assert run["items_seen"] == 2


@pytest.mark.asyncio
async def test_runs_limit_is_validated(api_client):
    response = await api_client.get("/api/v1/catalog/runs", params={"limit": 0})

    assert response.status_code == 422
