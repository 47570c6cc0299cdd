"""
Test configuration and fixtures
"""

import asyncio
import re
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from catalog_sync.core.config import Settings
from catalog_sync.core.database import create_session_factory, init_db
from catalog_sync.services import CatalogPipeline

TEST_DATABASE_URL = "sqlite+aiosqlite://"

DETAIL_PATH = re.compile(r"^/v2/assets/(\d+)/details$")

Handler = Callable[[httpx.Request], httpx.Response]


class FakeClock:
    """Monotonic clock whose sleep advances time instantly"""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if seconds > 0:
            self.now += seconds
        # Let other tasks run, as a real sleep would
        await asyncio.sleep(0)


def search_page(items: List[Dict[str, Any]], next_cursor: Optional[str] = None) -> Dict[str, Any]:
    return {"data": items, "nextPageCursor": next_cursor, "previousPageCursor": None}


def search_item(item_id: int, **fields) -> Dict[str, Any]:
    item = {
        "id": item_id,
        "itemType": "Asset",
        "assetType": 8,
        "name": f"Item {item_id}",
        "description": "A hat",
        "price": 100,
        "priceStatus": None,
        "creatorName": "Builder",
        "creatorType": "User",
        "creatorTargetId": 42,
        "creatorHasVerifiedBadge": False,
        "favoriteCount": 7,
        "isForSale": True,
    }
    item.update(fields)
    return item


def detail_payload(item_id: int, **fields) -> Dict[str, Any]:
    payload = {
        "AssetId": item_id,
        "Name": f"Detailed {item_id}",
        "Description": "Authoritative",
        "PriceInRobux": 250,
        "IsForSale": True,
        "IsLimited": False,
        "IsLimitedUnique": False,
        "Remaining": None,
        "AssetTypeId": 8,
        "ProductId": 9000 + item_id,
        "Creator": {
            "Id": 1,
            "Name": "Roblox",
            "CreatorType": "User",
            "CreatorTargetId": 1,
            "HasVerifiedBadge": True,
        },
    }
    payload.update(fields)
    return payload


def copy_response(response: httpx.Response) -> httpx.Response:
    """Fresh response with the same status, headers and body, safe to serve repeatedly"""
    return httpx.Response(response.status_code, headers=response.headers, content=response.content)


class FakeUpstream:
    """
    In-process stand-in for the search, categories, details and thumbnails APIs.

    Each endpoint is a replaceable handler; every request is recorded.
    """

    def __init__(self):
        self.requests: Dict[str, List[httpx.Request]] = {
            "search": [],
            "categories": [],
            "details": [],
            "thumbnails": [],
        }
        self.search: Handler = lambda request: httpx.Response(200, json=search_page([]))
        self.categories: Handler = lambda request: httpx.Response(200, json=[])
        self.details: Handler = lambda request: httpx.Response(404, text="Not found")
        self.thumbnails: Handler = lambda request: httpx.Response(200, json={"data": []})

    def serve_search_pages(self, pages: Dict[Optional[str], Dict[str, Any]]):
        """Serve search pages keyed by the request cursor (None for the first page)"""

        def handler(request: httpx.Request) -> httpx.Response:
            cursor = request.url.params.get("cursor")
            return httpx.Response(200, json=pages.get(cursor, search_page([])))

        self.search = handler

    def serve_details(self, responses: Dict[int, Any]):
        """Map item id to a payload dict or an httpx.Response"""

        def handler(request: httpx.Request) -> httpx.Response:
            item_id = int(DETAIL_PATH.match(request.url.path).group(1))
            response = responses.get(item_id)
            if response is None:
                return httpx.Response(404, text="Not found")
            if isinstance(response, httpx.Response):
                return copy_response(response)
            return httpx.Response(200, json=response)

        self.details = handler

    async def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/v1/search/items/details":
            self.requests["search"].append(request)
            return self.search(request)
        if path == "/v1/categories":
            self.requests["categories"].append(request)
            return self.categories(request)
        if DETAIL_PATH.match(path):
            self.requests["details"].append(request)
            return self.details(request)
        if path == "/v1/assets":
            self.requests["thumbnails"].append(request)
            return self.thumbnails(request)
        return httpx.Response(404, json={"errors": [{"message": "unknown route"}]})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle))


def make_settings(**overrides) -> Settings:
    """Fast, deterministic settings for tests"""
    values = dict(
        database_url=TEST_DATABASE_URL,
        categories="Accessories",
        subcategories="Hats",
        sort_types="Relevance",
        keyword_sort_types="",
        request_delay_ms=0,
        query_delay_ms=0,
        retry_jitter_ms=0,
        retry_base_ms=100,
        detail_retry_base_ms=100,
        max_retries=2,
        search_min_interval_ms=0,
        detail_min_interval_ms=0,
        thumbnail_min_interval_ms=0,
        thumbnail_delay_ms=0,
        batch_delay_ms=0,
        rate_limit_cooldown_ms=1000,
        log_sample=False,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest_asyncio.fixture
async def pipeline_factory(session_factory, upstream, clock):
    """Build pipelines wired to the fake upstream, clock and database"""
    pipelines: List[CatalogPipeline] = []

    def build(settings: Optional[Settings] = None, now=None, **overrides) -> CatalogPipeline:
        pipeline = CatalogPipeline(
            settings or make_settings(**overrides),
            session_factory,
            client=upstream.client(),
            clock=clock,
            sleeper=clock.sleep,
            rng=lambda: 0.0,
            now=now,
        )
        pipelines.append(pipeline)
        return pipeline

    yield build

    for pipeline in pipelines:
        await pipeline.api.client.aclose()
