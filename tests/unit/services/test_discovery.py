"""
Tests for the discovery crawler
"""
from datetime import datetime, timezone

import httpx
import pytest

from catalog_sync.core.clock import utcnow
from catalog_sync.core.exceptions import DiscoveryError
from catalog_sync.models import RunStatus
from catalog_sync.schemas.upstream import SearchItem
from catalog_sync.services.discovery import (
    QueryState,
    SearchQuery,
    build_catalog_rows,
    build_query_plan,
)
from conftest import search_item, search_page

NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def hats_query(**fields) -> SearchQuery:
    values = dict(category="Accessories", subcategory="Hats", sort_type="Relevance", keyword="", limit=30)
    values.update(fields)
    return SearchQuery(**values)


def test_query_plan_partitions_only_keyword_sort_types():
    plan = build_query_plan(
        category="Accessories",
        subcategories=["Hats", "Hair"],
        sort_types=["Relevance", "Sales"],
        keyword_sort_types=[" relevance "],
        keywords=["a", "b"],
        include_empty_keyword=True,
        limit=30,
    )

    labels = [query.label for query in plan]
    assert labels == [
        "Hats/Relevance/(no-keyword)",
        "Hats/Relevance/a",
        "Hats/Relevance/b",
        "Hats/Sales/(no-keyword)",
        "Hair/Relevance/(no-keyword)",
        "Hair/Relevance/a",
        "Hair/Relevance/b",
        "Hair/Sales/(no-keyword)",
    ]


def test_query_plan_without_empty_keyword():
    plan = build_query_plan(
        category="Accessories",
        subcategories=["Hats"],
        sort_types=["Relevance"],
        keyword_sort_types=["Relevance"],
        keywords=["a"],
        include_empty_keyword=False,
        limit=30,
    )

    assert [query.keyword for query in plan] == ["a"]


def test_fingerprint_covers_every_query_field():
    base = hats_query()
    assert base.fingerprint == hats_query().fingerprint
    assert base.fingerprint != hats_query(keyword="a").fingerprint
    assert base.fingerprint != hats_query(limit=10).fingerprint
    assert base.fingerprint != hats_query(subcategory=None).fingerprint


def test_catalog_rows_keep_assets_with_ids():
    items = [
        SearchItem.model_validate(search_item(1)),
        SearchItem.model_validate(search_item(2, itemType="Bundle")),
        SearchItem.model_validate(search_item(0)),
        SearchItem.model_validate({"name": "no id"}),
        SearchItem.model_validate(search_item(1, name="  Replaced  ")),
    ]

    rows = build_catalog_rows(items, NOW, "Accessories", "Hats")

    assert [row["item_id"] for row in rows] == [1]
    row = rows[0]
    assert row["name"] == "Replaced"
    assert row["category"] == "Accessories"
    assert row["subcategory"] == "Hats"
    assert row["creator_target_id"] == 42
    assert row["last_seen_at"] == NOW
    assert row["raw_search_json"]["name"] == "  Replaced  "


def test_catalog_rows_derive_sale_state_and_creator():
    item = SearchItem.model_validate(
        {"id": "77", "priceStatus": "OnSale", "creatorId": 5, "collectibleItemId": "abc-1", "price": "12"}
    )

    (row,) = build_catalog_rows([item], NOW, "Accessories", None)

    assert row["item_id"] == 77
    assert row["item_type"] == "Asset"
    assert row["is_for_sale"] is True
    assert row["creator_target_id"] == 5
    assert row["collectible_item_id"] == "abc-1"
    assert row["price"] == 12
    assert row["is_limited"] is None


@pytest.mark.asyncio
async def test_duplicate_queries_are_skipped(pipeline_factory, upstream):
    pipeline = pipeline_factory(subcategories="Hats,Hats")

    summary = await pipeline.discover()

    assert summary.queries_issued == 1
    assert summary.queries_skipped == 1
    assert len(upstream.requests["search"]) == 1


@pytest.mark.asyncio
async def test_repeated_cursor_aborts_query(pipeline_factory, upstream):
    upstream.serve_search_pages(
        {
            None: search_page([search_item(1)], "c1"),
            "c1": search_page([search_item(2)], "c1"),
        }
    )
    pipeline = pipeline_factory()

    result = await pipeline.discovery.crawl_query(hats_query(), None)

    assert result.state == QueryState.ABORTED
    assert result.reason == "repeated_cursor"
    assert result.pages == 2
    assert len(upstream.requests["search"]) == 2


@pytest.mark.asyncio
async def test_max_pages_caps_one_query(pipeline_factory, upstream):
    upstream.serve_search_pages(
        {
            None: search_page([search_item(1)], "c1"),
            "c1": search_page([search_item(2)], "c2"),
            "c2": search_page([search_item(3)], "c3"),
        }
    )
    pipeline = pipeline_factory(max_pages=2)

    result = await pipeline.discovery.crawl_query(hats_query(), None)

    assert result.pages == 2
    assert result.reason == "max_pages"
    assert len(upstream.requests["search"]) == 2


@pytest.mark.asyncio
async def test_max_items_caps_the_run(pipeline_factory, upstream):
    upstream.serve_search_pages(
        {
            None: search_page([search_item(1), search_item(2)], "c1"),
            "c1": search_page([search_item(3), search_item(4)], "c2"),
            "c2": search_page([search_item(5), search_item(6)], None),
        }
    )
    pipeline = pipeline_factory(subcategories="Hats,Hair", max_items=3)

    summary = await pipeline.discover()

    assert summary.capped
    assert summary.status == RunStatus.COMPLETED
    assert summary.items_seen == 4
    assert summary.pages_fetched == 2
    assert summary.queries_issued == 1


@pytest.mark.asyncio
async def test_rate_limited_pages_cool_down_within_budget(pipeline_factory, upstream, clock):
    upstream.search = lambda request: httpx.Response(
        200, json={"errors": [{"code": 0, "message": "Too many requests"}]}
    )
    pipeline = pipeline_factory(rate_limit_retries=2)

    result = await pipeline.discovery.crawl_query(hats_query(), None)

    assert result.state == QueryState.EXHAUSTED
    assert result.reason == "Too many requests"
    assert len(upstream.requests["search"]) == 3
    assert clock.sleeps.count(1.0) == 2


@pytest.mark.asyncio
async def test_rate_limited_page_recovers_after_cooldown(pipeline_factory, upstream):
    responses = [
        httpx.Response(200, json={"errors": [{"message": "TooManyRequests: Too many requests"}]}),
        httpx.Response(200, json=search_page([search_item(1)], None)),
    ]
    upstream.search = lambda request: responses.pop(0)
    pipeline = pipeline_factory()

    result = await pipeline.discovery.crawl_query(hats_query(), None)

    assert result.state == QueryState.EXHAUSTED
    assert result.reason == "no_cursor"
    assert result.items == 1


@pytest.mark.asyncio
async def test_failed_query_does_not_stop_the_run(pipeline_factory, upstream):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["subcategory"] == "Hats":
            return httpx.Response(400, text="Invalid subcategory")
        return httpx.Response(200, json=search_page([search_item(10)], None))

    upstream.search = handler
    pipeline = pipeline_factory(subcategories="Hats,Hair")

    summary = await pipeline.discover()

    assert summary.status == RunStatus.COMPLETED
    assert summary.queries_issued == 2
    assert summary.items_seen == 1
    assert len(upstream.requests["search"]) == 2


@pytest.mark.asyncio
async def test_unresolved_subcategories_fail_the_run(pipeline_factory):
    pipeline = pipeline_factory(subcategories="")

    with pytest.raises(DiscoveryError):
        await pipeline.discover()

    (run,) = await pipeline.runs.recent_runs()
    assert run.status == RunStatus.FAILED.value
    assert "No subcategories" in run.notes
    assert run.finished_at is not None


@pytest.mark.asyncio
async def test_subcategories_come_from_the_categories_endpoint(pipeline_factory, upstream):
    upstream.categories = lambda request: httpx.Response(
        200,
        json=[
            {
                "category": "Accessories",
                "categoryId": 11,
                "subcategories": [{"subcategory": "Hats"}, {"subcategory": "Hair"}],
            }
        ],
    )
    pipeline = pipeline_factory(subcategories="")

    summary = await pipeline.discover()

    assert summary.queries_issued == 2
    assert await pipeline.taxonomy_repo.list_subcategories("Accessories") == ["Hair", "Hats"]


@pytest.mark.asyncio
async def test_dry_run_writes_nothing(pipeline_factory, upstream):
    upstream.serve_search_pages({None: search_page([search_item(1), search_item(2)], None)})
    pipeline = pipeline_factory(dry_run=True)

    summary = await pipeline.discover()

    assert summary.run_id is None
    assert summary.items_seen == 2
    assert await pipeline.items.stats() == (0, 0, 0)
    assert (await pipeline.queue.stats(utcnow())).total == 0
    assert await pipeline.runs.recent_runs() == []


@pytest.mark.asyncio
async def test_completed_run_records_counters_and_hits(pipeline_factory, upstream):
    upstream.serve_search_pages(
        {
            None: search_page([search_item(1), search_item(2)], "c1"),
            "c1": search_page([search_item(3)], None),
        }
    )
    pipeline = pipeline_factory()

    summary = await pipeline.discover()

    run = await pipeline.runs.get_run(summary.run_id)
    assert run.status == RunStatus.COMPLETED.value
    assert run.queries_issued == 1
    assert run.pages_fetched == 2
    assert run.items_seen == 3
    assert await pipeline.runs.count_hits(summary.run_id) == 3
