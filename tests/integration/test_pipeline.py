"""
End-to-end discovery and enrichment against the fake upstream
"""
import pytest

from catalog_sync.core.clock import utcnow
from catalog_sync.models import RunStatus
from conftest import detail_payload, search_item, search_page


def serve_five_items(upstream):
    upstream.serve_search_pages(
        {
            None: search_page([search_item(item_id) for item_id in (1, 2, 3)], "page-2"),
            "page-2": search_page([search_item(item_id) for item_id in (4, 5)], "page-3"),
            "page-3": search_page([], None),
        }
    )


@pytest.mark.asyncio
async def test_discovery_then_enrichment(pipeline_factory, upstream):
    serve_five_items(upstream)
    upstream.serve_details({item_id: detail_payload(item_id) for item_id in (1, 2, 3, 4, 5)})
    pipeline = pipeline_factory()

    summary = await pipeline.discover()

    assert summary.status == RunStatus.COMPLETED
    assert summary.pages_fetched == 2
    assert summary.items_seen == 5
    assert await pipeline.items.stats() == (5, 0, 0)
    assert await pipeline.runs.count_hits(summary.run_id) == 5
    queue = await pipeline.queue.stats(utcnow())
    assert queue.total == 5
    assert queue.due == 5

    enrichment = await pipeline.enrich()

    assert enrichment.succeeded == 5
    assert await pipeline.items.stats() == (5, 5, 0)
    assert (await pipeline.queue.stats(utcnow())).due == 0


@pytest.mark.asyncio
async def test_rediscovery_is_idempotent(pipeline_factory, upstream):
    serve_five_items(upstream)
    pipeline = pipeline_factory()

    first = await pipeline.discover()
    second = await pipeline.discover()

    assert first.run_id != second.run_id
    assert await pipeline.items.stats() == (5, 0, 0)
    assert (await pipeline.queue.stats(utcnow())).total == 5
    assert await pipeline.runs.count_hits(first.run_id) == 5
    assert await pipeline.runs.count_hits(second.run_id) == 5
    assert len(await pipeline.runs.recent_runs()) == 2


@pytest.mark.asyncio
async def test_items_seen_twice_in_one_run_are_recorded_once(pipeline_factory, upstream):
    upstream.serve_search_pages({None: search_page([search_item(1), search_item(2)], None)})
    pipeline = pipeline_factory(subcategories="Hats,Hair")

    summary = await pipeline.discover()

    assert summary.status == RunStatus.COMPLETED
    assert summary.queries_issued == 2
    assert summary.items_seen == 4
    assert await pipeline.items.stats() == (2, 0, 0)
    assert await pipeline.runs.count_hits(summary.run_id) == 2
    assert (await pipeline.queue.stats(utcnow())).total == 2


@pytest.mark.asyncio
async def test_rediscovery_keeps_enriched_fields(pipeline_factory, upstream):
    serve_five_items(upstream)
    upstream.serve_details({item_id: detail_payload(item_id) for item_id in (1, 2, 3, 4, 5)})
    pipeline = pipeline_factory()

    await pipeline.discover()
    await pipeline.enrich()

    upstream.serve_search_pages(
        {None: search_page([search_item(1, name="Renamed in search", price=1, favoriteCount=99)], None)}
    )
    await pipeline.discover()

    item = await pipeline.items.get(1)
    assert item.name == "Detailed 1"
    assert item.price == 250
    assert item.creator_name == "Roblox"
    assert item.favorite_count == 99
    assert item.raw_search_json["name"] == "Renamed in search"

    entry = await pipeline.queue.get(1)
    assert entry.priority == "refresh"
    assert entry.next_run_at > utcnow()


@pytest.mark.asyncio
async def test_rediscovered_items_keep_their_schedule(pipeline_factory, upstream):
    serve_five_items(upstream)
    pipeline = pipeline_factory()

    await pipeline.discover()
    await pipeline.enrich()
    before = await pipeline.queue.get(3)

    await pipeline.discover()

    after = await pipeline.queue.get(3)
    assert after.attempts == before.attempts == 1
    assert after.next_run_at == before.next_run_at
