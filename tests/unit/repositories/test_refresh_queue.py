"""
Tests for the refresh queue repository
"""
from datetime import datetime, timedelta, timezone

import pytest

from catalog_sync.core.clock import utcnow
from catalog_sync.core.exceptions import PersistenceError
from catalog_sync.models import RefreshQueueEntry
from catalog_sync.repositories import RefreshQueueRepository
from catalog_sync.repositories.base import dialect_insert


@pytest.mark.asyncio
async def test_enqueue_is_insert_if_absent(session_factory):
    queue = RefreshQueueRepository(session_factory, chunk_size=2)
    now = utcnow()

    await queue.enqueue_new([3, 1, 2, 3], now)
    later = now + timedelta(hours=1)
    await queue.reschedule(
        [
            {
                "item_id": 1,
                "priority": "refresh",
                "attempts": 0,
                "last_attempt_at": now,
                "last_error": None,
                "next_run_at": later,
            }
        ]
    )
    await queue.enqueue_new([1], now)

    entry = await queue.get(1)
    assert entry.priority == "refresh"
    assert entry.next_run_at == later
    assert (await queue.stats(now)).total == 3


@pytest.mark.asyncio
async def test_pick_due_orders_by_schedule(session_factory):
    queue = RefreshQueueRepository(session_factory)
    now = utcnow()
    await queue.enqueue_new([5, 4], now - timedelta(minutes=5))
    await queue.enqueue_new([1], now)
    await queue.enqueue_new([9], now + timedelta(minutes=5))

    due = await queue.pick_due(now, 10)

    assert [entry.item_id for entry in due] == [4, 5, 1]
    assert [entry.item_id for entry in await queue.pick_due(now, 2)] == [4, 5]


@pytest.mark.asyncio
async def test_stats_count_failing_entries(session_factory):
    queue = RefreshQueueRepository(session_factory)
    now = utcnow()
    await queue.enqueue_new([1, 2], now)
    await queue.reschedule(
        [
            {
                "item_id": 2,
                "priority": "new",
                "attempts": 2,
                "last_attempt_at": now,
                "last_error": "HTTP 500",
                "next_run_at": now + timedelta(hours=12),
            }
        ]
    )

    stats = await queue.stats(now)

    assert (stats.total, stats.due, stats.failing) == (2, 1, 1)


@pytest.mark.asyncio
async def test_timestamps_round_trip_as_utc(session_factory):
    queue = RefreshQueueRepository(session_factory)
    scheduled = datetime(2024, 3, 1, 14, 30, 15, 250000, tzinfo=timezone(timedelta(hours=2)))

    await queue.enqueue_new([1], scheduled)
    entry = await queue.get(1)

    assert entry.next_run_at == scheduled
    assert entry.next_run_at.utcoffset() == timedelta(0)
    assert entry.next_run_at.hour == 12
    assert [due.item_id for due in await queue.pick_due(scheduled + timedelta(seconds=1), 10)] == [1]
    assert await queue.pick_due(scheduled - timedelta(seconds=1), 10) == []


def test_unsupported_dialect_is_rejected():
    with pytest.raises(PersistenceError):
        dialect_insert("mssql", RefreshQueueEntry)
