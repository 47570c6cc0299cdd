"""
Refresh queue repository implementation
"""
from datetime import datetime
from typing import Iterable, List, Sequence

from sqlmodel import select

from catalog_sync.core.logging import log
from catalog_sync.models import RefreshQueueEntry
from catalog_sync.repositories.base import BaseRepository, Row
from catalog_sync.schemas.common import QueueStats

RESCHEDULE_COLUMNS = ["priority", "attempts", "last_attempt_at", "last_error", "next_run_at"]


class RefreshQueueRepository(BaseRepository):
    """Repository for refresh queue operations"""

    model = RefreshQueueEntry

    async def enqueue_new(self, item_ids: Iterable[int], now: datetime) -> int:
        """Queue freshly discovered items as due now; existing entries keep their schedule"""
        rows = [
            {"item_id": item_id, "priority": "new", "attempts": 0, "next_run_at": now}
            for item_id in dict.fromkeys(item_ids)
        ]
        return await self.upsert(rows, conflict_columns=["item_id"])

    async def pick_due(self, now: datetime, limit: int) -> List[RefreshQueueEntry]:
        """Oldest due entries first"""
        async with self.session() as session:
            statement = (
                select(RefreshQueueEntry)
                .where(RefreshQueueEntry.next_run_at <= now)
                .order_by(RefreshQueueEntry.next_run_at, RefreshQueueEntry.item_id)
                .limit(limit)
            )
            result = await session.exec(statement)
            return list(result.all())

    async def reschedule(self, rows: Sequence[Row]) -> int:
        """Write outcomes back; every row carries all reschedule columns"""
        written = await self.upsert(
            rows,
            conflict_columns=["item_id"],
            update_columns=RESCHEDULE_COLUMNS,
        )
        log.debug("Rescheduled queue entries", count=written)
        return written

    async def get(self, item_id: int):
        async with self.session() as session:
            return await session.get(RefreshQueueEntry, item_id)

    async def stats(self, now: datetime) -> QueueStats:
        return QueueStats(
            total=await self.count(),
            due=await self.count(RefreshQueueEntry.next_run_at <= now),
            failing=await self.count(RefreshQueueEntry.attempts > 0),
        )
