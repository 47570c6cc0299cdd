"""
Discovery run and hit repository
"""
from typing import List, Optional, Sequence
from uuid import UUID

from sqlmodel import select

from catalog_sync.core.clock import utcnow
from catalog_sync.core.logging import log
from catalog_sync.models import DiscoveryHit, DiscoveryRun, RunStatus
from catalog_sync.repositories.base import BaseRepository, Row


class DiscoveryRepository(BaseRepository):
    """Repository for discovery runs and their provenance hits"""

    model = DiscoveryRun

    def __init__(self, session_factory, chunk_size: int = 100):
        super().__init__(session_factory, chunk_size)
        self.hits = HitRepository(session_factory, chunk_size)

    async def create_run(self, category: Optional[str], strategy: str = "catalog_search_details") -> DiscoveryRun:
        """Start a new run in the running state"""
        run = DiscoveryRun(category=category, strategy=strategy, status=RunStatus.RUNNING.value)
        async with self.session() as session:
            session.add(run)
        log.info("Created discovery run", run_id=str(run.run_id), category=category)
        return run

    async def finish_run(
        self,
        run_id: UUID,
        status: RunStatus,
        notes: Optional[str] = None,
        queries_issued: int = 0,
        pages_fetched: int = 0,
        items_seen: int = 0,
    ) -> Optional[DiscoveryRun]:
        """Record the terminal status of a run"""
        async with self.session() as session:
            run = await session.get(DiscoveryRun, run_id)
            if run is None:
                log.warning("Discovery run not found", run_id=str(run_id))
                return None
            run.status = status.value
            run.finished_at = utcnow()
            run.notes = notes
            run.queries_issued = queries_issued
            run.pages_fetched = pages_fetched
            run.items_seen = items_seen
            session.add(run)
        return run

    async def get_run(self, run_id: UUID) -> Optional[DiscoveryRun]:
        async with self.session() as session:
            return await session.get(DiscoveryRun, run_id)

    async def recent_runs(self, limit: int = 20) -> List[DiscoveryRun]:
        async with self.session() as session:
            statement = select(DiscoveryRun).order_by(DiscoveryRun.started_at.desc()).limit(limit)
            result = await session.exec(statement)
            return list(result.all())

    async def insert_hits(self, rows: Sequence[Row]) -> int:
        """Append hits; a (run, item) pair already recorded is left untouched"""
        return await self.hits.upsert(rows, conflict_columns=["run_id", "item_id"])

    async def count_hits(self, run_id: UUID) -> int:
        return await self.hits.count(DiscoveryHit.run_id == run_id)


class HitRepository(BaseRepository):
    model = DiscoveryHit
