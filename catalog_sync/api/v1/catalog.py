"""
Read-only catalog endpoints
"""
from fastapi import APIRouter, Query

from catalog_sync.api.deps import DiscoveryRepoDep, ImageRepoDep, ItemRepoDep, QueueRepoDep
from catalog_sync.core.clock import utcnow
from catalog_sync.schemas.common import CatalogStats, DiscoveryRunList, DiscoveryRunRead

router = APIRouter()


@router.get("/stats", response_model=CatalogStats)
async def catalog_stats(
    items: ItemRepoDep,
    images: ImageRepoDep,
    queue: QueueRepoDep,
) -> CatalogStats:
    """Item, image and refresh queue counters"""
    total, enriched, deleted = await items.stats()
    return CatalogStats(
        items=total,
        enriched=enriched,
        deleted=deleted,
        images=await images.count(),
        queue=await queue.stats(utcnow()),
    )


@router.get("/runs", response_model=DiscoveryRunList)
async def recent_runs(
    runs: DiscoveryRepoDep,
    limit: int = Query(default=20, ge=1, le=100),
) -> DiscoveryRunList:
    """Most recent discovery runs, newest first"""
    recent = await runs.recent_runs(limit)
    return DiscoveryRunList(
        items=[DiscoveryRunRead.model_validate(run) for run in recent],
        total=await runs.count(),
    )
