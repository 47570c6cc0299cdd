"""
Catalog item and item image repositories
"""
from collections import defaultdict
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from sqlalchemy import case

from catalog_sync.core.logging import log
from catalog_sync.models import CatalogItem, ItemImage
from catalog_sync.models.catalog import ENRICHMENT_OWNED_FIELDS
from catalog_sync.repositories.base import BaseRepository, Row

# Set once when the row is first inserted
_INSERT_ONLY_COLUMNS = {"item_id", "created_at"}


class CatalogItemRepository(BaseRepository):
    """Repository for catalog items"""

    model = CatalogItem

    async def upsert_discovered(self, rows: Sequence[Row]) -> int:
        """
        Upsert rows built from search results.

        Discovery-only columns always take the new value. Columns the detail
        endpoint owns are only written while the item has never been enriched,
        so a later sighting cannot clobber authoritative data.
        """
        if not rows:
            return 0

        columns = [column for column in rows[0].keys() if column not in _INSERT_ONLY_COLUMNS]
        discovery_columns = [column for column in columns if column not in ENRICHMENT_OWNED_FIELDS]
        guarded_columns = [column for column in columns if column in ENRICHMENT_OWNED_FIELDS]
        table = CatalogItem.__table__

        def guarded(stmt) -> Dict[str, object]:
            never_enriched = table.c.last_enriched_at.is_(None)
            return {
                column: case((never_enriched, stmt.excluded[column]), else_=table.c[column])
                for column in guarded_columns
            }

        written = await self.upsert(
            rows,
            conflict_columns=["item_id"],
            update_columns=discovery_columns,
            set_builder=guarded,
        )
        log.debug("Upserted discovered items", count=written)
        return written

    async def apply_enrichment(self, rows: Sequence[Row]) -> int:
        """
        Write enrichment results.

        Each row carries the item id plus only the fields it should set; rows
        are grouped by key set so missing fields never null out stored values.
        """
        groups: Dict[FrozenSet[str], List[Row]] = defaultdict(list)
        for row in rows:
            groups[frozenset(row.keys())].append(row)

        written = 0
        for keys, group in groups.items():
            update_columns = sorted(keys - _INSERT_ONLY_COLUMNS)
            written += await self.upsert(
                group,
                conflict_columns=["item_id"],
                update_columns=update_columns,
            )
        return written

    async def get(self, item_id: int) -> Optional[CatalogItem]:
        async with self.session() as session:
            return await session.get(CatalogItem, item_id)

    async def stats(self) -> Tuple[int, int, int]:
        """(total, enriched, deleted) item counts"""
        total = await self.count()
        enriched = await self.count(CatalogItem.last_enriched_at.is_not(None))
        deleted = await self.count(CatalogItem.is_deleted.is_(True))
        return total, enriched, deleted


class ItemImageRepository(BaseRepository):
    """Repository for resolved item thumbnails"""

    model = ItemImage

    async def upsert_images(self, rows: Sequence[Row]) -> int:
        return await self.upsert(
            rows,
            conflict_columns=["item_id", "size", "format"],
            update_columns=["image_url", "state", "version", "last_checked_at"],
        )
