"""
Taxonomy repository (categories and subcategories)
"""
from typing import List, Sequence

from sqlmodel import select

from catalog_sync.models import CatalogCategory, CatalogSubcategory
from catalog_sync.repositories.base import BaseRepository, Row

_CATEGORY_COLUMNS = ["name", "category_id", "order_index", "is_searchable", "asset_type_ids", "bundle_type_ids"]
_SUBCATEGORY_COLUMNS = ["category", "name", "short_name", "subcategory_id", "asset_type_ids", "bundle_type_ids"]


class SubcategoryRepository(BaseRepository):
    model = CatalogSubcategory


class TaxonomyRepository(BaseRepository):
    """Repository for the catalog taxonomy side tables"""

    model = CatalogCategory

    def __init__(self, session_factory, chunk_size: int = 100):
        super().__init__(session_factory, chunk_size)
        self.subcategories = SubcategoryRepository(session_factory, chunk_size)

    async def upsert_categories(self, rows: Sequence[Row]) -> int:
        return await self.upsert(rows, conflict_columns=["category"], update_columns=_CATEGORY_COLUMNS)

    async def upsert_subcategories(self, rows: Sequence[Row]) -> int:
        return await self.subcategories.upsert(
            rows, conflict_columns=["subcategory"], update_columns=_SUBCATEGORY_COLUMNS
        )

    async def list_subcategories(self, category: str) -> List[str]:
        """Subcategory keys for a category, in stable order"""
        async with self.session() as session:
            statement = (
                select(CatalogSubcategory.subcategory)
                .where(CatalogSubcategory.category == category)
                .order_by(CatalogSubcategory.subcategory)
            )
            result = await session.exec(statement)
            return list(result.all())
