"""
Catalog taxonomy: fetch, sync and subcategory resolution
"""
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from catalog_sync.core.config import Settings
from catalog_sync.core.exceptions import UpstreamError
from catalog_sync.core.logging import log
from catalog_sync.repositories import TaxonomyRepository
from catalog_sync.schemas.upstream import CategoryEntry
from catalog_sync.services.upstream import CatalogApi
from catalog_sync.utils.normalization import normalize_bool, normalize_int_list, normalize_number, normalize_text


def build_taxonomy_rows(categories: List[CategoryEntry]) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """Category and subcategory rows, keyed and de-duplicated by their natural keys"""
    category_rows: Dict[str, Dict[str, Any]] = {}
    subcategory_rows: Dict[str, Dict[str, Any]] = {}

    for entry in categories:
        category = normalize_text(entry.category)
        if not category:
            continue
        category_rows[category] = {
            "category": category,
            "name": normalize_text(entry.name),
            "category_id": normalize_number(entry.category_id),
            "order_index": normalize_number(entry.order_index),
            "is_searchable": normalize_bool(entry.is_searchable),
            "asset_type_ids": normalize_int_list(entry.asset_type_ids),
            "bundle_type_ids": normalize_int_list(entry.bundle_type_ids),
        }
        for sub in entry.subcategories or []:
            subcategory = normalize_text(sub.subcategory)
            if not subcategory:
                continue
            subcategory_rows[subcategory] = {
                "subcategory": subcategory,
                "category": category,
                "name": normalize_text(sub.name),
                "short_name": normalize_text(sub.short_name),
                "subcategory_id": normalize_number(sub.subcategory_id),
                "asset_type_ids": normalize_int_list(sub.asset_type_ids),
                "bundle_type_ids": normalize_int_list(sub.bundle_type_ids),
            }

    return list(category_rows.values()), list(subcategory_rows.values())


def find_category(categories: List[CategoryEntry], category: str) -> Optional[CategoryEntry]:
    for entry in categories:
        if entry.category == category or entry.name == category:
            return entry
    return None


class TaxonomyService:
    """Keeps the category side tables fresh and resolves the subcategories to crawl"""

    def __init__(self, settings: Settings, api: CatalogApi, repo: TaxonomyRepository):
        self.settings = settings
        self.api = api
        self.repo = repo

    async def fetch_categories(self) -> List[CategoryEntry]:
        response = await self.api.fetch_categories()
        if not response.ok:
            raise UpstreamError(
                f"Catalog categories failed: {response.error or response.status}",
                status_code=response.status,
                retry_after_ms=response.retry_after_ms,
            )
        if not isinstance(response.payload, list):
            return []

        categories = []
        for raw in response.payload:
            try:
                categories.append(CategoryEntry.model_validate(raw))
            except ValidationError as e:
                log.warning("Skipping malformed category entry", error=str(e))
        return categories

    async def sync(self, categories: List[CategoryEntry]) -> Tuple[int, int]:
        """Upsert the fetched taxonomy; returns (categories, subcategories) written"""
        category_rows, subcategory_rows = build_taxonomy_rows(categories)
        if self.settings.dry_run:
            log.info(
                "Dry run: taxonomy not written",
                categories=len(category_rows),
                subcategories=len(subcategory_rows),
            )
            return 0, 0

        written_categories = await self.repo.upsert_categories(category_rows)
        written_subcategories = await self.repo.upsert_subcategories(subcategory_rows)
        log.info(
            "Taxonomy synced",
            categories=written_categories,
            subcategories=written_subcategories,
        )
        return written_categories, written_subcategories

    async def refresh(self) -> Tuple[int, int]:
        return await self.sync(await self.fetch_categories())

    async def resolve_subcategories(self, category: str) -> List[str]:
        """
        Subcategories to crawl for a category.

        Order of preference: the configured list, the stored taxonomy (unless
        a forced sync is requested), the live categories endpoint (syncing the
        tables when enabled), then the stored taxonomy as a fallback.
        """
        manual = self.settings.subcategory_list
        if manual:
            return manual

        force = self.settings.sync_taxonomy_force
        if not force:
            existing = await self.repo.list_subcategories(category)
            if existing:
                return existing

        try:
            categories = await self.fetch_categories()
        except UpstreamError as e:
            if force:
                raise
            log.warning("Categories endpoint unavailable, using stored taxonomy", error=e.detail)
            return await self.repo.list_subcategories(category)

        if self.settings.sync_taxonomy:
            await self.sync(categories)

        entry = find_category(categories, category)
        resolved = [
            sub.subcategory
            for sub in (entry.subcategories or [] if entry else [])
            if isinstance(sub.subcategory, str) and sub.subcategory
        ]
        if not resolved and not force:
            return await self.repo.list_subcategories(category)
        return resolved
