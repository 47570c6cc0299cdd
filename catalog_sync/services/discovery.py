"""
Discovery crawler

Enumerates category x subcategory x sort type x keyword search queries,
pages through each one and records every item it sees: catalog rows, per-run
provenance hits and refresh queue entries for the enrichment worker.
"""
import random
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set
from uuid import UUID

from pydantic import BaseModel, ValidationError

from catalog_sync.core.clock import Sleeper, sleep, utcnow
from catalog_sync.core.config import Settings
from catalog_sync.core.exceptions import DiscoveryError
from catalog_sync.core.logging import log
from catalog_sync.models import RunStatus
from catalog_sync.repositories import CatalogItemRepository, DiscoveryRepository, RefreshQueueRepository
from catalog_sync.schemas.upstream import SearchItem, SearchPage
from catalog_sync.services.taxonomy import TaxonomyService
from catalog_sync.services.upstream import CatalogApi, UpstreamResponse
from catalog_sync.utils.fingerprint import calculate_query_fingerprint
from catalog_sync.utils.normalization import normalize_bool, normalize_number, normalize_sort_type, normalize_text

TOO_MANY_REQUESTS = "too many requests"


class QueryState(str, Enum):
    """Lifecycle of one search query within a run"""
    NOT_STARTED = "not_started"
    PAGING = "paging"
    EXHAUSTED = "exhausted"
    ABORTED = "aborted"


class SearchQuery(BaseModel):
    category: str
    subcategory: Optional[str] = None
    sort_type: str
    keyword: str = ""
    limit: int

    @property
    def fingerprint(self) -> str:
        return calculate_query_fingerprint(
            self.category, self.subcategory, self.sort_type, self.keyword, self.limit
        )

    @property
    def label(self) -> str:
        return "/".join([self.subcategory or self.category, self.sort_type, self.keyword or "(no-keyword)"])


class QueryResult(BaseModel):
    query: SearchQuery
    state: QueryState = QueryState.NOT_STARTED
    pages: int = 0
    items: int = 0
    reason: Optional[str] = None


class DiscoverySummary(BaseModel):
    run_id: Optional[UUID] = None
    status: RunStatus = RunStatus.RUNNING
    queries_issued: int = 0
    queries_skipped: int = 0
    pages_fetched: int = 0
    items_seen: int = 0
    capped: bool = False


def build_query_plan(
    category: str,
    subcategories: List[str],
    sort_types: List[str],
    keyword_sort_types: List[str],
    keywords: List[str],
    include_empty_keyword: bool,
    limit: int,
) -> List[SearchQuery]:
    """
    Expand the query space for one category, in crawl order.

    Keywords only partition sort types listed in `keyword_sort_types`; every
    other sort type runs once with the empty keyword. The plan can contain
    duplicates (repeated config values); the crawler's fingerprint gate drops them.
    """
    keyword_sorts = {normalize_sort_type(sort_type) for sort_type in keyword_sort_types}
    keyword_list = [""] + list(keywords) if include_empty_keyword else list(keywords)

    plan = []
    for subcategory in subcategories:
        for sort_type in sort_types:
            partitioned = normalize_sort_type(sort_type) in keyword_sorts
            for keyword in keyword_list if partitioned else [""]:
                plan.append(
                    SearchQuery(
                        category=category,
                        subcategory=subcategory,
                        sort_type=sort_type,
                        keyword=keyword,
                        limit=limit,
                    )
                )
    return plan


def build_catalog_rows(
    items: List[SearchItem],
    now: datetime,
    category: str,
    subcategory: Optional[str],
) -> List[Dict[str, Any]]:
    """
    Map search results to catalog rows.

    Only assets with a usable id are kept; a later duplicate of the same id
    within one page replaces the earlier one.
    """
    rows: Dict[int, Dict[str, Any]] = {}
    for item in items:
        item_id = normalize_number(item.id)
        if not item_id:
            continue
        if item.item_type and item.item_type != "Asset":
            continue

        creator_id = normalize_number(item.creator_id)
        creator_target_id = normalize_number(item.creator_target_id)
        price_status = normalize_text(item.price_status)
        is_for_sale = normalize_bool(item.is_for_sale)
        if is_for_sale is None and price_status:
            is_for_sale = price_status.lower() == "onsale"
        collectible_item_id = item.collectible_item_id

        rows[item_id] = {
            "item_id": item_id,
            "item_type": item.item_type or "Asset",
            "asset_type_id": normalize_number(item.asset_type),
            "category": category,
            "subcategory": subcategory,
            "name": normalize_text(item.name),
            "description": normalize_text(item.description),
            "price": normalize_number(item.price),
            "price_status": price_status,
            "lowest_price": normalize_number(item.lowest_price),
            "lowest_resale_price": normalize_number(item.lowest_resale_price),
            "is_for_sale": is_for_sale,
            "is_limited": normalize_bool(item.is_limited),
            "is_limited_unique": normalize_bool(item.is_limited_unique),
            "remaining": normalize_number(item.remaining),
            "creator_id": creator_id,
            "creator_target_id": creator_target_id if creator_target_id is not None else creator_id,
            "creator_name": normalize_text(item.creator_name),
            "creator_type": normalize_text(item.creator_type),
            "creator_has_verified_badge": normalize_bool(item.creator_has_verified_badge),
            "product_id": normalize_number(item.product_id),
            "collectible_item_id": str(collectible_item_id) if collectible_item_id not in (None, "") else None,
            "favorite_count": normalize_number(item.favorite_count),
            "has_resellers": normalize_bool(item.has_resellers),
            "total_quantity": normalize_number(item.total_quantity),
            "units_available_for_consumption": normalize_number(item.units_available_for_consumption),
            "quantity_limit_per_user": normalize_number(item.quantity_limit_per_user),
            "sale_location_type": normalize_text(item.sale_location_type),
            "off_sale_deadline": normalize_text(item.off_sale_deadline),
            "item_status": item.item_status,
            "item_restrictions": item.item_restrictions,
            "bundled_items": item.bundled_items,
            "raw_search_json": item.model_dump(by_alias=True, exclude_unset=True),
            "last_seen_at": now,
            "updated_at": now,
        }
    return list(rows.values())


def pick_sample_item(item: SearchItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "name": item.name,
        "assetType": item.asset_type,
        "price": item.price,
        "priceStatus": item.price_status,
        "creatorName": item.creator_name,
        "isForSale": item.is_for_sale,
    }


def is_rate_limited_page(response: UpstreamResponse, page: Optional[SearchPage]) -> bool:
    if response.rate_limited:
        return True
    if response.error and TOO_MANY_REQUESTS in response.error.lower():
        return True
    return page is not None and TOO_MANY_REQUESTS in page.error_message.lower()


class DiscoveryCrawler:
    """Walks the search query space once per run"""

    def __init__(
        self,
        settings: Settings,
        api: CatalogApi,
        items: CatalogItemRepository,
        runs: DiscoveryRepository,
        queue: RefreshQueueRepository,
        taxonomy: TaxonomyService,
        sleeper: Optional[Sleeper] = None,
        rng: Optional[Callable[[], float]] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        self.api = api
        self.items = items
        self.runs = runs
        self.queue = queue
        self.taxonomy = taxonomy
        self._sleep = sleeper or sleep
        self._rng = rng or random.random
        self._now = now or utcnow

        self.seen_fingerprints: Set[str] = set()
        self.summary = DiscoverySummary()

    async def _pause(self, delay_ms: int):
        """Sleep for a jittered delay"""
        if delay_ms <= 0:
            return
        jitter = int(self._rng() * self.settings.retry_jitter_ms) if self.settings.retry_jitter_ms > 0 else 0
        await self._sleep((delay_ms + jitter) / 1000)

    def _cap_reached(self) -> bool:
        max_items = self.settings.max_items
        max_total_pages = self.settings.max_total_pages
        if max_items and self.summary.items_seen >= max_items:
            return True
        if max_total_pages and self.summary.pages_fetched >= max_total_pages:
            return True
        return False

    async def run(self) -> DiscoverySummary:
        """Execute one discovery run; failures mark the run failed and re-raise"""
        settings = self.settings
        categories = settings.category_list
        if not categories:
            raise DiscoveryError("No categories configured")

        self.seen_fingerprints = set()
        self.summary = DiscoverySummary()

        run_id: Optional[UUID] = None
        if not settings.dry_run:
            run = await self.runs.create_run(category=",".join(categories))
            run_id = run.run_id
        self.summary.run_id = run_id

        log.info(
            "Catalog discovery started",
            categories=",".join(categories),
            sort_types=len(settings.sort_type_list),
            keyword_sort_types=",".join(settings.keyword_sort_type_list),
            keywords=len(settings.keyword_list),
            include_empty_keyword=settings.include_empty_keyword,
            limit=settings.page_limit,
            dry_run=settings.dry_run,
        )

        try:
            for category in categories:
                subcategories = await self.taxonomy.resolve_subcategories(category)
                if not subcategories:
                    raise DiscoveryError(f"No subcategories resolved for category {category}", category=category)

                plan = build_query_plan(
                    category=category,
                    subcategories=subcategories,
                    sort_types=settings.sort_type_list,
                    keyword_sort_types=settings.keyword_sort_type_list,
                    keywords=settings.keyword_list,
                    include_empty_keyword=settings.include_empty_keyword,
                    limit=settings.page_limit,
                )
                for query in plan:
                    if self._cap_reached():
                        self.summary.capped = True
                        break
                    fingerprint = query.fingerprint
                    if fingerprint in self.seen_fingerprints:
                        self.summary.queries_skipped += 1
                        continue
                    self.seen_fingerprints.add(fingerprint)

                    await self.crawl_query(query, run_id)
                    await self._pause(settings.query_delay_ms)

                if self.summary.capped:
                    break
        except Exception as e:
            self.summary.status = RunStatus.FAILED
            if run_id is not None:
                await self._finish(run_id, RunStatus.FAILED, notes=str(e))
            log.error("Catalog discovery failed", run_id=str(run_id), error=str(e))
            raise

        self.summary.status = RunStatus.COMPLETED
        if run_id is not None:
            await self._finish(run_id, RunStatus.COMPLETED)
        log.info(
            "Catalog discovery complete",
            run_id=str(run_id),
            queries=self.summary.queries_issued,
            skipped=self.summary.queries_skipped,
            pages=self.summary.pages_fetched,
            items=self.summary.items_seen,
            capped=self.summary.capped,
        )
        return self.summary

    async def _finish(self, run_id: UUID, status: RunStatus, notes: Optional[str] = None):
        await self.runs.finish_run(
            run_id,
            status,
            notes=notes,
            queries_issued=self.summary.queries_issued,
            pages_fetched=self.summary.pages_fetched,
            items_seen=self.summary.items_seen,
        )

    async def crawl_query(self, query: SearchQuery, run_id: Optional[UUID]) -> QueryResult:
        """Page through one query until it is exhausted, aborted or capped"""
        settings = self.settings
        result = QueryResult(query=query, state=QueryState.PAGING)
        self.summary.queries_issued += 1
        log.info("Starting query", number=self.summary.queries_issued, query=query.label)

        cursor: Optional[str] = None
        seen_cursors: Set[str] = set()
        cooldowns = 0

        while True:
            if settings.max_pages and result.pages >= settings.max_pages:
                result.reason = "max_pages"
                break
            if self._cap_reached():
                self.summary.capped = True
                result.reason = "global_cap"
                break

            page_number = result.pages + 1
            response = await self.api.search_items(
                category=query.category,
                subcategory=query.subcategory,
                sort_type=query.sort_type,
                keyword=query.keyword,
                limit=query.limit,
                cursor=cursor,
            )

            page: Optional[SearchPage] = None
            error = response.error
            if response.ok:
                if isinstance(response.payload, dict):
                    try:
                        page = SearchPage.model_validate(response.payload)
                    except ValidationError as e:
                        error = f"Malformed search page: {e.error_count()} errors"
                else:
                    error = "Malformed search page: not an object"
                if page is not None and page.errors:
                    error = page.error_message or "Search response contained errors"

            if error or not response.ok:
                if is_rate_limited_page(response, page) and cooldowns < settings.rate_limit_retries:
                    cooldowns += 1
                    log.warning(
                        "Rate limited, cooling down",
                        query=query.label,
                        page=page_number,
                        cooldown=cooldowns,
                        budget=settings.rate_limit_retries,
                    )
                    await self._pause(settings.rate_limit_cooldown_ms)
                    continue
                result.state = QueryState.EXHAUSTED
                result.reason = error or f"HTTP {response.status}"
                log.warning("Query failed", query=query.label, page=page_number, error=result.reason)
                return result

            items = page.items
            log.info(
                "Fetched page",
                query=query.label,
                page=page_number,
                items=len(items),
                next_cursor=page.next_page_cursor,
            )
            if items and settings.log_sample:
                log.info("Sample item", query=query.label, sample=pick_sample_item(items[0]))
                if settings.log_sample_raw:
                    log.debug("Sample item raw", raw=items[0].model_dump(by_alias=True, exclude_unset=True))

            if not items:
                result.state = QueryState.EXHAUSTED
                result.reason = "empty_page"
                return result

            result.pages = page_number
            self.summary.pages_fetched += 1
            cooldowns = 0

            rows = build_catalog_rows(items, self._now(), query.category, query.subcategory)
            if rows:
                result.items += len(rows)
                self.summary.items_seen += len(rows)
                await self.persist_page(query, rows, page_number, run_id)

            cursor = page.next_page_cursor
            if not cursor:
                result.state = QueryState.EXHAUSTED
                result.reason = "no_cursor"
                return result
            if cursor in seen_cursors:
                result.state = QueryState.ABORTED
                result.reason = "repeated_cursor"
                log.warning("Cursor repeated, aborting query", query=query.label, page=page_number)
                return result
            seen_cursors.add(cursor)

            await self._pause(settings.request_delay_ms)

        # Stopped by a cap
        result.state = QueryState.EXHAUSTED
        return result

    async def persist_page(
        self,
        query: SearchQuery,
        rows: List[Dict[str, Any]],
        page_number: int,
        run_id: Optional[UUID],
    ):
        """Write one page of rows: items, then hits, then queue entries"""
        if self.settings.dry_run:
            log.info("Dry run: page not written", query=query.label, rows=len(rows))
            return

        now = self._now()
        await self.items.upsert_discovered(rows)
        if run_id is not None:
            await self.runs.insert_hits(
                [
                    {
                        "run_id": run_id,
                        "item_id": row["item_id"],
                        "query_hash": query.fingerprint,
                        "category": query.category,
                        "subcategory": query.subcategory,
                        "keyword": query.keyword or None,
                        "sort_type": query.sort_type,
                        "cursor_page": page_number,
                        "seen_at": now,
                    }
                    for row in rows
                ]
            )
        if self.settings.enqueue_refresh:
            await self.queue.enqueue_new([row["item_id"] for row in rows], now)
