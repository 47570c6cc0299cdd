"""
Enrichment queue worker

Pulls due refresh queue entries, resolves each one against the per-item detail
endpoint through a bounded pool, writes the results back in chunks and
reschedules every entry according to its outcome.
"""
import asyncio
from collections import Counter
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar

from pydantic import BaseModel, Field, ValidationError

from catalog_sync.core.clock import Sleeper, sleep, utcnow
from catalog_sync.core.config import Settings
from catalog_sync.core.logging import log
from catalog_sync.models import RefreshQueueEntry
from catalog_sync.repositories import CatalogItemRepository, RefreshQueueRepository
from catalog_sync.schemas.upstream import ItemDetails
from catalog_sync.services.rate_controller import RateControllerSnapshot
from catalog_sync.services.thumbnails import ThumbnailFetcher
from catalog_sync.services.upstream import CatalogApi
from catalog_sync.utils.normalization import normalize_bool, normalize_number, normalize_text

T = TypeVar("T")
R = TypeVar("R")


async def run_pool(items: Iterable[T], concurrency: int, handler: Callable[[T], Awaitable[R]]) -> List[R]:
    """
    Run `handler` over items with at most `concurrency` in flight.

    A new item is admitted as soon as any running one completes. Every
    admitted item finishes before this returns; results come back in
    admission order. The first handler exception is re-raised afterwards.
    """
    tasks: List[asyncio.Task] = []
    pending = set()
    for item in items:
        if len(pending) >= max(1, concurrency):
            _, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
        task = asyncio.ensure_future(handler(item))
        tasks.append(task)
        pending.add(task)
    if pending:
        await asyncio.wait(pending)
    return [task.result() for task in tasks]


class ItemOutcome(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


class ItemResult(BaseModel):
    """Outcome for one queue entry plus the rows to write for it"""
    item_id: int
    outcome: ItemOutcome
    error: Optional[str] = None
    item_update: Optional[Dict[str, Any]] = None
    queue_update: Dict[str, Any]


class BatchParameters(BaseModel):
    batch_limit: int
    concurrency: int
    batch_delay_ms: int
    safe_mode: bool = False


class BatchSummary(BaseModel):
    picked: int = 0
    succeeded: int = 0
    not_found: int = 0
    rate_limited: int = 0
    failed: int = 0
    thumbnails: int = 0
    safe_mode: bool = False
    errors: Dict[str, int] = Field(default_factory=dict)
    error_samples: List[str] = Field(default_factory=list)
    controller: Optional[RateControllerSnapshot] = None


class EnrichmentSummary(BaseModel):
    batches: int = 0
    processed: int = 0
    succeeded: int = 0
    not_found: int = 0
    rate_limited: int = 0
    failed: int = 0
    thumbnails: int = 0
    safe_mode: bool = False

    def add(self, batch: BatchSummary):
        self.batches += 1
        self.processed += batch.picked
        self.succeeded += batch.succeeded
        self.not_found += batch.not_found
        self.rate_limited += batch.rate_limited
        self.failed += batch.failed
        self.thumbnails += batch.thumbnails
        self.safe_mode = self.safe_mode or batch.safe_mode


def assign_defined(target: Dict[str, Any], key: str, value: Any):
    """Set key only when value is known"""
    if value is None:
        return
    target[key] = value


def build_item_update(item_id: int, details: ItemDetails, payload: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    """Authoritative fields from the detail payload; unknown values are left untouched"""
    update: Dict[str, Any] = {
        "item_id": item_id,
        "is_deleted": False,
        "last_enriched_at": now,
        "raw_detail_json": payload,
        "updated_at": now,
    }
    assign_defined(update, "name", normalize_text(details.name))
    assign_defined(update, "description", normalize_text(details.description))
    assign_defined(update, "price", normalize_number(details.price_in_robux))
    assign_defined(update, "is_for_sale", normalize_bool(details.is_for_sale))
    assign_defined(update, "is_limited", normalize_bool(details.is_limited))
    assign_defined(update, "is_limited_unique", normalize_bool(details.is_limited_unique))
    assign_defined(update, "remaining", normalize_number(details.remaining))
    assign_defined(update, "asset_type_id", normalize_number(details.asset_type_id))
    assign_defined(update, "product_id", normalize_number(details.product_id))

    creator = details.creator
    if creator is not None:
        assign_defined(update, "creator_id", normalize_number(creator.id))
        assign_defined(update, "creator_target_id", normalize_number(creator.creator_target_id))
        assign_defined(update, "creator_name", normalize_text(creator.name))
        assign_defined(update, "creator_type", normalize_text(creator.creator_type))
        assign_defined(update, "creator_has_verified_badge", normalize_bool(creator.has_verified_badge))
    return update


def error_key(error: Optional[str]) -> str:
    """Group errors by their leading token, e.g. 'HTTP 500' or 'Timeout'"""
    if not error:
        return "unknown"
    head = error.split(":", 1)[0].strip()
    return head[:60] or "unknown"


class EnrichmentWorker:
    """Drains the refresh queue in batches"""

    def __init__(
        self,
        settings: Settings,
        api: CatalogApi,
        items: CatalogItemRepository,
        queue: RefreshQueueRepository,
        thumbnails: Optional[ThumbnailFetcher] = None,
        sleeper: Optional[Sleeper] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        self.api = api
        self.items = items
        self.queue = queue
        self.thumbnails = thumbnails
        self._sleep = sleeper or sleep
        self._now = now or utcnow

    @property
    def controller(self):
        return self.api.controllers.detail

    def batch_parameters(self) -> BatchParameters:
        """Batch sizing, tightened while the detail controller is in safe mode"""
        settings = self.settings
        params = BatchParameters(
            batch_limit=settings.batch_limit,
            concurrency=settings.concurrency,
            batch_delay_ms=settings.batch_delay_ms,
        )
        if self.controller.safe_mode:
            self.controller.raise_floor(settings.safe_min_interval_ms)
            params.safe_mode = True
            params.batch_limit = min(params.batch_limit, settings.safe_batch_limit)
            params.concurrency = min(params.concurrency, settings.safe_concurrency)
            params.batch_delay_ms = max(params.batch_delay_ms, settings.safe_batch_delay_ms)
        return params

    def retry_delay(self, attempts: int) -> timedelta:
        """Backoff for the n-th consecutive failure (attempts >= 1)"""
        settings = self.settings
        hours = min(settings.retry_ceiling_hours, settings.retry_hours * (2 ** max(0, attempts - 1)))
        return timedelta(hours=hours)

    async def run(self) -> EnrichmentSummary:
        """Process due entries until the queue is drained or the limit is reached"""
        settings = self.settings
        summary = EnrichmentSummary()

        while summary.processed < settings.enrich_limit:
            params = self.batch_parameters()
            limit = min(params.batch_limit, settings.enrich_limit - summary.processed)
            entries = await self.queue.pick_due(self._now(), limit)
            if not entries:
                if summary.batches == 0:
                    log.info("No catalog items ready for enrichment")
                break

            batch = await self.process_batch(entries, params)
            summary.add(batch)

            if settings.dry_run:
                break
            if summary.processed >= settings.enrich_limit:
                break
            await self._sleep(params.batch_delay_ms / 1000)

        log.info("Catalog enrichment complete", **summary.model_dump())
        return summary

    async def process_batch(
        self,
        entries: List[RefreshQueueEntry],
        params: Optional[BatchParameters] = None,
    ) -> BatchSummary:
        """Resolve, persist and fetch thumbnails for one batch"""
        params = params or self.batch_parameters()
        results: List[ItemResult] = await run_pool(entries, params.concurrency, self.process_entry)

        summary = BatchSummary(picked=len(entries), safe_mode=params.safe_mode)
        tally: Counter = Counter()
        for result in results:
            if result.outcome == ItemOutcome.SUCCESS:
                summary.succeeded += 1
                continue
            if result.outcome == ItemOutcome.NOT_FOUND:
                summary.not_found += 1
            elif result.outcome == ItemOutcome.RATE_LIMITED:
                summary.rate_limited += 1
            else:
                summary.failed += 1
            tally[f"{result.outcome.value}:{error_key(result.error)}"] += 1
            if len(summary.error_samples) < self.settings.error_sample_limit:
                summary.error_samples.append(f"{result.item_id}: {result.error}")
        summary.errors = dict(tally)

        await self.persist(results)

        succeeded_ids = [result.item_id for result in results if result.outcome == ItemOutcome.SUCCESS]
        if self.thumbnails is not None and succeeded_ids:
            summary.thumbnails = await self.thumbnails.fetch_and_store(succeeded_ids)
        summary.controller = self.controller.snapshot()

        log.info(
            "Enrichment batch complete",
            picked=summary.picked,
            succeeded=summary.succeeded,
            not_found=summary.not_found,
            rate_limited=summary.rate_limited,
            failed=summary.failed,
            thumbnails=summary.thumbnails,
            safe_mode=summary.safe_mode,
            concurrency=params.concurrency,
            controller=summary.controller.model_dump(),
        )
        if summary.errors:
            log.warning("Enrichment errors", counts=summary.errors, samples=summary.error_samples)
        return summary

    async def persist(self, results: List[ItemResult]):
        item_updates = [result.item_update for result in results if result.item_update]
        queue_updates = [result.queue_update for result in results]
        if self.settings.dry_run:
            log.info("Dry run: enrichment not written", items=len(item_updates), queue=len(queue_updates))
            return
        if item_updates:
            await self.items.apply_enrichment(item_updates)
        if queue_updates:
            await self.queue.reschedule(queue_updates)

    async def process_entry(self, entry: RefreshQueueEntry) -> ItemResult:
        """Fetch details for one entry and classify the outcome"""
        response = await self.api.fetch_item_details(entry.item_id)
        # Decision time; every reschedule for this item is relative to it
        now = self._now()

        if response.ok:
            payload = response.payload
            if not isinstance(payload, dict) or not payload:
                return self.failed(entry, now, "Empty detail payload")
            if isinstance(payload.get("errors"), list):
                return self.failed(entry, now, "Detail response contained errors")
            try:
                details = ItemDetails.model_validate(payload)
            except ValidationError as e:
                return self.failed(entry, now, f"Malformed detail payload: {e.error_count()} errors")
            if not normalize_number(details.asset_id):
                return self.not_found(entry, now, "Item not found")
            return self.succeeded(entry, now, details, payload)

        if response.not_found:
            return self.not_found(entry, now, response.error or "Item not found")
        if response.rate_limited:
            return self.rate_limited(entry, now, response.error or "HTTP 429")
        return self.failed(entry, now, response.error or f"HTTP {response.status}")

    def succeeded(self, entry: RefreshQueueEntry, now: datetime, details: ItemDetails, payload: Dict[str, Any]) -> ItemResult:
        return ItemResult(
            item_id=entry.item_id,
            outcome=ItemOutcome.SUCCESS,
            item_update=build_item_update(entry.item_id, details, payload, now),
            queue_update={
                "item_id": entry.item_id,
                "priority": "refresh",
                "attempts": 0,
                "last_attempt_at": now,
                "last_error": None,
                "next_run_at": now + timedelta(hours=self.settings.refresh_interval_hours),
            },
        )

    def not_found(self, entry: RefreshQueueEntry, now: datetime, error: str) -> ItemResult:
        return ItemResult(
            item_id=entry.item_id,
            outcome=ItemOutcome.NOT_FOUND,
            error=error,
            item_update={
                "item_id": entry.item_id,
                "is_deleted": True,
                "last_enriched_at": now,
                "updated_at": now,
            },
            queue_update={
                "item_id": entry.item_id,
                "priority": entry.priority,
                "attempts": (entry.attempts or 0) + 1,
                "last_attempt_at": now,
                "last_error": error,
                "next_run_at": now + timedelta(hours=self.settings.delete_interval_hours),
            },
        )

    def rate_limited(self, entry: RefreshQueueEntry, now: datetime, error: str) -> ItemResult:
        return ItemResult(
            item_id=entry.item_id,
            outcome=ItemOutcome.RATE_LIMITED,
            error=error,
            queue_update={
                "item_id": entry.item_id,
                "priority": entry.priority,
                "attempts": entry.attempts or 0,
                "last_attempt_at": now,
                "last_error": error,
                "next_run_at": now + timedelta(minutes=self.settings.rate_limit_requeue_minutes),
            },
        )

    def failed(self, entry: RefreshQueueEntry, now: datetime, error: str) -> ItemResult:
        attempts = (entry.attempts or 0) + 1
        return ItemResult(
            item_id=entry.item_id,
            outcome=ItemOutcome.FAILED,
            error=error,
            queue_update={
                "item_id": entry.item_id,
                "priority": entry.priority,
                "attempts": attempts,
                "last_attempt_at": now,
                "last_error": error,
                "next_run_at": now + self.retry_delay(attempts),
            },
        )
