"""
Thumbnail batch fetcher
"""
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import ValidationError

from catalog_sync.core.clock import Sleeper, sleep, utcnow
from catalog_sync.core.config import Settings
from catalog_sync.core.logging import log
from catalog_sync.repositories import ItemImageRepository
from catalog_sync.schemas.upstream import ThumbnailResponse
from catalog_sync.services.upstream import CatalogApi
from catalog_sync.utils.normalization import chunked, normalize_number, normalize_text


def build_image_rows(response: ThumbnailResponse, size: str, image_format: str, now: datetime) -> List[Dict[str, Any]]:
    rows: Dict[int, Dict[str, Any]] = {}
    for entry in response.data or []:
        item_id = normalize_number(entry.target_id)
        if not item_id:
            continue
        rows[item_id] = {
            "item_id": item_id,
            "size": size,
            "format": image_format,
            "image_url": normalize_text(entry.image_url),
            "state": normalize_text(entry.state),
            "version": normalize_text(str(entry.version)) if entry.version is not None else None,
            "last_checked_at": now,
        }
    return list(rows.values())


class ThumbnailFetcher:
    """Resolves image URLs for enriched items, one upstream call per group of ids"""

    def __init__(
        self,
        settings: Settings,
        api: CatalogApi,
        images: ItemImageRepository,
        sleeper: Optional[Sleeper] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        self.api = api
        self.images = images
        self._sleep = sleeper or sleep
        self._now = now or utcnow

    async def fetch_and_store(self, item_ids: Sequence[int]) -> int:
        """
        Fetch and upsert thumbnails; returns the number of image rows resolved.

        A failed group is logged and skipped so it never affects the others.
        """
        settings = self.settings
        resolved = 0
        for index, group in enumerate(chunked(item_ids, settings.thumbnail_batch_size)):
            if index:
                await self._sleep(settings.thumbnail_delay_ms / 1000)

            response = await self.api.fetch_thumbnails(group)
            if not response.ok:
                log.warning(
                    "Thumbnail batch failed",
                    ids=len(group),
                    status=response.status,
                    error=response.error,
                )
                continue
            try:
                parsed = ThumbnailResponse.model_validate(response.payload or {})
            except ValidationError as e:
                log.warning("Malformed thumbnail response", ids=len(group), error=str(e))
                continue

            rows = build_image_rows(parsed, settings.thumbnail_size, settings.thumbnail_format, self._now())
            resolved += len(rows)
            if rows and not settings.dry_run:
                await self.images.upsert_images(rows)

        return resolved
