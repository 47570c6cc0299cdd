"""
Pipeline wiring - builds the repositories and services for one process
"""
from datetime import datetime
from typing import Callable, Optional

import httpx
from sqlalchemy.ext.asyncio import async_sessionmaker

from catalog_sync.core.clock import Clock, Sleeper
from catalog_sync.core.config import Settings
from catalog_sync.repositories import (
    CatalogItemRepository,
    DiscoveryRepository,
    ItemImageRepository,
    RefreshQueueRepository,
    TaxonomyRepository,
)
from catalog_sync.services.discovery import DiscoveryCrawler, DiscoverySummary
from catalog_sync.services.enrichment import EnrichmentSummary, EnrichmentWorker
from catalog_sync.services.rate_controller import RateControllers
from catalog_sync.services.taxonomy import TaxonomyService
from catalog_sync.services.thumbnails import ThumbnailFetcher
from catalog_sync.services.upstream import CatalogApi


class CatalogPipeline:
    """
    Discovery and enrichment over one shared set of rate controllers.

    The rate controller state lives as long as this object; building a new
    pipeline is the only way to reset it.
    """

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker,
        client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Clock] = None,
        sleeper: Optional[Sleeper] = None,
        rng: Optional[Callable[[], float]] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        chunk_size = settings.write_chunk_size

        self.controllers = RateControllers.from_settings(settings, clock=clock, sleeper=sleeper)
        self.api = CatalogApi(settings, controllers=self.controllers, client=client, sleeper=sleeper, rng=rng)

        self.items = CatalogItemRepository(session_factory, chunk_size)
        self.images = ItemImageRepository(session_factory, chunk_size)
        self.runs = DiscoveryRepository(session_factory, chunk_size)
        self.queue = RefreshQueueRepository(session_factory, chunk_size)
        self.taxonomy_repo = TaxonomyRepository(session_factory, chunk_size)

        self.taxonomy = TaxonomyService(settings, self.api, self.taxonomy_repo)
        self.discovery = DiscoveryCrawler(
            settings,
            self.api,
            items=self.items,
            runs=self.runs,
            queue=self.queue,
            taxonomy=self.taxonomy,
            sleeper=sleeper,
            rng=rng,
            now=now,
        )
        self.thumbnails = ThumbnailFetcher(settings, self.api, self.images, sleeper=sleeper, now=now)
        self.enrichment = EnrichmentWorker(
            settings,
            self.api,
            items=self.items,
            queue=self.queue,
            thumbnails=self.thumbnails,
            sleeper=sleeper,
            now=now,
        )

    async def __aenter__(self) -> "CatalogPipeline":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        await self.api.close()

    async def discover(self) -> DiscoverySummary:
        return await self.discovery.run()

    async def enrich(self) -> EnrichmentSummary:
        return await self.enrichment.run()
