"""
Service layer: upstream access, discovery, enrichment and thumbnails
"""

from .discovery import DiscoveryCrawler, DiscoverySummary, QueryState, SearchQuery
from .enrichment import EnrichmentSummary, EnrichmentWorker, ItemOutcome, run_pool
from .pipeline import CatalogPipeline
from .rate_controller import AdaptiveRateController, RateControllers
from .retry_policy import RetryDecision, RetryOutcome, RetryPolicy, parse_retry_after
from .taxonomy import TaxonomyService
from .thumbnails import ThumbnailFetcher
from .upstream import CatalogApi, UpstreamClient, UpstreamResponse

__all__ = [
    "AdaptiveRateController",
    "CatalogApi",
    "CatalogPipeline",
    "DiscoveryCrawler",
    "DiscoverySummary",
    "EnrichmentSummary",
    "EnrichmentWorker",
    "ItemOutcome",
    "QueryState",
    "RateControllers",
    "RetryDecision",
    "RetryOutcome",
    "RetryPolicy",
    "SearchQuery",
    "TaxonomyService",
    "ThumbnailFetcher",
    "UpstreamClient",
    "UpstreamResponse",
    "parse_retry_after",
    "run_pool",
]
