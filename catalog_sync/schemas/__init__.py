"""
API and upstream payload schemas (Pydantic models)
"""

from .common import CatalogStats, DiscoveryRunList, DiscoveryRunRead, HealthCheckResponse, QueueStats
from .upstream import (
    CategoryEntry,
    DetailCreator,
    ItemDetails,
    SearchItem,
    SearchPage,
    SubcategoryEntry,
    ThumbnailEntry,
    ThumbnailResponse,
    UpstreamErrorEntry,
)

__all__ = [
    "CatalogStats",
    "DiscoveryRunList",
    "DiscoveryRunRead",
    "HealthCheckResponse",
    "QueueStats",
    "CategoryEntry",
    "DetailCreator",
    "ItemDetails",
    "SearchItem",
    "SearchPage",
    "SubcategoryEntry",
    "ThumbnailEntry",
    "ThumbnailResponse",
    "UpstreamErrorEntry",
]
