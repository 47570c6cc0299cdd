"""
SQLModel database models
"""

from .catalog import CatalogItem, ItemImage
from .discovery import DiscoveryHit, DiscoveryRun, RunStatus
from .queue import RefreshQueueEntry
from .taxonomy import CatalogCategory, CatalogSubcategory

__all__ = [
    "CatalogItem",
    "ItemImage",
    "DiscoveryRun",
    "DiscoveryHit",
    "RunStatus",
    "RefreshQueueEntry",
    "CatalogCategory",
    "CatalogSubcategory",
]
