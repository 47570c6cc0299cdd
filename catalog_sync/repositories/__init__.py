"""
Repository implementations
"""

from .base import BaseRepository, dialect_insert
from .catalog import CatalogItemRepository, ItemImageRepository
from .discovery import DiscoveryRepository
from .refresh_queue import RefreshQueueRepository
from .taxonomy import TaxonomyRepository

__all__ = [
    "BaseRepository",
    "dialect_insert",
    "CatalogItemRepository",
    "ItemImageRepository",
    "DiscoveryRepository",
    "RefreshQueueRepository",
    "TaxonomyRepository",
]
