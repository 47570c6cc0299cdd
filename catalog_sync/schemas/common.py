"""
Common schemas used across the API
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: str = "ok"
    timestamp: str
    version: str
    database: str = "connected"


class QueueStats(BaseModel):
    """Refresh queue counters"""
    total: int = 0
    due: int = 0
    failing: int = Field(default=0, description="Entries with at least one failed attempt")


class CatalogStats(BaseModel):
    """Catalog table counters"""
    items: int = 0
    enriched: int = 0
    deleted: int = 0
    images: int = 0
    queue: QueueStats = Field(default_factory=QueueStats)


class DiscoveryRunRead(BaseModel):
    """Discovery run as exposed by the API"""
    model_config = ConfigDict(from_attributes=True)

    run_id: UUID
    strategy: str
    category: Optional[str] = None
    status: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    notes: Optional[str] = None
    queries_issued: int = 0
    pages_fetched: int = 0
    items_seen: int = 0


class DiscoveryRunList(BaseModel):
    """Recent discovery runs, newest first"""
    items: List[DiscoveryRunRead]
    total: int
