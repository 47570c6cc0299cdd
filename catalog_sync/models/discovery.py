"""
Discovery run and provenance models
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import BigInteger
from sqlmodel import Column, Field, SQLModel

from catalog_sync.core.clock import utcnow
from catalog_sync.models.types import utc_column


class RunStatus(str, Enum):
    """Discovery run lifecycle"""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class DiscoveryRun(SQLModel, table=True):
    """One execution of the discovery crawler"""

    __tablename__ = "discovery_runs"

    run_id: UUID = Field(default_factory=uuid4, primary_key=True)
    strategy: str = Field(default="catalog_search_details")
    category: Optional[str] = None
    status: str = Field(default=RunStatus.RUNNING.value, index=True)
    started_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(nullable=False))
    finished_at: Optional[datetime] = Field(default=None, sa_column=utc_column())
    notes: Optional[str] = None

    # Metrics
    queries_issued: int = Field(default=0)
    pages_fetched: int = Field(default=0)
    items_seen: int = Field(default=0)


class DiscoveryHit(SQLModel, table=True):
    """Append-only record of how an item was found during a run"""

    __tablename__ = "discovery_hits"

    run_id: UUID = Field(primary_key=True)
    item_id: int = Field(sa_column=Column(BigInteger, primary_key=True, autoincrement=False))
    query_hash: str = Field(index=True)
    category: Optional[str] = None
    subcategory: Optional[str] = None
    keyword: Optional[str] = None
    sort_type: Optional[str] = None
    cursor_page: int = Field(default=1)
    seen_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(nullable=False))
