"""
Refresh queue model
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger
from sqlmodel import Column, Field, SQLModel

from catalog_sync.core.clock import utcnow
from catalog_sync.models.types import utc_column


class RefreshQueueEntry(SQLModel, table=True):
    """Enrichment schedule for one item; next_run_at is the only scheduling signal"""

    __tablename__ = "refresh_queue"

    item_id: int = Field(sa_column=Column(BigInteger, primary_key=True, autoincrement=False))
    priority: str = Field(default="new")  # new, refresh
    attempts: int = Field(default=0)
    last_attempt_at: Optional[datetime] = Field(default=None, sa_column=utc_column())
    last_error: Optional[str] = None
    next_run_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(nullable=False, index=True))
