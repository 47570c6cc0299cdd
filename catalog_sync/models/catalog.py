"""
Catalog item and image models
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import BigInteger
from sqlmodel import JSON, Column, Field, SQLModel

from catalog_sync.core.clock import utcnow
from catalog_sync.models.types import utc_column


class CatalogItem(SQLModel, table=True):
    """Canonical marketplace item, keyed by the upstream numeric id"""

    __tablename__ = "catalog_items"

    item_id: int = Field(sa_column=Column(BigInteger, primary_key=True, autoincrement=False))
    item_type: str = Field(default="Asset")
    asset_type_id: Optional[int] = None
    category: Optional[str] = Field(default=None, index=True)
    subcategory: Optional[str] = Field(default=None, index=True)

    # Fields both phases write; enrichment wins once present
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[int] = None
    is_for_sale: Optional[bool] = None
    is_limited: Optional[bool] = None
    is_limited_unique: Optional[bool] = None
    remaining: Optional[int] = None
    creator_id: Optional[int] = Field(default=None, sa_column=Column(BigInteger))
    creator_target_id: Optional[int] = Field(default=None, sa_column=Column(BigInteger))
    creator_name: Optional[str] = None
    creator_type: Optional[str] = None
    creator_has_verified_badge: Optional[bool] = None
    product_id: Optional[int] = Field(default=None, sa_column=Column(BigInteger))

    # Discovery-only fields
    price_status: Optional[str] = None
    lowest_price: Optional[int] = None
    lowest_resale_price: Optional[int] = None
    collectible_item_id: Optional[str] = None
    favorite_count: Optional[int] = None
    has_resellers: Optional[bool] = None
    total_quantity: Optional[int] = None
    units_available_for_consumption: Optional[int] = None
    quantity_limit_per_user: Optional[int] = None
    sale_location_type: Optional[str] = None
    off_sale_deadline: Optional[str] = None
    item_status: Optional[Any] = Field(default=None, sa_column=Column(JSON))
    item_restrictions: Optional[Any] = Field(default=None, sa_column=Column(JSON))
    bundled_items: Optional[Any] = Field(default=None, sa_column=Column(JSON))
    raw_search_json: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    last_seen_at: Optional[datetime] = Field(default=None, sa_column=utc_column())

    # Enrichment-only fields
    is_deleted: bool = Field(default=False, index=True)
    raw_detail_json: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    last_enriched_at: Optional[datetime] = Field(default=None, sa_column=utc_column())

    created_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(nullable=False))


class ItemImage(SQLModel, table=True):
    """Resolved thumbnail per item, size and format"""

    __tablename__ = "item_images"

    item_id: int = Field(sa_column=Column(BigInteger, primary_key=True, autoincrement=False))
    size: str = Field(primary_key=True)
    format: str = Field(primary_key=True)
    image_url: Optional[str] = None
    state: Optional[str] = None
    version: Optional[str] = None
    last_checked_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(nullable=False))


# Columns discovery may only write while an item has never been enriched
ENRICHMENT_OWNED_FIELDS = (
    "name",
    "description",
    "price",
    "is_for_sale",
    "is_limited",
    "is_limited_unique",
    "remaining",
    "asset_type_id",
    "creator_id",
    "creator_target_id",
    "creator_name",
    "creator_type",
    "creator_has_verified_badge",
    "product_id",
)
