"""
Upstream API payload schemas

Every model keeps unknown keys so the raw payload can be stored verbatim.
"""
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class UpstreamModel(BaseModel):
    """Lenient base for third-party payloads"""
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class SearchItem(UpstreamModel):
    """One entry of the paginated search endpoint"""
    id: Any = None
    item_type: Optional[str] = Field(None, alias="itemType")
    asset_type: Any = Field(None, alias="assetType")
    name: Any = None
    description: Any = None
    price: Any = None
    price_status: Any = Field(None, alias="priceStatus")
    lowest_price: Any = Field(None, alias="lowestPrice")
    lowest_resale_price: Any = Field(None, alias="lowestResalePrice")
    creator_name: Any = Field(None, alias="creatorName")
    creator_type: Any = Field(None, alias="creatorType")
    creator_target_id: Any = Field(None, alias="creatorTargetId")
    creator_has_verified_badge: Any = Field(None, alias="creatorHasVerifiedBadge")
    creator_id: Any = Field(None, alias="creatorId")
    product_id: Any = Field(None, alias="productId")
    collectible_item_id: Any = Field(None, alias="collectibleItemId")
    favorite_count: Any = Field(None, alias="favoriteCount")
    has_resellers: Any = Field(None, alias="hasResellers")
    total_quantity: Any = Field(None, alias="totalQuantity")
    units_available_for_consumption: Any = Field(None, alias="unitsAvailableForConsumption")
    quantity_limit_per_user: Any = Field(None, alias="quantityLimitPerUser")
    sale_location_type: Any = Field(None, alias="saleLocationType")
    off_sale_deadline: Any = Field(None, alias="offSaleDeadline")
    item_status: Any = Field(None, alias="itemStatus")
    item_restrictions: Any = Field(None, alias="itemRestrictions")
    bundled_items: Any = Field(None, alias="bundledItems")
    is_limited: Any = Field(None, alias="isLimited")
    is_limited_unique: Any = Field(None, alias="isLimitedUnique")
    is_for_sale: Any = Field(None, alias="isForSale")
    remaining: Any = None


class UpstreamErrorEntry(UpstreamModel):
    message: Optional[str] = None
    code: Any = None
    field: Optional[str] = None


class SearchPage(UpstreamModel):
    """Paginated search response"""
    data: Optional[List[SearchItem]] = None
    next_page_cursor: Optional[str] = Field(None, alias="nextPageCursor")
    previous_page_cursor: Optional[str] = Field(None, alias="previousPageCursor")
    errors: Optional[List[UpstreamErrorEntry]] = None

    @property
    def items(self) -> List[SearchItem]:
        return self.data or []

    @property
    def error_message(self) -> str:
        return "; ".join(entry.message for entry in self.errors or [] if entry.message)


class DetailCreator(UpstreamModel):
    id: Any = Field(None, alias="Id")
    name: Any = Field(None, alias="Name")
    creator_type: Any = Field(None, alias="CreatorType")
    creator_target_id: Any = Field(None, alias="CreatorTargetId")
    has_verified_badge: Any = Field(None, alias="HasVerifiedBadge")


class ItemDetails(UpstreamModel):
    """Authoritative per-item detail payload"""
    asset_id: Any = Field(None, alias="AssetId")
    name: Any = Field(None, alias="Name")
    description: Any = Field(None, alias="Description")
    price_in_robux: Any = Field(None, alias="PriceInRobux")
    is_for_sale: Any = Field(None, alias="IsForSale")
    is_limited: Any = Field(None, alias="IsLimited")
    is_limited_unique: Any = Field(None, alias="IsLimitedUnique")
    remaining: Any = Field(None, alias="Remaining")
    asset_type_id: Any = Field(None, alias="AssetTypeId")
    product_id: Any = Field(None, alias="ProductId")
    creator: Optional[DetailCreator] = Field(None, alias="Creator")


class ThumbnailEntry(UpstreamModel):
    target_id: Any = Field(None, alias="targetId")
    state: Any = None
    image_url: Any = Field(None, alias="imageUrl")
    version: Any = None


class ThumbnailResponse(UpstreamModel):
    data: Optional[List[ThumbnailEntry]] = None


class SubcategoryEntry(UpstreamModel):
    subcategory: Optional[str] = None
    name: Optional[str] = None
    short_name: Optional[str] = Field(None, alias="shortName")
    subcategory_id: Any = Field(None, alias="subcategoryId")
    asset_type_ids: Any = Field(None, alias="assetTypeIds")
    bundle_type_ids: Any = Field(None, alias="bundleTypeIds")


class CategoryEntry(UpstreamModel):
    category: Optional[str] = None
    name: Optional[str] = None
    category_id: Any = Field(None, alias="categoryId")
    order_index: Any = Field(None, alias="orderIndex")
    is_searchable: Any = Field(None, alias="isSearchable")
    asset_type_ids: Any = Field(None, alias="assetTypeIds")
    bundle_type_ids: Any = Field(None, alias="bundleTypeIds")
    subcategories: Optional[List[SubcategoryEntry]] = None
