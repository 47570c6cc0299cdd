"""
Catalog taxonomy models (categories and subcategories)
"""
from typing import List, Optional
from sqlmodel import Field, SQLModel, Column, JSON


class CatalogCategory(SQLModel, table=True):
    """Top-level catalog category"""
    __tablename__ = "catalog_categories"

    category: str = Field(primary_key=True)
    name: Optional[str] = None
    category_id: Optional[int] = None
    order_index: Optional[int] = None
    is_searchable: Optional[bool] = None
    asset_type_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    bundle_type_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON))


class CatalogSubcategory(SQLModel, table=True):
    """Subcategory within a catalog category"""
    __tablename__ = "catalog_subcategories"

    subcategory: str = Field(primary_key=True)
    category: str = Field(index=True)
    name: Optional[str] = None
    short_name: Optional[str] = None
    subcategory_id: Optional[int] = None
    asset_type_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    bundle_type_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON))
