"""
Application configuration using Pydantic settings
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ALLOWED_PAGE_LIMITS = [10, 28, 30, 50, 60, 100, 120]

DEFAULT_SORT_TYPES = [
    "RecentlyUpdated",
    "Relevance",
    "PriceAsc",
    "PriceDesc",
    "MostFavorited",
    "Sales",
    "BestSelling",
    "RecentlyCreated",
]
DEFAULT_KEYWORDS = list("abcdefghijklmnopqrstuvwxyz") + list("0123456789")

_TRUE_VALUES = {"1", "true", "yes", "y"}
_FALSE_VALUES = {"0", "false", "no", "n"}


def parse_csv(raw: Optional[str]) -> List[str]:
    """Split a comma separated setting into trimmed, non-empty values"""
    if not raw:
        return []
    return [value.strip() for value in raw.split(",") if value.strip()]


def clamp_page_limit(value: int) -> int:
    """Round a page size up to the nearest limit the search endpoint accepts"""
    if value is None or value <= 0:
        return 30
    for candidate in ALLOWED_PAGE_LIMITS:
        if value <= candidate:
            return candidate
    return ALLOWED_PAGE_LIMITS[-1]


class Settings(BaseSettings):
    """Pipeline settings from environment variables (prefix CATALOG_)"""

    model_config = SettingsConfigDict(
        env_prefix="CATALOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "catalog-sync"
    version: str = "0.3.0"
    environment: str = "development"
    debug: bool = False
    api_v1_str: str = "/api/v1"
    host: str = "0.0.0.0"
    port: int = 8000

    # Database
    database_url: str = "sqlite+aiosqlite:///./catalog.db"
    db_echo: bool = False
    db_pool_size: int = 10
    db_max_overflow: int = 0
    db_pool_pre_ping: bool = True

    # Upstream endpoints
    search_api_url: str = "https://catalog.roblox.com/v1/search/items/details"
    categories_api_url: str = "https://catalog.roblox.com/v1/categories"
    detail_api_url: str = "https://economy.roblox.com/v2/assets/{item_id}/details"
    thumbnails_api_url: str = "https://thumbnails.roblox.com/v1/assets"
    user_agent: str = "CatalogSyncBot/1.0"
    http_timeout_seconds: float = 20.0

    # Discovery query space
    categories: str = "Accessories"
    subcategories: str = ""
    sort_types: str = ""
    keywords: str = ""
    keyword_splits: str = ""
    keyword_sort_types: str = ""
    include_empty_keyword: bool = False
    sync_taxonomy: bool = True
    sync_taxonomy_force: bool = False
    enqueue_refresh: bool = True
    dry_run: bool = False

    # Discovery paging and caps
    page_limit: int = 30
    max_pages: int = 0
    max_total_pages: int = 0
    max_items: int = 0
    request_delay_ms: int = 300
    query_delay_ms: int = 600
    rate_limit_retries: int = 2
    rate_limit_cooldown_ms: int = 5000

    # Retry policy
    max_retries: int = 3
    retry_base_ms: int = 1000
    retry_jitter_ms: int = 250
    retry_max_delay_ms: int = 30000
    detail_retry_base_ms: int = 300

    # Adaptive rate controllers
    search_min_interval_ms: int = 400
    detail_min_interval_ms: int = 250
    thumbnail_min_interval_ms: int = 150
    rate_limit_base_ms: int = 2000
    rate_limit_max_ms: int = 120000
    max_interval_ms: int = 10000
    interval_widen_factor: float = 1.5
    interval_relax_factor: float = 0.9
    strike_cap: int = 10
    safe_mode_strikes: int = 3

    # Enrichment worker
    enrich_limit: int = 200
    batch_limit: int = 100
    concurrency: int = 4
    write_chunk_size: int = 100
    batch_delay_ms: int = 1000
    safe_concurrency: int = 1
    safe_batch_limit: int = 20
    safe_batch_delay_ms: int = 5000
    safe_min_interval_ms: int = 1500
    refresh_hours: float = 168
    retry_hours: float = 6
    max_retry_hours: float = 72
    delete_retry_hours: float = 720
    rate_limit_requeue_minutes: float = 15
    error_sample_limit: int = 5

    # Thumbnails
    thumbnail_batch_size: int = 50
    thumbnail_size: str = "420x420"
    thumbnail_format: str = "Png"
    thumbnail_delay_ms: int = 150

    # Logging
    log_level: str = "INFO"
    log_sample: bool = True
    log_sample_raw: bool = False

    @field_validator(
        "include_empty_keyword",
        "sync_taxonomy",
        "sync_taxonomy_force",
        "enqueue_refresh",
        "dry_run",
        "log_sample",
        "log_sample_raw",
        mode="before",
    )
    @classmethod
    def _lenient_bool(cls, value, info):
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized in _TRUE_VALUES:
                return True
            if normalized in _FALSE_VALUES:
                return False
            return cls.model_fields[info.field_name].default
        return value

    @field_validator("page_limit")
    @classmethod
    def _clamp_page_limit(cls, value: int) -> int:
        return clamp_page_limit(value)

    @field_validator(
        "max_pages",
        "max_total_pages",
        "max_items",
        "request_delay_ms",
        "query_delay_ms",
        "rate_limit_retries",
        "rate_limit_cooldown_ms",
        "max_retries",
        "retry_jitter_ms",
        "search_min_interval_ms",
        "detail_min_interval_ms",
        "thumbnail_min_interval_ms",
        "batch_delay_ms",
        "safe_batch_delay_ms",
        "thumbnail_delay_ms",
    )
    @classmethod
    def _non_negative(cls, value: int) -> int:
        return max(0, value)

    @field_validator(
        "enrich_limit",
        "batch_limit",
        "concurrency",
        "write_chunk_size",
        "safe_concurrency",
        "safe_batch_limit",
        "thumbnail_batch_size",
        "strike_cap",
        "safe_mode_strikes",
    )
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        return max(1, value)

    @field_validator("retry_base_ms", "detail_retry_base_ms")
    @classmethod
    def _retry_floor(cls, value: int) -> int:
        return max(100, value)

    @property
    def category_list(self) -> List[str]:
        return parse_csv(self.categories)

    @property
    def subcategory_list(self) -> List[str]:
        return parse_csv(self.subcategories)

    @property
    def sort_type_list(self) -> List[str]:
        return parse_csv(self.sort_types) or list(DEFAULT_SORT_TYPES)

    @property
    def keyword_sort_type_list(self) -> List[str]:
        return parse_csv(self.keyword_sort_types)

    @property
    def keyword_list(self) -> List[str]:
        """Explicit keywords, or the default a-z0-9 set expanded with split prefixes"""
        manual = parse_csv(self.keywords)
        if manual:
            return manual
        expanded = list(DEFAULT_KEYWORDS)
        for prefix in parse_csv(self.keyword_splits):
            normalized = prefix.lower()
            for letter in "abcdefghijklmnopqrstuvwxyz":
                keyword = f"{normalized}{letter}"
                if keyword not in expanded:
                    expanded.append(keyword)
        return expanded

    @property
    def refresh_interval_hours(self) -> float:
        return max(1.0, self.refresh_hours)

    @property
    def delete_interval_hours(self) -> float:
        return max(self.refresh_interval_hours, self.delete_retry_hours)

    @property
    def retry_ceiling_hours(self) -> float:
        return max(self.retry_hours, self.max_retry_hours)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
