"""
Custom exceptions for the pipeline
"""

from typing import Any, Dict, Optional


class CatalogSyncError(Exception):
    """Base exception for pipeline errors"""

    detail: str = "Catalog sync error"

    def __init__(self, detail: Optional[str] = None, **kwargs):
        super().__init__(detail or self.detail)
        self.detail = detail or self.detail
        # Store any additional context
        self.context: Dict[str, Any] = kwargs


class UpstreamError(CatalogSyncError):
    """Upstream API call failed"""

    detail = "Upstream request failed"

    def __init__(
        self,
        detail: Optional[str] = None,
        status_code: Optional[int] = None,
        retry_after_ms: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(detail, status_code=status_code, **kwargs)
        self.status_code = status_code
        self.retry_after_ms = retry_after_ms


class PersistenceError(CatalogSyncError):
    """Store write or read failed"""

    detail = "Database error"


class DiscoveryError(CatalogSyncError):
    """Discovery run cannot proceed"""

    detail = "Discovery failed"
