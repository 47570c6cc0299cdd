"""
API v1 routers
"""

from fastapi import APIRouter

from .catalog import router as catalog_router
from .health import router as health_router

api_router = APIRouter()

# Include routers
api_router.include_router(catalog_router, prefix="/catalog", tags=["catalog"])

__all__ = ["api_router", "health_router"]
