"""
Catalog sync API - read-only view over the persisted catalog tables
"""
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI
from fastapi.middleware.gzip import GZipMiddleware

from catalog_sync.api.v1 import api_router, health_router
from catalog_sync.core.config import get_settings
from catalog_sync.core.database import db_manager
from catalog_sync.core.logging import log, setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan events
    """
    settings = get_settings()
    setup_logging(settings.log_level)
    log.info("Starting catalog sync API", version=settings.version, env=settings.environment)

    await db_manager.init()

    yield

    log.info("Shutting down catalog sync API")
    await db_manager.close()


def create_application() -> FastAPI:
    """
    Create FastAPI application with all configurations
    """
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        openapi_url=f"{settings.api_v1_str}/openapi.json" if settings.debug else None,
        docs_url=f"{settings.api_v1_str}/docs" if settings.debug else None,
        lifespan=lifespan,
        debug=settings.debug,
        openapi_tags=[
            {"name": "health", "description": "Health check endpoints"},
            {"name": "catalog", "description": "Catalog counters and discovery runs"},
        ],
    )

    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.include_router(health_router, tags=["health"])
    app.include_router(api_router, prefix=settings.api_v1_str)

    @app.get("/", tags=["root"])
    async def root() -> Dict[str, Any]:
        """Root endpoint with API information"""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "environment": settings.environment,
        }

    return app


# Create the application instance
app = create_application()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "catalog_sync.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=None,
        access_log=False,
    )
