"""
Health check endpoints
"""
from typing import Any, Dict

from fastapi import APIRouter

from catalog_sync.api.deps import AsyncSessionDep, SettingsDep
from catalog_sync.core.clock import utcnow
from catalog_sync.core.database import check_database_health
from catalog_sync.schemas.common import HealthCheckResponse

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(settings: SettingsDep) -> HealthCheckResponse:
    """Basic health check"""
    return HealthCheckResponse(
        status="ok",
        timestamp=utcnow().isoformat(),
        version=settings.version,
        database="unknown",
    )


@router.get("/health/ready", response_model=Dict[str, Any])
async def readiness_probe(session: AsyncSessionDep) -> Dict[str, Any]:
    """Readiness probe - checks the database"""
    database = await check_database_health(session)
    healthy = database["status"] == "healthy"
    return {
        "status": "ok" if healthy else "degraded",
        "timestamp": utcnow().isoformat(),
        "checks": {"database": healthy},
    }
