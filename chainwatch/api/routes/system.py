from __future__ import annotations

from fastapi import APIRouter, Depends

from chainwatch.api.dependencies import get_db, get_request_id
from chainwatch.config.settings import settings
from chainwatch.core.logger import get_logger
from chainwatch.db.database import Database
from chainwatch.schemas.response_schemas import response_envelope, utc_now_iso

router = APIRouter()
logger = get_logger(__name__)


@router.get("/")
async def get_index(request_id: str = Depends(get_request_id)):
    data = {
        "message": "Blockchain Monitoring Dashboard API",
        "version": settings.API_VERSION,
        "endpoints": {
            "health": "/api/v1/health",
            "database": "/api/v1/system/database",
            "reports": "/api/v1/reports",
            "test_results": "/api/v1/test-results",
            "analytics": "/api/v1/analytics/summary",
            "search": "/api/v1/search",
        },
    }
    return response_envelope(True, data=data, request_id=request_id)


@router.get("/health")
async def get_health(db: Database = Depends(get_db), request_id: str = Depends(get_request_id)):
    logger.info("api.system.health", request_id=request_id)
    healthy = await db.health_check()
    data = {
        "status": "ok" if healthy else "degraded",
        "timestamp": utc_now_iso(),
        "environment": db.config.environment,
        "version": settings.API_VERSION,
        "components": {"database": "up" if healthy else "down"},
    }
    return response_envelope(True, data=data, request_id=request_id)


@router.get("/system/database")
async def get_database_info(db: Database = Depends(get_db), request_id: str = Depends(get_request_id)):
    logger.info("api.system.database", request_id=request_id)
    return response_envelope(True, data=await db.get_info(), request_id=request_id)
