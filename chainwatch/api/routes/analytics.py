from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from chainwatch.api.dependencies import get_analytics_queries, get_request_id
from chainwatch.core.logger import get_logger
from chainwatch.db.queries.analytics import AnalyticsQueries
from chainwatch.schemas.analytics import Timeframe
from chainwatch.schemas.response_schemas import response_envelope

router = APIRouter()
logger = get_logger(__name__)


@router.get("/analytics/summary")
async def get_summary(
    timeframe: Timeframe = Query(default="day"),
    queries: AnalyticsQueries = Depends(get_analytics_queries),
    request_id: str = Depends(get_request_id),
):
    logger.info("api.analytics.summary", request_id=request_id, timeframe=timeframe)
    return response_envelope(True, data=await queries.get_dashboard_summary(timeframe), request_id=request_id)


@router.get("/analytics/blockchains")
async def get_blockchains(
    timeframe: Timeframe = Query(default="week"),
    queries: AnalyticsQueries = Depends(get_analytics_queries),
    request_id: str = Depends(get_request_id),
):
    return response_envelope(True, data=await queries.get_blockchain_stats(timeframe), request_id=request_id)


@router.get("/analytics/time-series")
async def get_time_series(
    days: int = Query(default=7, ge=1, le=365),
    blockchain: str | None = Query(default=None),
    queries: AnalyticsQueries = Depends(get_analytics_queries),
    request_id: str = Depends(get_request_id),
):
    return response_envelope(True, data=await queries.get_time_series_data(days, blockchain), request_id=request_id)


@router.get("/analytics/failures")
async def get_failures(
    limit: int = Query(default=20, ge=1, le=200),
    days: int = Query(default=30, ge=1, le=365),
    queries: AnalyticsQueries = Depends(get_analytics_queries),
    request_id: str = Depends(get_request_id),
):
    return response_envelope(True, data=await queries.get_test_failure_patterns(limit, days), request_id=request_id)


@router.get("/analytics/performance")
async def get_performance(
    limit: int = Query(default=10, ge=1, le=200),
    days: int = Query(default=7, ge=1, le=365),
    queries: AnalyticsQueries = Depends(get_analytics_queries),
    request_id: str = Depends(get_request_id),
):
    return response_envelope(True, data=await queries.get_performance_metrics(limit, days), request_id=request_id)


@router.get("/analytics/activity")
async def get_activity(
    hours: float = Query(default=24, gt=0),
    limit: int = Query(default=50, ge=1, le=500),
    queries: AnalyticsQueries = Depends(get_analytics_queries),
    request_id: str = Depends(get_request_id),
):
    return response_envelope(True, data=await queries.get_recent_activity(hours, limit), request_id=request_id)


@router.get("/analytics/health")
async def get_health_metrics(
    queries: AnalyticsQueries = Depends(get_analytics_queries),
    request_id: str = Depends(get_request_id),
):
    health = await queries.get_system_health_metrics()
    logger.info("api.analytics.health", request_id=request_id, overall=health.overall_health, alerts=len(health.alerts))
    return response_envelope(True, data=health, request_id=request_id)
