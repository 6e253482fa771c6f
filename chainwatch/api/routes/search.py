from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query

from chainwatch.api.dependencies import get_request_id, get_search_queries
from chainwatch.core.logger import get_logger
from chainwatch.db.queries.search import SearchQueries
from chainwatch.schemas.filters import AdvancedSearchFilters, SearchFilters, SearchOptions
from chainwatch.schemas.response_schemas import response_envelope

router = APIRouter()
logger = get_logger(__name__)


@router.get("/search")
async def search(
    q: str = Query(default=""),
    blockchain: str | None = Query(default=None),
    status: str | None = Query(default=None),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    include_reports: bool = Query(default=True),
    include_test_results: bool = Query(default=True),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    sort_by: Literal["relevance", "timestamp"] = Query(default="relevance"),
    sort_order: Literal["asc", "desc"] = Query(default="desc"),
    queries: SearchQueries = Depends(get_search_queries),
    request_id: str = Depends(get_request_id),
):
    filters = SearchFilters(
        query=q,
        blockchain=blockchain,
        status=status,
        date_from=date_from,
        date_to=date_to,
        include_reports=include_reports,
        include_test_results=include_test_results,
    )
    options = SearchOptions(page=page, limit=limit, sort_by=sort_by, sort_order=sort_order)
    result = await queries.perform_full_text_search(filters, options)
    logger.info("api.search.full_text", request_id=request_id, total=result.total, search_time_ms=result.search_time)
    return response_envelope(True, data=result, request_id=request_id)


@router.get("/search/suggestions")
async def search_suggestions(
    q: str = Query(default=""),
    limit: int = Query(default=10, ge=1, le=50),
    queries: SearchQueries = Depends(get_search_queries),
    request_id: str = Depends(get_request_id),
):
    return response_envelope(True, data=await queries.get_search_suggestions(q, limit), request_id=request_id)


@router.post("/search/advanced")
async def advanced_search(
    payload: AdvancedSearchFilters,
    queries: SearchQueries = Depends(get_search_queries),
    request_id: str = Depends(get_request_id),
):
    result = await queries.perform_advanced_search(payload)
    logger.info("api.search.advanced", request_id=request_id, total=result.total, search_time_ms=result.search_time)
    return response_envelope(True, data=result, request_id=request_id)
