from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from chainwatch.api.dependencies import get_report_queries, get_request_id, get_test_result_queries
from chainwatch.core.logger import get_logger
from chainwatch.db.queries.reports import ReportQueries
from chainwatch.db.queries.test_results import TestResultQueries
from chainwatch.schemas.filters import PaginationOptions, ReportFilters
from chainwatch.schemas.records import NewReport
from chainwatch.schemas.response_schemas import error_payload, response_envelope

router = APIRouter()
logger = get_logger(__name__)


class StatusUpdate(BaseModel):
    status: str


def _not_found(report_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=error_payload("REPORT_NOT_FOUND", f"Report {report_id} does not exist"))


@router.get("/reports")
async def list_reports(
    blockchain: str | None = Query(default=None),
    test_suite: str | None = Query(default=None),
    status: str | None = Query(default=None),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    search: str | None = Query(default=None),
    min_duration: int | None = Query(default=None, ge=0),
    max_duration: int | None = Query(default=None, ge=0),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=500),
    sort_by: str = Query(default="timestamp"),
    sort_order: str = Query(default="desc"),
    with_counts: bool = Query(default=False),
    queries: ReportQueries = Depends(get_report_queries),
    request_id: str = Depends(get_request_id),
):
    filters = ReportFilters(
        blockchain=blockchain,
        test_suite=test_suite,
        status=status,
        date_from=date_from,
        date_to=date_to,
        search=search,
        min_duration=min_duration,
        max_duration=max_duration,
    )
    pagination = PaginationOptions(page=page, limit=limit, sort_by=sort_by, sort_order=sort_order)
    logger.info("api.reports.list", request_id=request_id, page=page, limit=limit, with_counts=with_counts)
    if with_counts:
        result = await queries.get_reports_with_counts(filters, pagination)
    else:
        result = await queries.get_reports(filters, pagination)
    return response_envelope(True, data=result, request_id=request_id)


@router.post("/reports", status_code=201)
async def create_report(
    payload: NewReport,
    queries: ReportQueries = Depends(get_report_queries),
    request_id: str = Depends(get_request_id),
):
    report = await queries.insert_report(payload)
    return response_envelope(True, data=report, request_id=request_id)


@router.get("/reports/filters")
async def get_report_filters(
    queries: ReportQueries = Depends(get_report_queries),
    request_id: str = Depends(get_request_id),
):
    data = {
        "blockchains": await queries.get_unique_blockchains(),
        "test_suites": await queries.get_unique_test_suites(),
    }
    return response_envelope(True, data=data, request_id=request_id)


@router.get("/reports/recent")
async def get_recent_reports(
    hours: float = Query(default=24, gt=0),
    limit: int = Query(default=100, ge=1, le=1000),
    queries: ReportQueries = Depends(get_report_queries),
    request_id: str = Depends(get_request_id),
):
    return response_envelope(True, data=await queries.get_recent_reports(hours, limit), request_id=request_id)


@router.get("/reports/{report_id}")
async def get_report(
    report_id: str,
    queries: ReportQueries = Depends(get_report_queries),
    request_id: str = Depends(get_request_id),
):
    logger.info("api.reports.get", request_id=request_id, report_id=report_id)
    report = await queries.get_report_by_id(report_id)
    if report is None:
        raise _not_found(report_id)
    return response_envelope(True, data=report, request_id=request_id)


@router.get("/reports/{report_id}/test-results")
async def get_report_test_results(
    report_id: str,
    queries: ReportQueries = Depends(get_report_queries),
    test_results: TestResultQueries = Depends(get_test_result_queries),
    request_id: str = Depends(get_request_id),
):
    if await queries.get_report_by_id(report_id) is None:
        raise _not_found(report_id)
    data = await test_results.get_test_results_by_report_id(report_id)
    return response_envelope(True, data=data, request_id=request_id)


@router.get("/reports/{report_id}/stats")
async def get_report_stats(
    report_id: str,
    queries: ReportQueries = Depends(get_report_queries),
    test_results: TestResultQueries = Depends(get_test_result_queries),
    request_id: str = Depends(get_request_id),
):
    if await queries.get_report_by_id(report_id) is None:
        raise _not_found(report_id)
    return response_envelope(True, data=await test_results.get_test_result_stats(report_id), request_id=request_id)


@router.patch("/reports/{report_id}/status")
async def patch_report_status(
    report_id: str,
    payload: StatusUpdate,
    queries: ReportQueries = Depends(get_report_queries),
    request_id: str = Depends(get_request_id),
):
    report = await queries.update_report_status(report_id, payload.status)
    if report is None:
        raise _not_found(report_id)
    return response_envelope(True, data=report, request_id=request_id)


@router.delete("/reports/{report_id}")
async def delete_report(
    report_id: str,
    queries: ReportQueries = Depends(get_report_queries),
    request_id: str = Depends(get_request_id),
):
    if not await queries.delete_report(report_id):
        raise _not_found(report_id)
    return response_envelope(True, data={"report_id": report_id, "deleted": True}, request_id=request_id)
