from __future__ import annotations

import asyncio
from typing import Any

from sqlalchemy import delete, func, insert, or_, select, update

from chainwatch.core.logger import get_logger
from chainwatch.db.database import Database
from chainwatch.db.models import new_id, reports, test_results
from chainwatch.db.queries.common import (
    count_status,
    hours_ago,
    json_text,
    offset_for,
    ordered,
    resolve_sort_column,
    total_pages,
    utc_now,
)
from chainwatch.schemas.filters import PaginationOptions, ReportFilters
from chainwatch.schemas.records import NewReport, Page, Report, ReportWithCounts

logger = get_logger(__name__)

REPORT_SORT_COLUMNS = {
    "timestamp": reports.c.timestamp,
    "duration": reports.c.duration,
    "blockchain": reports.c.blockchain,
    "test_suite": reports.c.test_suite,
    "testSuite": reports.c.test_suite,
    "status": reports.c.status,
}


def report_row(data: NewReport) -> dict[str, Any]:
    now = utc_now()
    return {
        "id": new_id(),
        "blockchain": data.blockchain,
        "test_suite": data.test_suite,
        "timestamp": data.timestamp or now,
        "status": data.status,
        "duration": data.duration,
        "metadata": data.metadata,
        "created_at": now,
        "updated_at": now,
    }


def report_conditions(filters: ReportFilters) -> list:
    conditions = []
    if filters.blockchain:
        conditions.append(reports.c.blockchain == filters.blockchain)
    if filters.test_suite:
        conditions.append(reports.c.test_suite.contains(filters.test_suite, autoescape=True))
    if filters.status:
        conditions.append(reports.c.status == filters.status)
    if filters.date_from is not None:
        conditions.append(reports.c.timestamp >= filters.date_from)
    if filters.date_to is not None:
        conditions.append(reports.c.timestamp <= filters.date_to)
    if filters.search:
        conditions.append(
            or_(
                reports.c.blockchain.contains(filters.search, autoescape=True),
                reports.c.test_suite.contains(filters.search, autoescape=True),
                json_text(reports.c.metadata).icontains(filters.search, autoescape=True),
            )
        )
    if filters.min_duration is not None:
        conditions.append(reports.c.duration >= filters.min_duration)
    if filters.max_duration is not None:
        conditions.append(reports.c.duration <= filters.max_duration)
    return conditions


class ReportQueries:
    def __init__(self, db: Database):
        self.db = db

    async def insert_report(self, data: NewReport) -> Report:
        rows, _ = await self.db.write(insert(reports).values(**report_row(data)).returning(*reports.c))
        report = Report.model_validate(rows[0])
        logger.info("db.report.insert", report_id=report.id, blockchain=report.blockchain, status=report.status)
        return report

    async def insert_reports(self, data: list[NewReport]) -> list[Report]:
        if not data:
            return []
        statement = insert(reports).returning(*reports.c, sort_by_parameter_order=True)
        rows, _ = await self.db.write(statement, [report_row(item) for item in data])
        logger.info("db.report.insert_many", count=len(rows))
        return [Report.model_validate(row) for row in rows]

    async def get_report_by_id(self, report_id: str) -> Report | None:
        row = await self.db.fetch_one(select(reports).where(reports.c.id == report_id).limit(1))
        return Report.model_validate(row) if row else None

    async def get_reports(
        self,
        filters: ReportFilters | None = None,
        pagination: PaginationOptions | None = None,
    ) -> Page[Report]:
        filters = filters or ReportFilters()
        pagination = pagination or PaginationOptions()
        conditions = report_conditions(filters)
        sort_column = resolve_sort_column(pagination.sort_by, REPORT_SORT_COLUMNS, "timestamp")

        data_query = (
            select(reports)
            .where(*conditions)
            .order_by(ordered(sort_column, pagination.sort_order), reports.c.id)
            .limit(pagination.limit)
            .offset(offset_for(pagination.page, pagination.limit))
        )
        count_query = select(func.count()).select_from(reports).where(*conditions)

        rows, total = await asyncio.gather(self.db.fetch_all(data_query), self.db.scalar(count_query))
        total = int(total or 0)
        return Page[Report](
            data=[Report.model_validate(row) for row in rows],
            total=total,
            page=pagination.page,
            limit=pagination.limit,
            total_pages=total_pages(total, pagination.limit),
        )

    async def get_reports_with_counts(
        self,
        filters: ReportFilters | None = None,
        pagination: PaginationOptions | None = None,
    ) -> Page[ReportWithCounts]:
        filters = filters or ReportFilters()
        pagination = pagination or PaginationOptions()
        conditions = report_conditions(filters)
        sort_column = resolve_sort_column(pagination.sort_by, REPORT_SORT_COLUMNS, "timestamp")

        data_query = (
            select(
                *reports.c,
                func.count(test_results.c.id).label("total_tests"),
                count_status(test_results.c.status, "pass").label("passed_tests"),
                count_status(test_results.c.status, "fail").label("failed_tests"),
                count_status(test_results.c.status, "skip").label("skipped_tests"),
            )
            .select_from(reports.outerjoin(test_results, test_results.c.report_id == reports.c.id))
            .where(*conditions)
            .group_by(reports.c.id)
            .order_by(ordered(sort_column, pagination.sort_order), reports.c.id)
            .limit(pagination.limit)
            .offset(offset_for(pagination.page, pagination.limit))
        )
        count_query = select(func.count()).select_from(reports).where(*conditions)

        rows, total = await asyncio.gather(self.db.fetch_all(data_query), self.db.scalar(count_query))
        total = int(total or 0)
        return Page[ReportWithCounts](
            data=[ReportWithCounts.model_validate(row) for row in rows],
            total=total,
            page=pagination.page,
            limit=pagination.limit,
            total_pages=total_pages(total, pagination.limit),
        )

    async def _latest(self, *conditions, limit: int) -> list[Report]:
        query = select(reports).where(*conditions).order_by(reports.c.timestamp.desc()).limit(limit)
        return [Report.model_validate(row) for row in await self.db.fetch_all(query)]

    async def get_recent_reports(self, hours: float = 24, limit: int = 100) -> list[Report]:
        return await self._latest(reports.c.timestamp >= hours_ago(hours), limit=limit)

    async def get_reports_by_blockchain(self, blockchain: str, limit: int = 100) -> list[Report]:
        return await self._latest(reports.c.blockchain == blockchain, limit=limit)

    async def get_reports_by_status(self, status: str, limit: int = 100) -> list[Report]:
        return await self._latest(reports.c.status == status, limit=limit)

    async def update_report_status(self, report_id: str, status: str) -> Report | None:
        statement = (
            update(reports)
            .where(reports.c.id == report_id)
            .values(status=status, updated_at=utc_now())
            .returning(*reports.c)
        )
        rows, _ = await self.db.write(statement)
        if not rows:
            return None
        logger.info("db.report.update_status", report_id=report_id, status=status)
        return Report.model_validate(rows[0])

    async def delete_report(self, report_id: str) -> bool:
        _, deleted = await self.db.write(delete(reports).where(reports.c.id == report_id))
        logger.info("db.report.delete", report_id=report_id, deleted=deleted)
        return deleted > 0

    async def delete_reports(self, report_ids: list[str]) -> int:
        if not report_ids:
            return 0
        _, deleted = await self.db.write(delete(reports).where(reports.c.id.in_(report_ids)))
        logger.info("db.report.delete_many", requested=len(report_ids), deleted=deleted)
        return deleted

    async def get_unique_blockchains(self) -> list[str]:
        query = select(reports.c.blockchain).distinct().order_by(reports.c.blockchain.asc())
        return [row["blockchain"] for row in await self.db.fetch_all(query)]

    async def get_unique_test_suites(self) -> list[str]:
        query = select(reports.c.test_suite).distinct().order_by(reports.c.test_suite.asc())
        return [row["test_suite"] for row in await self.db.fetch_all(query)]
