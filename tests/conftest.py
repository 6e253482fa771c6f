from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx
import pytest

from chainwatch.api.app import create_app
from chainwatch.db.database import DatabaseConfig, create_database
from chainwatch.db.queries.analytics import AnalyticsQueries
from chainwatch.db.queries.reports import ReportQueries
from chainwatch.db.queries.search import SearchQueries
from chainwatch.db.queries.test_results import TestResultQueries
from chainwatch.schemas.records import NewReport, NewTestResult, Report, TestResult


@pytest.fixture()
async def db(tmp_path):
    database = create_database(
        DatabaseConfig(url=f"sqlite:///{tmp_path / 'chainwatch.db'}", environment="test", max_connections=5)
    )
    await database.init_schema()
    yield database
    await database.close()


@pytest.fixture()
def report_queries(db) -> ReportQueries:
    return ReportQueries(db)


@pytest.fixture()
def test_result_queries(db) -> TestResultQueries:
    return TestResultQueries(db)


@pytest.fixture()
def analytics_queries(db) -> AnalyticsQueries:
    return AnalyticsQueries(db)


@pytest.fixture()
def search_queries(db) -> SearchQueries:
    return SearchQueries(db)


@pytest.fixture()
def make_report(report_queries):
    async def _make(
        blockchain: str = "ethereum",
        test_suite: str = "integration",
        status: str = "pass",
        duration: int = 5000,
        metadata: dict[str, Any] | None = None,
        timestamp: datetime | None = None,
    ) -> Report:
        return await report_queries.insert_report(
            NewReport(
                blockchain=blockchain,
                test_suite=test_suite,
                status=status,
                duration=duration,
                metadata=metadata,
                timestamp=timestamp,
            )
        )

    return _make


@pytest.fixture()
def make_result(test_result_queries):
    async def _make(
        report_id: str,
        test_name: str = "block_production",
        status: str = "pass",
        duration: int = 100,
        error_message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> TestResult:
        return await test_result_queries.insert_test_result(
            NewTestResult(
                report_id=report_id,
                test_name=test_name,
                status=status,
                duration=duration,
                error_message=error_message,
                details=details,
            )
        )

    return _make


@pytest.fixture()
async def client(db) -> httpx.AsyncClient:
    app = create_app()
    app.state.db = db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client
