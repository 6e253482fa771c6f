from __future__ import annotations

from fastapi import Depends, Request

from chainwatch.db.database import Database
from chainwatch.db.queries.analytics import AnalyticsQueries
from chainwatch.db.queries.reports import ReportQueries
from chainwatch.db.queries.search import SearchQueries
from chainwatch.db.queries.test_results import TestResultQueries


def get_request_id(request: Request) -> str:
    rid = getattr(request.state, "request_id", "")
    return rid or "req_local"


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_report_queries(db: Database = Depends(get_db)) -> ReportQueries:
    return ReportQueries(db)


def get_test_result_queries(db: Database = Depends(get_db)) -> TestResultQueries:
    return TestResultQueries(db)


def get_analytics_queries(db: Database = Depends(get_db)) -> AnalyticsQueries:
    return AnalyticsQueries(db)


def get_search_queries(db: Database = Depends(get_db)) -> SearchQueries:
    return SearchQueries(db)
