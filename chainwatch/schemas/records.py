from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class NewReport(BaseModel):
    blockchain: str
    test_suite: str
    status: str
    duration: int
    metadata: dict[str, Any] | None = None
    timestamp: datetime | None = None


class Report(BaseModel):
    id: str
    blockchain: str
    test_suite: str
    timestamp: datetime
    status: str
    duration: int
    metadata: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ReportWithCounts(Report):
    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0
    skipped_tests: int = 0


class NewTestResult(BaseModel):
    report_id: str
    test_name: str
    status: str
    duration: int
    error_message: str | None = None
    details: dict[str, Any] | None = None


class TestResult(BaseModel):
    __test__ = False

    id: str
    report_id: str
    test_name: str
    status: str
    duration: int
    error_message: str | None = None
    details: dict[str, Any] | None = None
    created_at: datetime | None = None


class ReportSummary(BaseModel):
    id: str
    blockchain: str
    test_suite: str
    timestamp: datetime


class TestResultWithReport(TestResult):
    report: ReportSummary


class TestResultStats(BaseModel):
    __test__ = False

    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    average_duration: int = 0
    total_duration: int = 0


class Page(BaseModel, Generic[T]):
    data: list[T] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 50
    total_pages: int = 0
