from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ReportFilters(BaseModel):
    blockchain: str | None = None
    test_suite: str | None = None
    status: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    search: str | None = None
    min_duration: int | None = None
    max_duration: int | None = None


class PaginationOptions(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1)
    # Unknown sort columns fall back to the default instead of failing.
    sort_by: str = "timestamp"
    sort_order: str = "desc"


class TestResultFilters(BaseModel):
    __test__ = False

    report_id: str | None = None
    test_name: str | None = None
    status: str | None = None
    search: str | None = None
    min_duration: int | None = None
    max_duration: int | None = None
    has_error: bool | None = None


class TestResultPaginationOptions(PaginationOptions):
    __test__ = False

    sort_by: str = "created_at"


class SearchFilters(BaseModel):
    query: str = ""
    blockchain: str | None = None
    status: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    include_reports: bool = True
    include_test_results: bool = True


class SearchOptions(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1)
    sort_by: str = "relevance"
    sort_order: str = "desc"


class AdvancedSearchFilters(BaseModel):
    query: str | None = None
    blockchains: list[str] = Field(default_factory=list)
    statuses: list[str] = Field(default_factory=list)
    test_name: str | None = None
    has_error: bool | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    min_duration: int | None = None
    max_duration: int | None = None
    sort_by: str = "relevance"
    sort_order: str = "desc"
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1)
