from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

Timeframe = Literal["hour", "day", "week", "month"]
HealthLevel = Literal["healthy", "warning", "critical"]


class DashboardSummary(BaseModel):
    total_reports: int = 0
    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0
    skipped_tests: int = 0
    average_duration: int = 0
    success_rate: float = 0.0
    recent_failures: int = 0
    active_blockchains: int = 0


class BlockchainStats(BaseModel):
    blockchain: str
    total_reports: int = 0
    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0
    skipped_tests: int = 0
    success_rate: float = 0.0
    average_duration: int = 0
    last_report_time: datetime | None = None


class TimeSeriesPoint(BaseModel):
    date: str
    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0
    skipped_tests: int = 0
    success_rate: float = 0.0
    average_duration: int = 0


class TestFailurePattern(BaseModel):
    __test__ = False

    test_name: str
    failure_count: int
    total_runs: int
    failure_rate: float
    last_failure: datetime | None = None
    common_errors: list[str] = Field(default_factory=list)


class SlowTest(BaseModel):
    test_name: str
    average_duration: int
    max_duration: int
    run_count: int


class FastTest(BaseModel):
    test_name: str
    average_duration: int
    min_duration: int
    run_count: int


class PerformanceMetrics(BaseModel):
    slowest_tests: list[SlowTest] = Field(default_factory=list)
    fastest_tests: list[FastTest] = Field(default_factory=list)
    duration_trends: list[TimeSeriesPoint] = Field(default_factory=list)


class RecentReport(BaseModel):
    id: str
    blockchain: str
    test_suite: str
    status: str
    timestamp: datetime
    duration: int
    test_count: int = 0


class RecentFailure(BaseModel):
    test_name: str
    blockchain: str
    error_message: str | None = None
    timestamp: datetime


class RecentActivity(BaseModel):
    recent_reports: list[RecentReport] = Field(default_factory=list)
    recent_failures: list[RecentFailure] = Field(default_factory=list)


class HealthAlert(BaseModel):
    type: Literal["warning", "critical"]
    message: str
    blockchain: str | None = None


class HealthMetrics(BaseModel):
    recent_success_rate: float = 100.0
    average_response_time: int = 0
    active_blockchains: int = 0
    reports_last_24h: int = 0
    failures_last_24h: int = 0


class SystemHealth(BaseModel):
    overall_health: HealthLevel = "healthy"
    metrics: HealthMetrics = Field(default_factory=HealthMetrics)
    alerts: list[HealthAlert] = Field(default_factory=list)
