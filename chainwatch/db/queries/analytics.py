from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import datetime

from sqlalchemy import case, distinct, func, select

from chainwatch.db.database import Database
from chainwatch.db.models import reports, test_results
from chainwatch.db.queries.common import (
    count_status,
    days_ago,
    error_present,
    hours_ago,
    iso_date,
    percentage,
    round_half_up,
    since_for_timeframe,
)
from chainwatch.schemas.analytics import (
    BlockchainStats,
    DashboardSummary,
    FastTest,
    HealthAlert,
    HealthMetrics,
    PerformanceMetrics,
    RecentActivity,
    RecentFailure,
    RecentReport,
    SlowTest,
    SystemHealth,
    TestFailurePattern,
    TimeSeriesPoint,
)

SUCCESS_RATE_CRITICAL = 50.0
SUCCESS_RATE_WARNING = 80.0

_reports_with_results = reports.outerjoin(test_results, test_results.c.report_id == reports.c.id)
_results_with_reports = test_results.join(reports, test_results.c.report_id == reports.c.id)

# One row per report, so report-level averages are not weighted by result count.
_result_counts = (
    select(
        test_results.c.report_id,
        func.count().label("total"),
        count_status(test_results.c.status, "pass").label("passed"),
        count_status(test_results.c.status, "fail").label("failed"),
        count_status(test_results.c.status, "skip").label("skipped"),
    )
    .group_by(test_results.c.report_id)
    .subquery("result_counts")
)
_reports_with_counts = reports.outerjoin(_result_counts, _result_counts.c.report_id == reports.c.id)


def _summed(column):
    return func.coalesce(func.sum(column), 0)


class AnalyticsQueries:
    """Dashboard aggregations, recomputed over a trailing window on every call."""

    def __init__(self, db: Database):
        self.db = db

    async def get_dashboard_summary(self, timeframe: str = "day") -> DashboardSummary:
        since = since_for_timeframe(timeframe)
        report_query = select(
            func.count().label("total_reports"),
            func.coalesce(func.avg(reports.c.duration), 0).label("average_duration"),
            count_status(reports.c.status, "fail").label("recent_failures"),
            func.count(distinct(reports.c.blockchain)).label("active_blockchains"),
        ).where(reports.c.timestamp >= since)
        test_query = (
            select(
                func.count().label("total_tests"),
                count_status(test_results.c.status, "pass").label("passed_tests"),
                count_status(test_results.c.status, "fail").label("failed_tests"),
                count_status(test_results.c.status, "skip").label("skipped_tests"),
            )
            .select_from(_results_with_reports)
            .where(reports.c.timestamp >= since)
        )
        report_stats, test_stats = await asyncio.gather(self.db.fetch_one(report_query), self.db.fetch_one(test_query))
        report_stats = report_stats or {}
        test_stats = test_stats or {}

        total_tests = int(test_stats.get("total_tests") or 0)
        passed_tests = int(test_stats.get("passed_tests") or 0)
        return DashboardSummary(
            total_reports=int(report_stats.get("total_reports") or 0),
            total_tests=total_tests,
            passed_tests=passed_tests,
            failed_tests=int(test_stats.get("failed_tests") or 0),
            skipped_tests=int(test_stats.get("skipped_tests") or 0),
            average_duration=round_half_up(report_stats.get("average_duration")),
            success_rate=percentage(passed_tests, total_tests),
            recent_failures=int(report_stats.get("recent_failures") or 0),
            active_blockchains=int(report_stats.get("active_blockchains") or 0),
        )

    async def get_blockchain_stats(self, timeframe: str = "week") -> list[BlockchainStats]:
        since = since_for_timeframe(timeframe)
        report_volume = func.count(reports.c.id)
        query = (
            select(
                reports.c.blockchain,
                report_volume.label("total_reports"),
                _summed(_result_counts.c.total).label("total_tests"),
                _summed(_result_counts.c.passed).label("passed_tests"),
                _summed(_result_counts.c.failed).label("failed_tests"),
                _summed(_result_counts.c.skipped).label("skipped_tests"),
                func.coalesce(func.avg(reports.c.duration), 0).label("average_duration"),
                func.max(reports.c.timestamp).label("last_report_time"),
            )
            .select_from(_reports_with_counts)
            .where(reports.c.timestamp >= since)
            .group_by(reports.c.blockchain)
            .order_by(report_volume.desc(), reports.c.blockchain.asc())
        )
        rows = await self.db.fetch_all(query)
        return [
            BlockchainStats(
                blockchain=row["blockchain"],
                total_reports=int(row["total_reports"] or 0),
                total_tests=int(row["total_tests"] or 0),
                passed_tests=int(row["passed_tests"] or 0),
                failed_tests=int(row["failed_tests"] or 0),
                skipped_tests=int(row["skipped_tests"] or 0),
                success_rate=percentage(row["passed_tests"], row["total_tests"]),
                average_duration=round_half_up(row["average_duration"]),
                last_report_time=row["last_report_time"],
            )
            for row in rows
        ]

    async def get_time_series_data(self, days: int = 7, blockchain: str | None = None) -> list[TimeSeriesPoint]:
        conditions = [reports.c.timestamp >= days_ago(days)]
        if blockchain:
            conditions.append(reports.c.blockchain == blockchain)
        day = func.date(reports.c.timestamp)
        query = (
            select(
                day.label("date"),
                _summed(_result_counts.c.total).label("total_tests"),
                _summed(_result_counts.c.passed).label("passed_tests"),
                _summed(_result_counts.c.failed).label("failed_tests"),
                _summed(_result_counts.c.skipped).label("skipped_tests"),
                func.coalesce(func.avg(reports.c.duration), 0).label("average_duration"),
            )
            .select_from(_reports_with_counts)
            .where(*conditions)
            .group_by(day)
            .order_by(day.asc())
        )
        rows = await self.db.fetch_all(query)
        return [
            TimeSeriesPoint(
                date=iso_date(row["date"]),
                total_tests=int(row["total_tests"] or 0),
                passed_tests=int(row["passed_tests"] or 0),
                failed_tests=int(row["failed_tests"] or 0),
                skipped_tests=int(row["skipped_tests"] or 0),
                success_rate=percentage(row["passed_tests"], row["total_tests"]),
                average_duration=round_half_up(row["average_duration"]),
            )
            for row in rows
        ]

    async def get_test_failure_patterns(self, limit: int = 20, days: int = 30) -> list[TestFailurePattern]:
        since = days_ago(days)
        failures = count_status(test_results.c.status, "fail")
        query = (
            select(
                test_results.c.test_name,
                failures.label("failure_count"),
                func.count().label("total_runs"),
                func.max(case((test_results.c.status == "fail", reports.c.timestamp))).label("last_failure"),
            )
            .select_from(_results_with_reports)
            .where(reports.c.timestamp >= since)
            .group_by(test_results.c.test_name)
            .having(failures > 0)
            .order_by(failures.desc(), test_results.c.test_name.asc())
            .limit(limit)
        )
        rows = await self.db.fetch_all(query)
        if not rows:
            return []

        names = [row["test_name"] for row in rows]
        error_query = (
            select(test_results.c.test_name, test_results.c.error_message)
            .select_from(_results_with_reports)
            .where(
                reports.c.timestamp >= since,
                test_results.c.test_name.in_(names),
                error_present(test_results.c.error_message),
            )
            .distinct()
        )
        errors: dict[str, set[str]] = defaultdict(set)
        for row in await self.db.fetch_all(error_query):
            errors[row["test_name"]].add(row["error_message"])

        return [
            TestFailurePattern(
                test_name=row["test_name"],
                failure_count=int(row["failure_count"] or 0),
                total_runs=int(row["total_runs"] or 0),
                failure_rate=percentage(row["failure_count"], row["total_runs"]),
                last_failure=row["last_failure"],
                common_errors=sorted(errors.get(row["test_name"], ())),
            )
            for row in rows
        ]

    def _duration_ranking(self, since: datetime, limit: int, slowest: bool):
        average = func.avg(test_results.c.duration)
        extreme = func.max(test_results.c.duration) if slowest else func.min(test_results.c.duration)
        return (
            select(
                test_results.c.test_name,
                average.label("average_duration"),
                extreme.label("extreme_duration"),
                func.count().label("run_count"),
            )
            .select_from(_results_with_reports)
            .where(reports.c.timestamp >= since)
            .group_by(test_results.c.test_name)
            .order_by(average.desc() if slowest else average.asc(), test_results.c.test_name.asc())
            .limit(limit)
        )

    async def get_performance_metrics(self, limit: int = 10, days: int = 7) -> PerformanceMetrics:
        since = days_ago(days)
        slowest, fastest, trends = await asyncio.gather(
            self.db.fetch_all(self._duration_ranking(since, limit, slowest=True)),
            self.db.fetch_all(self._duration_ranking(since, limit, slowest=False)),
            self.get_time_series_data(days),
        )
        return PerformanceMetrics(
            slowest_tests=[
                SlowTest(
                    test_name=row["test_name"],
                    average_duration=round_half_up(row["average_duration"]),
                    max_duration=int(row["extreme_duration"] or 0),
                    run_count=int(row["run_count"] or 0),
                )
                for row in slowest
            ],
            fastest_tests=[
                FastTest(
                    test_name=row["test_name"],
                    average_duration=round_half_up(row["average_duration"]),
                    min_duration=int(row["extreme_duration"] or 0),
                    run_count=int(row["run_count"] or 0),
                )
                for row in fastest
            ],
            duration_trends=trends,
        )

    async def get_recent_activity(self, hours: float = 24, limit: int = 50) -> RecentActivity:
        since = hours_ago(hours)
        reports_query = (
            select(
                reports.c.id,
                reports.c.blockchain,
                reports.c.test_suite,
                reports.c.status,
                reports.c.timestamp,
                reports.c.duration,
                func.count(test_results.c.id).label("test_count"),
            )
            .select_from(_reports_with_results)
            .where(reports.c.timestamp >= since)
            .group_by(reports.c.id)
            .order_by(reports.c.timestamp.desc())
            .limit(limit)
        )
        failures_query = (
            select(
                test_results.c.test_name,
                reports.c.blockchain,
                test_results.c.error_message,
                reports.c.timestamp,
            )
            .select_from(_results_with_reports)
            .where(reports.c.timestamp >= since, test_results.c.status == "fail")
            .order_by(reports.c.timestamp.desc())
            .limit(limit)
        )
        report_rows, failure_rows = await asyncio.gather(
            self.db.fetch_all(reports_query),
            self.db.fetch_all(failures_query),
        )
        return RecentActivity(
            recent_reports=[RecentReport.model_validate(row) for row in report_rows],
            recent_failures=[RecentFailure.model_validate(row) for row in failure_rows],
        )

    async def get_system_health_metrics(self) -> SystemHealth:
        last_24h = hours_ago(24)
        last_hour = hours_ago(1)
        metrics_query = (
            select(
                _summed(_result_counts.c.total).label("total_tests"),
                _summed(_result_counts.c.passed).label("passed_tests"),
                _summed(_result_counts.c.failed).label("failures_last_24h"),
                func.coalesce(func.avg(reports.c.duration), 0).label("average_duration"),
                func.count(distinct(reports.c.blockchain)).label("active_blockchains"),
                func.count(reports.c.id).label("reports_last_24h"),
            )
            .select_from(_reports_with_counts)
            .where(reports.c.timestamp >= last_24h)
        )
        hour_query = select(func.count()).select_from(reports).where(reports.c.timestamp >= last_hour)
        metrics, reports_last_hour = await asyncio.gather(
            self.db.fetch_one(metrics_query),
            self.db.scalar(hour_query),
        )
        metrics = metrics or {}

        # No tests in the window counts as healthy, not unknown.
        success_rate = percentage(metrics.get("passed_tests"), metrics.get("total_tests"), empty=100.0)

        alerts: list[HealthAlert] = []
        if success_rate < SUCCESS_RATE_CRITICAL:
            alerts.append(
                HealthAlert(type="critical", message=f"Critical: Success rate is {success_rate:.1f}% in the last 24 hours")
            )
        elif success_rate < SUCCESS_RATE_WARNING:
            alerts.append(
                HealthAlert(type="warning", message=f"Warning: Success rate is {success_rate:.1f}% in the last 24 hours")
            )
        if int(reports_last_hour or 0) == 0:
            alerts.append(HealthAlert(type="warning", message="No reports received in the last hour"))

        overall = "healthy"
        if any(alert.type == "critical" for alert in alerts):
            overall = "critical"
        elif alerts:
            overall = "warning"

        return SystemHealth(
            overall_health=overall,
            metrics=HealthMetrics(
                recent_success_rate=success_rate,
                average_response_time=round_half_up(metrics.get("average_duration")),
                active_blockchains=int(metrics.get("active_blockchains") or 0),
                reports_last_24h=int(metrics.get("reports_last_24h") or 0),
                failures_last_24h=int(metrics.get("failures_last_24h") or 0),
            ),
            alerts=alerts,
        )
