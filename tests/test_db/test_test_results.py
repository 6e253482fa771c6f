from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from chainwatch.schemas.filters import TestResultFilters, TestResultPaginationOptions
from chainwatch.schemas.records import NewTestResult


@pytest.mark.asyncio
async def test_insert_requires_existing_report(test_result_queries):
    with pytest.raises(IntegrityError):
        await test_result_queries.insert_test_result(
            NewTestResult(report_id="missing", test_name="orphan", status="pass", duration=1)
        )


@pytest.mark.asyncio
async def test_running_is_not_a_result_status(test_result_queries, make_report):
    report = await make_report()
    with pytest.raises(IntegrityError):
        await test_result_queries.insert_test_result(
            NewTestResult(report_id=report.id, test_name="t", status="running", duration=1)
        )


@pytest.mark.asyncio
async def test_bulk_insert_and_lookup(test_result_queries, make_report):
    report = await make_report()
    assert await test_result_queries.insert_test_results([]) == []

    rows = await test_result_queries.insert_test_results(
        [
            NewTestResult(report_id=report.id, test_name="zeta", status="pass", duration=5, details={"shard": 1}),
            NewTestResult(report_id=report.id, test_name="alpha", status="skip", duration=0),
        ]
    )

    assert [row.test_name for row in rows] == ["zeta", "alpha"]
    fetched = await test_result_queries.get_test_result_by_id(rows[0].id)
    assert fetched == rows[0]
    assert fetched.details == {"shard": 1}
    by_report = await test_result_queries.get_test_results_by_report_id(report.id)
    assert [row.test_name for row in by_report] == ["alpha", "zeta"]
    assert await test_result_queries.get_test_result_by_id("missing") is None


@pytest.mark.asyncio
async def test_has_error_filter_ignores_empty_messages(test_result_queries, make_report, make_result):
    report = await make_report()
    await make_result(report.id, test_name="with_error", status="fail", error_message="Nonce too low")
    await make_result(report.id, test_name="empty_error", status="fail", error_message="")
    await make_result(report.id, test_name="no_error", status="pass")

    with_error = await test_result_queries.get_test_results(TestResultFilters(has_error=True))
    without_error = await test_result_queries.get_test_results(
        TestResultFilters(has_error=False),
        TestResultPaginationOptions(sort_by="test_name", sort_order="asc"),
    )

    assert [row.test_name for row in with_error.data] == ["with_error"]
    assert [row.test_name for row in without_error.data] == ["empty_error", "no_error"]
    assert without_error.total == 2


@pytest.mark.asyncio
async def test_search_covers_name_error_and_details(test_result_queries, make_report, make_result):
    report = await make_report()
    await make_result(report.id, test_name="eth_getLogs")
    await make_result(report.id, test_name="transfer", status="fail", error_message="timeout on getLogs")
    await make_result(report.id, test_name="staking", details={"rpc": "getLogs"})
    await make_result(report.id, test_name="unrelated")

    page = await test_result_queries.get_test_results(
        TestResultFilters(search="getLogs"),
        TestResultPaginationOptions(sort_by="test_name", sort_order="asc"),
    )

    assert [row.test_name for row in page.data] == ["eth_getLogs", "staking", "transfer"]
    assert page.total == 3


@pytest.mark.asyncio
async def test_with_reports_carries_report_context(test_result_queries, make_report, make_result):
    report = await make_report(blockchain="moonriver", test_suite="evm")
    await make_result(report.id, test_name="deploy")
    other = await make_report(blockchain="polkadot")
    await make_result(other.id, test_name="xcm")

    page = await test_result_queries.get_test_results_with_reports(TestResultFilters(search="moonriver"))

    assert page.total == 1
    row = page.data[0]
    assert row.test_name == "deploy"
    assert row.report.id == report.id
    assert row.report.blockchain == "moonriver"
    assert row.report.test_suite == "evm"
    assert row.report.timestamp == report.timestamp


@pytest.mark.asyncio
async def test_failed_and_slowest(test_result_queries, make_report, make_result):
    report = await make_report()
    other = await make_report()
    await make_result(report.id, test_name="fast", duration=10)
    await make_result(report.id, test_name="slow", duration=900, status="fail", error_message="x")
    await make_result(other.id, test_name="slower", duration=1200, status="fail", error_message="y")

    slowest = await test_result_queries.get_slowest_test_results(limit=2)
    failed_in_report = await test_result_queries.get_failed_test_results(report_id=report.id)
    skipped = await test_result_queries.get_test_results_by_status("skip")

    assert [row.test_name for row in slowest] == ["slower", "slow"]
    assert [row.test_name for row in failed_in_report] == ["slow"]
    assert skipped == []


@pytest.mark.asyncio
async def test_update_status_keeps_error_unless_given(test_result_queries, make_report, make_result):
    report = await make_report()
    result = await make_result(report.id, status="fail", error_message="first error")

    kept = await test_result_queries.update_test_result_status(result.id, "skip")
    replaced = await test_result_queries.update_test_result_status(result.id, "fail", "replaced")

    assert (kept.status, kept.error_message) == ("skip", "first error")
    assert (replaced.status, replaced.error_message) == ("fail", "replaced")
    assert await test_result_queries.update_test_result_status("missing", "pass") is None


@pytest.mark.asyncio
async def test_deletes(test_result_queries, make_report, make_result):
    report = await make_report()
    first = await make_result(report.id, test_name="a")
    await make_result(report.id, test_name="b")
    other = await make_report()
    await make_result(other.id, test_name="c")

    assert await test_result_queries.delete_test_results([]) == 0
    assert await test_result_queries.delete_test_results([first.id]) == 1
    assert await test_result_queries.delete_test_results_by_report_id(report.id) == 1
    assert await test_result_queries.delete_test_results_by_report_id("missing") == 0
    assert (await test_result_queries.get_test_results()).total == 1


@pytest.mark.asyncio
async def test_stats_for_report(test_result_queries, make_report, make_result):
    report = await make_report()
    await make_result(report.id, status="pass", duration=100)
    await make_result(report.id, status="fail", duration=200, error_message="x")
    await make_result(report.id, status="skip", duration=0)
    await make_result(report.id, status="pass", duration=101)

    stats = await test_result_queries.get_test_result_stats(report.id)

    assert (stats.total, stats.passed, stats.failed, stats.skipped) == (4, 2, 1, 1)
    assert stats.total_duration == 401
    assert stats.average_duration == 100


@pytest.mark.asyncio
async def test_stats_for_report_without_results_are_zero(test_result_queries, make_report):
    report = await make_report()

    stats = await test_result_queries.get_test_result_stats(report.id)

    assert stats.model_dump() == {
        "total": 0,
        "passed": 0,
        "failed": 0,
        "skipped": 0,
        "average_duration": 0,
        "total_duration": 0,
    }


@pytest.mark.asyncio
async def test_unique_test_names(test_result_queries, make_report, make_result):
    report = await make_report()
    for name in ("b", "a", "b"):
        await make_result(report.id, test_name=name)

    assert await test_result_queries.get_unique_test_names() == ["a", "b"]
