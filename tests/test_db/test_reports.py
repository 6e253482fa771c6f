from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from chainwatch.schemas.filters import PaginationOptions, ReportFilters
from chainwatch.schemas.records import NewReport


@pytest.mark.asyncio
async def test_insert_then_lookup_returns_same_row(report_queries, make_report):
    stamp = datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)
    inserted = await make_report(metadata={"runner": "ci", "build": 7}, timestamp=stamp)

    fetched = await report_queries.get_report_by_id(inserted.id)

    assert fetched == inserted
    assert fetched.id
    assert fetched.timestamp == stamp
    assert fetched.metadata == {"runner": "ci", "build": 7}
    assert fetched.created_at is not None
    assert fetched.updated_at is not None


@pytest.mark.asyncio
async def test_missing_report_is_none(report_queries):
    assert await report_queries.get_report_by_id("does-not-exist") is None


@pytest.mark.asyncio
async def test_invalid_status_raises_and_creates_nothing(report_queries):
    with pytest.raises(IntegrityError):
        await report_queries.insert_report(
            NewReport(blockchain="ethereum", test_suite="integration", status="bogus", duration=10)
        )
    page = await report_queries.get_reports()
    assert page.total == 0
    assert page.data == []


@pytest.mark.asyncio
async def test_negative_duration_and_blank_blockchain_rejected(report_queries):
    with pytest.raises(IntegrityError):
        await report_queries.insert_report(
            NewReport(blockchain="ethereum", test_suite="integration", status="pass", duration=-1)
        )
    with pytest.raises(IntegrityError):
        await report_queries.insert_report(NewReport(blockchain="   ", test_suite="integration", status="pass", duration=1))


@pytest.mark.asyncio
async def test_bulk_insert_preserves_order_and_empty_input(report_queries):
    assert await report_queries.insert_reports([]) == []

    rows = await report_queries.insert_reports(
        [
            NewReport(blockchain="polkadot", test_suite="xcm", status="pass", duration=10),
            NewReport(blockchain="moonbeam", test_suite="evm", status="fail", duration=20),
        ]
    )

    assert [row.blockchain for row in rows] == ["polkadot", "moonbeam"]
    assert len({row.id for row in rows}) == 2


@pytest.mark.asyncio
async def test_filters_apply_and_total_ignores_limit(report_queries, make_report):
    for index in range(5):
        await make_report(blockchain="ethereum", test_suite=f"suite-{index}", duration=100 * (index + 1))
    await make_report(blockchain="polkadot", test_suite="suite-x", duration=300)

    page = await report_queries.get_reports(
        ReportFilters(blockchain="ethereum", min_duration=200, max_duration=400),
        PaginationOptions(page=1, limit=2, sort_by="duration", sort_order="asc"),
    )

    assert page.total == 3
    assert page.total_pages == 2
    assert page.limit == 2
    assert [row.duration for row in page.data] == [200, 300]
    assert all(row.blockchain == "ethereum" for row in page.data)

    second = await report_queries.get_reports(
        ReportFilters(blockchain="ethereum", min_duration=200, max_duration=400),
        PaginationOptions(page=2, limit=2, sort_by="duration", sort_order="asc"),
    )
    assert [row.duration for row in second.data] == [400]


@pytest.mark.asyncio
async def test_search_matches_metadata_and_suite_substring(report_queries, make_report):
    await make_report(test_suite="rpc-compat", metadata={"node": "geth-archive"})
    await make_report(test_suite="consensus", metadata={"node": "erigon"})

    by_metadata = await report_queries.get_reports(ReportFilters(search="geth"))
    by_suite = await report_queries.get_reports(ReportFilters(test_suite="compat"))

    assert [row.test_suite for row in by_metadata.data] == ["rpc-compat"]
    assert [row.test_suite for row in by_suite.data] == ["rpc-compat"]


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(report_queries, make_report):
    await make_report(test_suite="load_100%")
    await make_report(test_suite="load-test")

    page = await report_queries.get_reports(ReportFilters(search="100%"))

    assert [row.test_suite for row in page.data] == ["load_100%"]


@pytest.mark.asyncio
async def test_date_range_is_inclusive(report_queries, make_report):
    base = datetime(2024, 5, 1, tzinfo=timezone.utc)
    for offset in range(3):
        await make_report(timestamp=base + timedelta(days=offset))

    page = await report_queries.get_reports(
        ReportFilters(date_from=base, date_to=base + timedelta(days=1)),
        PaginationOptions(sort_order="asc"),
    )

    assert [row.timestamp for row in page.data] == [base, base + timedelta(days=1)]


@pytest.mark.asyncio
async def test_unknown_sort_column_falls_back_to_timestamp(report_queries, make_report):
    base = datetime(2024, 5, 1, tzinfo=timezone.utc)
    first = await make_report(timestamp=base)
    second = await make_report(timestamp=base + timedelta(hours=1))

    page = await report_queries.get_reports(pagination=PaginationOptions(sort_by="id; DROP TABLE reports"))

    assert [row.id for row in page.data] == [second.id, first.id]


@pytest.mark.asyncio
async def test_counts_per_report(report_queries, make_report, make_result):
    report = await make_report(blockchain="ethereum", status="pass", duration=5000)
    await make_result(report.id, test_name="a", status="pass")
    await make_result(report.id, test_name="b", status="fail", error_message="boom")
    empty = await make_report(blockchain="polkadot")

    page = await report_queries.get_reports_with_counts(ReportFilters(blockchain="ethereum"))

    assert page.total == 1
    row = page.data[0]
    assert row.id == report.id
    assert (row.total_tests, row.passed_tests, row.failed_tests, row.skipped_tests) == (2, 1, 1, 0)

    other = await report_queries.get_reports_with_counts(ReportFilters(blockchain="polkadot"))
    assert other.data[0].id == empty.id
    assert (other.data[0].total_tests, other.data[0].passed_tests) == (0, 0)


@pytest.mark.asyncio
async def test_convenience_lookups_order_by_timestamp_desc(report_queries, make_report):
    now = datetime.now(timezone.utc)
    old = await make_report(blockchain="moonbeam", status="fail", timestamp=now - timedelta(hours=48))
    recent = await make_report(blockchain="moonbeam", status="fail", timestamp=now - timedelta(hours=1))

    assert [row.id for row in await report_queries.get_recent_reports(hours=24)] == [recent.id]
    assert [row.id for row in await report_queries.get_reports_by_blockchain("moonbeam")] == [recent.id, old.id]
    assert [row.id for row in await report_queries.get_reports_by_status("fail", limit=1)] == [recent.id]


@pytest.mark.asyncio
async def test_update_status(report_queries, make_report):
    report = await make_report(status="running")

    updated = await report_queries.update_report_status(report.id, "pass")

    assert updated.status == "pass"
    assert updated.updated_at >= report.updated_at
    assert await report_queries.update_report_status("missing", "pass") is None


@pytest.mark.asyncio
async def test_delete_cascades_to_test_results(report_queries, test_result_queries, make_report, make_result):
    report = await make_report()
    await make_result(report.id, test_name="a")
    await make_result(report.id, test_name="b")

    assert await report_queries.delete_report(report.id) is True
    assert await test_result_queries.get_test_results_by_report_id(report.id) == []
    assert await report_queries.delete_report(report.id) is False


@pytest.mark.asyncio
async def test_delete_many(report_queries, make_report):
    first = await make_report()
    second = await make_report()
    await make_report()

    assert await report_queries.delete_reports([]) == 0
    assert await report_queries.delete_reports([first.id, second.id, "missing"]) == 2
    assert (await report_queries.get_reports()).total == 1


@pytest.mark.asyncio
async def test_unique_values_are_sorted_and_stable(report_queries, make_report):
    await make_report(blockchain="polkadot", test_suite="xcm")
    await make_report(blockchain="ethereum", test_suite="evm")
    await make_report(blockchain="polkadot", test_suite="evm")

    first = await report_queries.get_unique_blockchains()
    second = await report_queries.get_unique_blockchains()

    assert first == ["ethereum", "polkadot"]
    assert first == second
    assert await report_queries.get_unique_test_suites() == ["evm", "xcm"]
