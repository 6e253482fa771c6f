from __future__ import annotations

import asyncio
import json
import math
import re
import time
from typing import Any

from sqlalchemy import and_, case, func, literal, or_, select

from chainwatch.core.logger import get_logger
from chainwatch.db.database import Database
from chainwatch.db.models import reports, test_results
from chainwatch.db.queries.common import has_error_condition, json_text, offset_for, ordered, total_pages
from chainwatch.schemas.filters import AdvancedSearchFilters, SearchFilters, SearchOptions
from chainwatch.schemas.search import SearchResponse, SearchResult, SearchSuggestions

logger = get_logger(__name__)

MIN_SUGGESTION_LENGTH = 2
MAX_HIGHLIGHTS = 5
HIGHLIGHTS_PER_FIELD = 2
HIGHLIGHT_CONTEXT = 50

# Field weights for the relevance score; test names outweigh blockchain matches.
REPORT_WEIGHTS = (
    (reports.c.blockchain, 10),
    (reports.c.test_suite, 8),
    (json_text(reports.c.metadata), 5),
)
TEST_RESULT_WEIGHTS = (
    (test_results.c.test_name, 15),
    (test_results.c.error_message, 12),
    (json_text(test_results.c.details), 8),
    (reports.c.blockchain, 5),
)
ADVANCED_WEIGHTS = (
    (test_results.c.test_name, 15),
    (test_results.c.error_message, 12),
    (reports.c.blockchain, 5),
)

_results_with_reports = test_results.join(reports, test_results.c.report_id == reports.c.id)


def split_terms(query: str) -> list[str]:
    return [term for term in query.split() if term]


def relevance_score(weights, term: str):
    score = literal(0)
    for column, weight in weights:
        score = score + case((column.icontains(term, autoescape=True), weight), else_=0)
    return score


def terms_condition(columns, terms: list[str]):
    """Every term must match at least one of the columns."""
    return and_(*[or_(*[column.icontains(term, autoescape=True) for column in columns]) for term in terms])


def generate_highlights(terms: list[str], texts: list[str | None]) -> list[str]:
    highlights: list[str] = []
    for text in texts:
        if not text:
            continue
        for term in terms:
            pattern = re.compile(
                f"(.{{0,{HIGHLIGHT_CONTEXT}}})({re.escape(term)})(.{{0,{HIGHLIGHT_CONTEXT}}})",
                re.IGNORECASE,
            )
            matches = [match.group(0) for match in pattern.finditer(text)]
            highlights.extend(matches[:HIGHLIGHTS_PER_FIELD])
    return highlights[:MAX_HIGHLIGHTS]


def _json_dump(value: Any) -> str:
    return json.dumps(value, default=str) if value is not None else ""


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class SearchQueries:
    def __init__(self, db: Database):
        self.db = db

    async def perform_full_text_search(
        self,
        filters: SearchFilters,
        options: SearchOptions | None = None,
    ) -> SearchResponse:
        start = time.perf_counter()
        options = options or SearchOptions()
        if not filters.query.strip():
            return SearchResponse(page=options.page, limit=options.limit, search_time=_elapsed_ms(start))

        terms = split_terms(filters.query)
        side_limit = math.ceil(options.limit / 2)
        side_offset = offset_for(options.page, options.limit) // 2

        searches = []
        if filters.include_reports:
            searches.append(self._search_reports(terms, filters, side_limit, side_offset))
        if filters.include_test_results:
            searches.append(self._search_test_results(terms, filters, side_limit, side_offset))
        outcomes = await asyncio.gather(*searches)

        results: list[SearchResult] = []
        total = 0
        for side_results, side_total in outcomes:
            results.extend(side_results)
            total += side_total

        descending = options.sort_order != "asc"
        if options.sort_by == "timestamp":
            results.sort(key=lambda hit: hit.timestamp, reverse=descending)
        else:
            results.sort(key=lambda hit: hit.relevance_score, reverse=descending)

        # total sums each side's own match count; it is not the merged count.
        logger.info("db.search.full_text", terms=len(terms), total=total, returned=min(len(results), options.limit))
        return SearchResponse(
            results=results[: options.limit],
            total=total,
            page=options.page,
            limit=options.limit,
            total_pages=total_pages(total, options.limit),
            search_time=_elapsed_ms(start),
        )

    async def _search_reports(
        self,
        terms: list[str],
        filters: SearchFilters,
        limit: int,
        offset: int,
    ) -> tuple[list[SearchResult], int]:
        conditions = [terms_condition([column for column, _ in REPORT_WEIGHTS], terms)]
        if filters.blockchain:
            conditions.append(reports.c.blockchain == filters.blockchain)
        if filters.status:
            conditions.append(reports.c.status == filters.status)
        if filters.date_from is not None:
            conditions.append(reports.c.timestamp >= filters.date_from)
        if filters.date_to is not None:
            conditions.append(reports.c.timestamp <= filters.date_to)

        score = relevance_score(REPORT_WEIGHTS, terms[0]).label("relevance_score")
        data_query = (
            select(
                reports.c.id,
                reports.c.blockchain,
                reports.c.test_suite,
                reports.c.status,
                reports.c.timestamp,
                reports.c.metadata,
                score,
            )
            .where(*conditions)
            .order_by(score.desc(), reports.c.timestamp.desc())
            .limit(limit)
            .offset(offset)
        )
        count_query = select(func.count()).select_from(reports).where(*conditions)
        rows, total = await asyncio.gather(self.db.fetch_all(data_query), self.db.scalar(count_query))

        results = [
            SearchResult(
                type="report",
                id=row["id"],
                title=f"{row['blockchain']} - {row['test_suite']}",
                description=f"Report from {row['timestamp'].isoformat()} with status {row['status']}",
                blockchain=row["blockchain"],
                status=row["status"],
                timestamp=row["timestamp"],
                relevance_score=int(row["relevance_score"] or 0),
                highlights=generate_highlights(terms, [row["blockchain"], row["test_suite"], _json_dump(row["metadata"])]),
            )
            for row in rows
        ]
        return results, int(total or 0)

    async def _search_test_results(
        self,
        terms: list[str],
        filters: SearchFilters,
        limit: int,
        offset: int,
    ) -> tuple[list[SearchResult], int]:
        conditions = [terms_condition([column for column, _ in TEST_RESULT_WEIGHTS], terms)]
        if filters.blockchain:
            conditions.append(reports.c.blockchain == filters.blockchain)
        if filters.status:
            conditions.append(test_results.c.status == filters.status)
        if filters.date_from is not None:
            conditions.append(reports.c.timestamp >= filters.date_from)
        if filters.date_to is not None:
            conditions.append(reports.c.timestamp <= filters.date_to)

        score = relevance_score(TEST_RESULT_WEIGHTS, terms[0]).label("relevance_score")
        data_query = (
            select(
                test_results.c.id,
                test_results.c.test_name,
                test_results.c.status,
                test_results.c.error_message,
                test_results.c.details,
                reports.c.blockchain,
                reports.c.timestamp,
                score,
            )
            .select_from(_results_with_reports)
            .where(*conditions)
            .order_by(score.desc(), reports.c.timestamp.desc())
            .limit(limit)
            .offset(offset)
        )
        count_query = select(func.count()).select_from(_results_with_reports).where(*conditions)
        rows, total = await asyncio.gather(self.db.fetch_all(data_query), self.db.scalar(count_query))

        results = [
            SearchResult(
                type="test_result",
                id=row["id"],
                title=row["test_name"],
                description=row["error_message"] or f"Test result with status {row['status']}",
                blockchain=row["blockchain"],
                status=row["status"],
                timestamp=row["timestamp"],
                relevance_score=int(row["relevance_score"] or 0),
                highlights=generate_highlights(
                    terms,
                    [row["test_name"], row["error_message"], _json_dump(row["details"])],
                ),
            )
            for row in rows
        ]
        return results, int(total or 0)

    async def get_search_suggestions(self, query: str, limit: int = 10) -> SearchSuggestions:
        if not query.strip() or len(query) < MIN_SUGGESTION_LENGTH:
            return SearchSuggestions()

        def distinct_matches(column):
            return (
                select(column)
                .where(column.icontains(query, autoescape=True))
                .distinct()
                .order_by(column.asc())
                .limit(limit)
            )

        blockchains, test_suites, test_names = await asyncio.gather(
            self.db.fetch_all(distinct_matches(reports.c.blockchain)),
            self.db.fetch_all(distinct_matches(reports.c.test_suite)),
            self.db.fetch_all(distinct_matches(test_results.c.test_name)),
        )
        return SearchSuggestions(
            blockchains=[row["blockchain"] for row in blockchains],
            test_suites=[row["test_suite"] for row in test_suites],
            test_names=[row["test_name"] for row in test_names],
        )

    async def perform_advanced_search(self, filters: AdvancedSearchFilters) -> SearchResponse:
        start = time.perf_counter()
        query_text = (filters.query or "").strip()
        terms = split_terms(query_text)

        conditions = []
        if terms:
            conditions.append(
                terms_condition(
                    [
                        test_results.c.test_name,
                        test_results.c.error_message,
                        json_text(test_results.c.details),
                        reports.c.blockchain,
                        reports.c.test_suite,
                    ],
                    terms,
                )
            )
        if filters.blockchains:
            conditions.append(reports.c.blockchain.in_(filters.blockchains))
        if filters.statuses:
            conditions.append(test_results.c.status.in_(filters.statuses))
        if filters.test_name:
            conditions.append(test_results.c.test_name.icontains(filters.test_name, autoescape=True))
        if filters.has_error is not None:
            conditions.append(has_error_condition(test_results.c.error_message, filters.has_error))
        if filters.date_from is not None:
            conditions.append(reports.c.timestamp >= filters.date_from)
        if filters.date_to is not None:
            conditions.append(reports.c.timestamp <= filters.date_to)
        if filters.min_duration is not None:
            conditions.append(test_results.c.duration >= filters.min_duration)
        if filters.max_duration is not None:
            conditions.append(test_results.c.duration <= filters.max_duration)

        score = (relevance_score(ADVANCED_WEIGHTS, query_text) if query_text else literal(0)).label("relevance_score")
        sort_columns = {
            "timestamp": reports.c.timestamp,
            "duration": test_results.c.duration,
            "test_name": test_results.c.test_name,
            "testName": test_results.c.test_name,
        }
        sort_column = sort_columns.get(filters.sort_by, score)

        data_query = (
            select(
                test_results.c.id,
                test_results.c.test_name,
                test_results.c.status,
                test_results.c.duration,
                test_results.c.error_message,
                test_results.c.details,
                reports.c.blockchain,
                reports.c.test_suite,
                reports.c.timestamp,
                score,
            )
            .select_from(_results_with_reports)
            .where(*conditions)
            .order_by(ordered(sort_column, filters.sort_order), reports.c.timestamp.desc(), test_results.c.id)
            .limit(filters.limit)
            .offset(offset_for(filters.page, filters.limit))
        )
        count_query = select(func.count()).select_from(_results_with_reports).where(*conditions)
        rows, total = await asyncio.gather(self.db.fetch_all(data_query), self.db.scalar(count_query))
        total = int(total or 0)

        results = [
            SearchResult(
                type="test_result",
                id=row["id"],
                title=row["test_name"],
                description=row["error_message"] or f"Test from {row['test_suite']}",
                blockchain=row["blockchain"],
                status=row["status"],
                timestamp=row["timestamp"],
                relevance_score=int(row["relevance_score"] or 0),
                highlights=generate_highlights(
                    terms,
                    [row["test_name"], row["error_message"], _json_dump(row["details"])],
                )
                if terms
                else [],
            )
            for row in rows
        ]
        return SearchResponse(
            results=results,
            total=total,
            page=filters.page,
            limit=filters.limit,
            total_pages=total_pages(total, filters.limit),
            search_time=_elapsed_ms(start),
        )
