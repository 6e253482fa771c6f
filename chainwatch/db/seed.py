from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import insert
from sqlalchemy.engine import Connection

from chainwatch.core.logger import get_logger
from chainwatch.db.database import Database, ProtectedEnvironmentError
from chainwatch.db.models import reports, test_results
from chainwatch.db.queries.common import utc_now
from chainwatch.db.queries.reports import report_row
from chainwatch.db.queries.test_results import test_result_row
from chainwatch.schemas.records import NewReport, NewTestResult

logger = get_logger(__name__)


@dataclass(frozen=True)
class SeedPreset:
    reports: int
    test_results: int
    blockchains: tuple[str, ...]


SEED_DATA: dict[str, SeedPreset] = {
    "development": SeedPreset(
        reports=50,
        test_results=200,
        blockchains=("ethereum", "polkadot", "moonbeam", "moonriver"),
    ),
    "test": SeedPreset(reports=10, test_results=40, blockchains=("ethereum", "polkadot")),
}

TEST_SUITES = ("integration", "consensus", "rpc-compat", "smart-contracts", "xcm-transfers")
TEST_NAMES = (
    "block_production",
    "finality_lag",
    "balance_transfer",
    "contract_deploy",
    "contract_call",
    "eth_getLogs",
    "eth_estimateGas",
    "staking_rewards",
    "xcm_reserve_transfer",
    "runtime_upgrade",
)
ERROR_MESSAGES = (
    "Timeout waiting for block finalization",
    "Unexpected revert: out of gas",
    "RPC returned 503 Service Unavailable",
    "Nonce too low",
)
# Weighted so that seeded data looks mostly healthy.
RESULT_STATUSES = ("pass",) * 7 + ("fail",) * 2 + ("skip",)


def _report_status(statuses: list[str]) -> str:
    if "fail" in statuses:
        return "fail"
    if statuses and all(status == "skip" for status in statuses):
        return "skip"
    return "pass"


def build_seed(preset: SeedPreset, rng: random.Random) -> tuple[list[NewReport], list[list[dict]]]:
    """Build reports plus per-report result payloads, spread over the last 30 days."""
    now = utc_now()
    per_report = [preset.test_results // preset.reports] * preset.reports
    for index in range(preset.test_results % preset.reports):
        per_report[index] += 1

    new_reports: list[NewReport] = []
    payloads: list[list[dict]] = []
    for index, count in enumerate(per_report):
        results = []
        for _ in range(count):
            status = rng.choice(RESULT_STATUSES)
            results.append(
                {
                    "test_name": rng.choice(TEST_NAMES),
                    "status": status,
                    "duration": rng.randint(50, 5000),
                    "error_message": rng.choice(ERROR_MESSAGES) if status == "fail" else None,
                    "details": {"attempt": 1, "node": f"node-{rng.randint(1, 4)}"},
                }
            )
        new_reports.append(
            NewReport(
                blockchain=preset.blockchains[index % len(preset.blockchains)],
                test_suite=rng.choice(TEST_SUITES),
                status=_report_status([item["status"] for item in results]),
                duration=sum(item["duration"] for item in results),
                metadata={"runner": "seed", "build": index + 1},
                timestamp=now - timedelta(minutes=rng.randint(0, 30 * 24 * 60)),
            )
        )
        payloads.append(results)
    return new_reports, payloads


async def seed_database(db: Database, environment: str | None = None, seed: int | None = None) -> dict[str, int]:
    environment = environment or db.config.environment
    if environment == "production":
        raise ProtectedEnvironmentError("Cannot seed database in production environment")
    preset = SEED_DATA.get(environment)
    if preset is None:
        raise ValueError(f"No seed configuration found for environment: {environment}")

    logger.info(
        "db.seed.start",
        environment=environment,
        reports=preset.reports,
        test_results=preset.test_results,
        blockchains=list(preset.blockchains),
    )
    new_reports, payloads = build_seed(preset, random.Random(seed))
    report_rows = [report_row(item) for item in new_reports]
    result_rows = [
        test_result_row(NewTestResult(report_id=row["id"], **payload))
        for row, report_payloads in zip(report_rows, payloads)
        for payload in report_payloads
    ]

    def insert_all(conn: Connection) -> None:
        conn.execute(insert(reports), report_rows)
        if result_rows:
            conn.execute(insert(test_results), result_rows)

    # Reports and results commit in one transaction.
    await db.transaction(insert_all)
    logger.info("db.seed.done", environment=environment, reports=len(report_rows), test_results=len(result_rows))
    return {"reports": len(report_rows), "test_results": len(result_rows)}
