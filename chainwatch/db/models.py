from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, CheckConstraint, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

from chainwatch.db.types import UTCDateTime

REPORT_STATUSES = ("pass", "fail", "skip", "running", "pending")
TEST_RESULT_STATUSES = ("pass", "fail", "skip")

JSONType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _in_list(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{value}'" for value in values)
    return f"{column} IN ({quoted})"


class ReportRow(Base):
    __tablename__ = "reports"
    __table_args__ = (
        CheckConstraint(_in_list("status", REPORT_STATUSES), name="reports_status_check"),
        CheckConstraint("duration >= 0", name="reports_duration_check"),
        CheckConstraint("length(trim(blockchain)) > 0", name="reports_blockchain_not_empty"),
        CheckConstraint("length(trim(test_suite)) > 0", name="reports_test_suite_not_empty"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    blockchain = Column(String(100), nullable=False)
    test_suite = Column(String(200), nullable=False)
    timestamp = Column(UTCDateTime(), nullable=False, default=utc_now)
    status = Column(String(20), nullable=False)
    duration = Column(Integer, nullable=False)
    # "metadata" is reserved on declarative classes; the column keeps its name.
    metadata_ = Column("metadata", JSONType)
    created_at = Column(UTCDateTime(), default=utc_now)
    updated_at = Column(UTCDateTime(), default=utc_now)


class TestResultRow(Base):
    __tablename__ = "test_results"
    __table_args__ = (
        CheckConstraint(_in_list("status", TEST_RESULT_STATUSES), name="test_results_status_check"),
        CheckConstraint("duration >= 0", name="test_results_duration_check"),
        CheckConstraint("length(trim(test_name)) > 0", name="test_results_test_name_not_empty"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    report_id = Column(
        String(36),
        ForeignKey("reports.id", ondelete="CASCADE", name="fk_test_results_report_id"),
        nullable=False,
    )
    test_name = Column(String(300), nullable=False)
    status = Column(String(20), nullable=False)
    duration = Column(Integer, nullable=False)
    error_message = Column(Text)
    details = Column(JSONType)
    created_at = Column(UTCDateTime(), default=utc_now)


metadata_obj = Base.metadata
reports = ReportRow.__table__
test_results = TestResultRow.__table__

Index("idx_reports_timestamp", reports.c.timestamp.desc())
Index("idx_reports_blockchain", reports.c.blockchain)
Index("idx_reports_status", reports.c.status)
Index("idx_reports_blockchain_status", reports.c.blockchain, reports.c.status)
Index("idx_reports_timestamp_status", reports.c.timestamp.desc(), reports.c.status)

Index("idx_test_results_report_id", test_results.c.report_id)
Index("idx_test_results_status", test_results.c.status)
Index("idx_test_results_test_name", test_results.c.test_name)
Index("idx_test_results_report_status", test_results.c.report_id, test_results.c.status)
Index("idx_test_results_status_test_name", test_results.c.status, test_results.c.test_name)

# GIN and trigram indexes only exist on PostgreSQL (pg_trgm is enabled by init_schema).
Index("idx_reports_metadata_gin", reports.c.metadata, postgresql_using="gin").ddl_if(dialect="postgresql")
Index("idx_test_results_details_gin", test_results.c.details, postgresql_using="gin").ddl_if(dialect="postgresql")
Index(
    "idx_test_results_test_name_trgm",
    test_results.c.test_name,
    postgresql_using="gin",
    postgresql_ops={"test_name": "gin_trgm_ops"},
).ddl_if(dialect="postgresql")
