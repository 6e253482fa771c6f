from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import String, and_, case, cast, func, or_

from chainwatch.db.models import utc_now

TIMEFRAMES: dict[str, timedelta] = {
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}


def since_for_timeframe(timeframe: str, now: datetime | None = None) -> datetime:
    delta = TIMEFRAMES.get(timeframe)
    if delta is None:
        raise ValueError(f"Unknown timeframe: {timeframe}")
    return (now or utc_now()) - delta


def hours_ago(hours: float) -> datetime:
    return utc_now() - timedelta(hours=hours)


def days_ago(days: float) -> datetime:
    return utc_now() - timedelta(days=days)


def json_text(column):
    return cast(column, String)


def count_status(column, status: str):
    return func.count(case((column == status, 1)))


def error_present(column):
    return and_(column.is_not(None), column != "")


def error_absent(column):
    return or_(column.is_(None), column == "")


def has_error_condition(column, has_error: bool):
    return error_present(column) if has_error else error_absent(column)


def ordered(column, sort_order: str):
    return column.asc() if sort_order == "asc" else column.desc()


def resolve_sort_column(sort_by: str, allowed: dict[str, Any], default: str):
    return allowed.get(sort_by, allowed[default])


def offset_for(page: int, limit: int) -> int:
    return (page - 1) * limit


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit > 0 else 0


def round_half_up(value: Any) -> int:
    return int(math.floor(float(value or 0) + 0.5))


def percentage(part: Any, whole: Any, empty: float = 0.0) -> float:
    """Two-decimal percentage, clamped to [0, 100]; `empty` when whole is zero."""
    whole = int(whole or 0)
    if whole <= 0:
        return empty
    rate = int(part or 0) / whole * 100
    rate = min(max(rate, 0.0), 100.0)
    return math.floor(rate * 100 + 0.5) / 100


def iso_date(value: Any) -> str:
    if hasattr(value, "isoformat"):
        return value.isoformat()[:10]
    return str(value)[:10]
