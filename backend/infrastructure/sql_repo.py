"""SQL-backed offer statistics (PostgreSQL in production, SQLite locally)."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, List, Optional

from sqlalchemy import extract, func, literal
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import Session, select

from domain.offer import FAILED_STATUSES, SUCCESS_STATUSES, AggregateBucket, Granularity
from .database import SessionLocal
from .models import OfferModel
from .repository import OfferStatsRepository

SECONDS_PER_DAY = 86400.0

_DATE_TRUNC_UNITS = {
    Granularity.DAILY: "day",
    Granularity.WEEKLY: "week",
    Granularity.MONTHLY: "month",
}

# SQLite date modifiers; "weekday 0" rolls forward to Sunday, so -6 days lands on the ISO Monday.
_SQLITE_BUCKETS = {
    Granularity.DAILY: ("date", ()),
    Granularity.WEEKLY: ("date", ("weekday 0", "-6 days")),
    Granularity.MONTHLY: ("strftime", ("%Y-%m-01",)),
}


def _const(value: str) -> ColumnElement:
    # Rendered inline so the SELECT and GROUP BY expressions stay identical.
    return literal(value, literal_execute=True)


def bucket_start_expression(granularity: Granularity, dialect: str) -> ColumnElement:
    created = OfferModel.created_at
    if dialect == "postgresql":
        return func.date_trunc(_const(_DATE_TRUNC_UNITS[granularity]), created)
    if dialect == "sqlite":
        fn_name, modifiers = _SQLITE_BUCKETS[granularity]
        if fn_name == "strftime":
            return func.strftime(*[_const(m) for m in modifiers], created)
        return func.date(created, *[_const(m) for m in modifiers])
    raise ValueError(f"Unsupported database dialect: {dialect}")


def seconds_between(start: Any, end: Any, dialect: str) -> ColumnElement:
    if dialect == "postgresql":
        return extract("epoch", end - start)
    return (func.julianday(end) - func.julianday(start)) * SECONDS_PER_DAY


def build_aggregate_statement(granularity: Granularity, dialect: str, limit: int):
    """Single GROUP BY query; every SQL fragment comes from the fixed tables above."""
    bucket = bucket_start_expression(granularity, dialect)
    succeeded = OfferModel.status.in_(SUCCESS_STATUSES)
    failed = OfferModel.status.in_(FAILED_STATUSES)
    fee_spread = (
        func.coalesce(OfferModel.maker_fees, 0)
        + func.coalesce(OfferModel.taker_fees, 0)
        - func.coalesce(OfferModel.taker_invoice_fees, 0)
    )

    return (
        select(
            bucket.label("bucket_start"),
            func.count().filter(failed).label("failed"),
            func.count().filter(succeeded).label("success"),
            func.coalesce(func.sum(fee_spread).filter(succeeded), 0).label("profit"),
            func.coalesce(func.sum(OfferModel.fiat_amount).filter(succeeded), 0).label("volume"),
            func.coalesce(func.sum(OfferModel.amount_sats).filter(succeeded), 0).label("volume_sats"),
            func.avg(
                seconds_between(OfferModel.created_at, OfferModel.reserved_at, dialect)
            ).filter(succeeded).label("avg_reserved_seconds"),
            func.avg(
                seconds_between(OfferModel.created_at, OfferModel.taker_paid_at, dialect)
            ).filter(succeeded).label("avg_total_seconds"),
        )
        .group_by(bucket)
        .order_by(bucket.desc())
        .limit(limit)
    )


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _as_int(value: Any) -> int:
    if value is None:
        return 0
    return int(Decimal(str(value)))


def _as_float(value: Any) -> float:
    if value is None:
        return 0.0
    return float(value)


def _as_seconds(value: Any) -> Optional[float]:
    if value is None:
        return None
    return round(float(value), 2)


def bucket_from_row(granularity: Granularity, row: Any) -> AggregateBucket:
    start = _as_date(row.bucket_start)
    return AggregateBucket(
        bucket_start=start,
        date=granularity.label_for(start),
        failed=_as_int(row.failed),
        success=_as_int(row.success),
        profit=_as_int(row.profit),
        volume=_as_float(row.volume),
        volume_sats=_as_int(row.volume_sats),
        avg_reserved_seconds=_as_seconds(row.avg_reserved_seconds),
        avg_total_seconds=_as_seconds(row.avg_total_seconds),
    )


class SQLOfferStatsRepository(OfferStatsRepository):
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    def aggregate(self, granularity: Granularity, limit: int) -> List[AggregateBucket]:
        with self._session_factory() as session:
            dialect = session.get_bind().dialect.name
            stmt = build_aggregate_statement(granularity, dialect, limit)
            rows = session.exec(stmt).all()
        # Newest-first from SQL so LIMIT keeps the latest buckets; callers get ascending order.
        return [bucket_from_row(granularity, row) for row in reversed(rows)]
