"""Dashboard view model: KPI summary and the latest-request guard for offer rows."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from domain.offer import Granularity
from domain.rates import sats_to_fiat


def _num(value: Any) -> Optional[float]:
    """Explicit parse of a row field; None for absent or non-numeric values."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _mean(values: Iterable[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


@dataclass(frozen=True)
class DashboardSummary:
    buckets: int = 0
    total_volume: float = 0.0
    total_profit_sats: int = 0
    total_profit_fiat: float = 0.0
    avg_success: Optional[float] = None
    total_success: int = 0
    total_failed: int = 0
    avg_time_to_accept: Optional[float] = None
    avg_time_to_full_payment: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "buckets": self.buckets,
            "totalVolume": self.total_volume,
            "totalProfitSats": self.total_profit_sats,
            "totalProfitFiat": self.total_profit_fiat,
            "avgSuccess": self.avg_success,
            "totalSuccess": self.total_success,
            "totalFailed": self.total_failed,
            "avgTimeToAccept": self.avg_time_to_accept,
            "avgTimeToFullPayment": self.avg_time_to_full_payment,
        }


def summarize(rows: List[Mapping[str, Any]], rate: Optional[float] = None) -> DashboardSummary:
    """Fold bucket rows into the KPI cards; averages skip buckets that lack the value."""
    if not rows:
        return DashboardSummary()
    profit_sats = int(sum(_num(r.get("profit")) or 0.0 for r in rows))
    return DashboardSummary(
        buckets=len(rows),
        total_volume=sum(_num(r.get("volume")) or 0.0 for r in rows),
        total_profit_sats=profit_sats,
        total_profit_fiat=sats_to_fiat(profit_sats, rate),
        avg_success=_mean(_num(r.get("success_percentage")) for r in rows),
        total_success=int(sum(_num(r.get("success")) or 0.0 for r in rows)),
        total_failed=int(sum(_num(r.get("failed")) or 0.0 for r in rows)),
        avg_time_to_accept=_mean(_num(r.get("avg_reserved_seconds")) for r in rows),
        avg_time_to_full_payment=_mean(_num(r.get("avg_total_seconds")) for r in rows),
    )


def format_duration(seconds: Any) -> str:
    """m:ss, with 0:00 for missing values."""
    value = _num(seconds)
    if not value or value < 0:
        return "0:00"
    minutes, secs = divmod(int(value), 60)
    return f"{minutes}:{secs:02d}"


def format_pln(value: Any, decimals: int = 0) -> str:
    """pl-PL style amount: space-grouped thousands, comma decimals."""
    number = _num(value) or 0.0
    text = f"{number:,.{decimals}f}".replace(",", " ").replace(".", ",")
    return f"{text} zł"


@dataclass
class OffersView:
    """Holds the rows for the most recently requested granularity only.

    Requests are not cancelled, so responses can land out of order; each
    request gets a ticket and only the newest ticket may update the view.
    """

    granularity: Granularity = Granularity.DAILY
    rows: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None
    loading: bool = False
    _latest: int = 0

    def begin(self, group_by: Any) -> int:
        self.granularity = Granularity.parse(group_by)
        self._latest += 1
        self.loading = True
        self.error = None
        return self._latest

    def is_current(self, ticket: int) -> bool:
        return ticket == self._latest

    def apply(self, ticket: int, rows: List[Dict[str, Any]]) -> bool:
        if not self.is_current(ticket):
            return False
        self.rows = list(rows)
        self.loading = False
        return True

    def fail(self, ticket: int, message: str) -> bool:
        if not self.is_current(ticket):
            return False
        self.error = message
        self.loading = False
        return True

    def summary(self, rate: Optional[float] = None) -> DashboardSummary:
        return summarize(self.rows, rate)
