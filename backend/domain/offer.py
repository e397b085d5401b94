"""Offer lifecycle vocabulary and the time-bucketed aggregate row."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional


class OfferStatus(str, Enum):
    CREATED = "created"
    RESERVED = "reserved"
    TAKER_PAID = "takerPaid"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


# Only these two classes enter the success-rate denominator.
SUCCESS_STATUSES = (OfferStatus.TAKER_PAID.value,)
FAILED_STATUSES = (OfferStatus.EXPIRED.value, OfferStatus.CANCELLED.value)


class InvalidParameterError(ValueError):
    """Raised when a caller asks for something outside a closed set."""


class Granularity(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def choices(cls) -> tuple[str, ...]:
        return tuple(member.value for member in cls)

    @classmethod
    def parse(cls, value: Any) -> "Granularity":
        """Exact-match lookup; anything else is rejected before any query runs."""
        if isinstance(value, str):
            for member in cls:
                if member.value == value:
                    return member
        raise InvalidParameterError(
            f"Invalid groupBy parameter. Must be one of: {', '.join(cls.choices())}"
        )

    def label_for(self, bucket_start: date) -> str:
        if self is Granularity.DAILY:
            return bucket_start.strftime("%Y-%m-%d")
        if self is Granularity.WEEKLY:
            iso_year, iso_week, _ = bucket_start.isocalendar()
            return f"{iso_year}-W{iso_week:02d}"
        return bucket_start.strftime("%Y-%m")


def success_percentage(failed: int, success: int) -> Optional[float]:
    """100 - failed share, or None when the bucket has no finished offers."""
    finished = failed + success
    if finished == 0:
        return None
    return round(100 - (failed / finished) * 100, 2)


@dataclass(frozen=True)
class AggregateBucket:
    """One reporting row; `bucket_start` drives ordering, `date` is the label."""

    bucket_start: date
    date: str
    failed: int = 0
    success: int = 0
    profit: int = 0
    volume: float = 0.0
    volume_sats: int = 0
    avg_reserved_seconds: Optional[float] = None
    avg_total_seconds: Optional[float] = None

    @property
    def success_percentage(self) -> Optional[float]:
        return success_percentage(self.failed, self.success)

    @property
    def success_count(self) -> int:
        return self.success

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "success_percentage": self.success_percentage,
            "failed": self.failed,
            "success": self.success,
            "profit": self.profit,
            "volume": self.volume,
            "volume_sats": self.volume_sats,
            "success_count": self.success_count,
            "avg_reserved_seconds": self.avg_reserved_seconds,
            "avg_total_seconds": self.avg_total_seconds,
        }
