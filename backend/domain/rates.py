"""Exchange rate samples and the sats -> fiat conversion."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Tuple

SATS_PER_BTC = 100_000_000


def parse_rate(value: Any) -> Optional[float]:
    """Explicit numeric parse; returns None for anything that is not a usable quote."""
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float, str)):
        return None
    try:
        rate = float(value.strip() if isinstance(value, str) else value)
    except (ValueError, OverflowError):
        return None
    if not math.isfinite(rate) or rate <= 0:
        return None
    return rate


@dataclass(frozen=True)
class RateSample:
    provider: str
    rate: Optional[float] = None
    error: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.rate is not None and math.isfinite(self.rate) and self.rate > 0


@dataclass(frozen=True)
class AggregatedRate:
    rate: float
    providers: Tuple[str, ...]
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def sources(self) -> int:
        return len(self.providers)


def sats_to_fiat(sats: Any, rate: Optional[float]) -> float:
    """(sats / 1e8) * rate; 0.0 whenever either side is missing."""
    if rate is None or not sats:
        return 0.0
    try:
        amount = float(sats)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if not math.isfinite(amount) or not math.isfinite(rate) or rate <= 0:
        return 0.0
    fiat = amount / SATS_PER_BTC * rate
    return fiat if math.isfinite(fiat) else 0.0
