"""Periodic BTC rate refresh with an explicit start/stop handle.

The monitor owns the last known good rate for one consuming view (the API
process or a CLI session). A failed refresh keeps the previous rate and only
sets the error. A success that finishes after a newer success was applied is
dropped; a late success behind a newer failure still restores the rate.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from domain.rates import AggregatedRate, sats_to_fiat
from .rate_service import AllProvidersFailure, RateAggregator

logger = logging.getLogger(__name__)

UpdateCallback = Callable[["RateSnapshot"], Awaitable[None]]


@dataclass(frozen=True)
class RateSnapshot:
    rate: Optional[AggregatedRate] = None
    error: Optional[str] = None
    loading: bool = False
    updated_at: Optional[datetime] = None
    currency: str = "PLN"

    @property
    def value(self) -> Optional[float]:
        return self.rate.rate if self.rate else None

    def to_fiat(self, sats: Any) -> float:
        return sats_to_fiat(sats, self.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rate": self.value,
            "sources": self.rate.sources if self.rate else 0,
            "providers": list(self.rate.providers) if self.rate else [],
            "fetchedAt": self.rate.fetched_at.isoformat() if self.rate else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
            "error": self.error,
            "loading": self.loading,
            "currency": self.currency,
        }


class RateMonitor:
    def __init__(
        self,
        aggregator: RateAggregator,
        interval_seconds: float = 300.0,
        on_update: Optional[UpdateCallback] = None,
    ):
        self.aggregator = aggregator
        self.interval_seconds = interval_seconds
        self.on_update = on_update
        self._snapshot = RateSnapshot(currency=aggregator.currency)
        self._task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._issued = 0
        self._applied = 0
        self._applied_success = 0

    @property
    def snapshot(self) -> RateSnapshot:
        return self._snapshot

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh(self) -> RateSnapshot:
        """Run one refresh cycle; provider failures never escape."""
        self._issued += 1
        seq = self._issued
        self._snapshot = replace(self._snapshot, loading=True)
        try:
            aggregated = await self.aggregator.fetch_rate()
        except AllProvidersFailure as exc:
            logger.error("Error fetching BTC/%s rate: %s", self.aggregator.currency, exc)
            return await self._apply(seq, rate=None, error=str(exc))
        return await self._apply(seq, rate=aggregated, error=None)

    async def _apply(self, seq: int, rate: Optional[AggregatedRate], error: Optional[str]) -> RateSnapshot:
        # A success is stale only behind a newer success; a failure is stale behind anything newer.
        newest = self._applied_success if error is None else self._applied
        if seq < newest:
            logger.debug("Dropping stale rate refresh #%d (latest applied #%d)", seq, newest)
            return self._snapshot
        if error is None:
            self._applied_success = seq
            kept = rate
            # An older success arriving after a newer failure fills the rate but keeps that error.
            error = self._snapshot.error if seq < self._applied else None
        else:
            kept = self._snapshot.rate
        self._applied = max(self._applied, seq)
        self._snapshot = RateSnapshot(
            rate=kept,
            error=error,
            loading=self._applied < self._issued,
            updated_at=datetime.now(timezone.utc),
            currency=self.aggregator.currency,
        )
        if self.on_update is not None:
            try:
                await self.on_update(self._snapshot)
            except Exception as exc:  # pragma: no cover - push channel is best effort
                logger.warning("Rate update callback failed: %s", exc)
        return self._snapshot

    def _spawn_refresh(self) -> asyncio.Task:
        task = asyncio.create_task(self.refresh())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _loop(self) -> None:
        while True:
            self._spawn_refresh()
            await asyncio.sleep(self.interval_seconds)

    async def start(self) -> None:
        """Refresh now, then every interval, until stop()."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("Rate monitor started (every %ss)", self.interval_seconds)

    async def stop(self) -> None:
        """Cancel the timer and any refresh still in flight."""
        task, self._task = self._task, None
        pending = [t for t in (task, *self._inflight) if t is not None]
        for t in pending:
            t.cancel()
        for t in pending:
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await t
        self._inflight.clear()
        if task is not None:
            logger.info("Rate monitor stopped")
