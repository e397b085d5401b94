"""Tests for the periodic rate refresh and its retained-rate behaviour."""
from __future__ import annotations

import asyncio
from typing import List, Optional

import pytest

from application.rate_monitor import RateMonitor, RateSnapshot
from application.rate_service import AllProvidersFailure, RateAggregator
from domain.rates import AggregatedRate


class ScriptedAggregator(RateAggregator):
    """Returns queued results; an Exception entry is raised, an Event entry blocks first."""

    def __init__(self, results: List[object]):
        super().__init__(providers=[], currency="PLN")
        self.results = list(results)
        self.calls = 0

    async def fetch_rate(self) -> AggregatedRate:
        self.calls += 1
        item = self.results.pop(0) if self.results else AllProvidersFailure()
        if isinstance(item, tuple):
            gate, item = item
            await gate.wait()
        if isinstance(item, Exception):
            raise item
        return AggregatedRate(rate=float(item), providers=("test",))


class TestRefresh:
    async def test_success_replaces_snapshot(self) -> None:
        monitor = RateMonitor(ScriptedAggregator([120500]))

        snapshot = await monitor.refresh()

        assert snapshot is monitor.snapshot
        assert snapshot.value == 120500.0
        assert snapshot.error is None
        assert snapshot.loading is False
        assert snapshot.updated_at.tzinfo is not None
        assert snapshot.rate.fetched_at.tzinfo is not None

    async def test_failure_keeps_last_good_rate(self) -> None:
        monitor = RateMonitor(ScriptedAggregator([120500, AllProvidersFailure()]))
        await monitor.refresh()

        snapshot = await monitor.refresh()

        assert snapshot.value == 120500.0
        assert snapshot.error == "Failed to fetch BTC/PLN rate from all sources"
        assert snapshot.to_fiat(100_000_000) == 120500.0

    async def test_failure_without_history(self) -> None:
        monitor = RateMonitor(ScriptedAggregator([AllProvidersFailure()]))

        snapshot = await monitor.refresh()

        assert snapshot.value is None
        assert snapshot.error
        assert snapshot.to_fiat(100_000_000) == 0.0
        assert snapshot.to_dict()["rate"] is None

    async def test_recovery_clears_error(self) -> None:
        monitor = RateMonitor(ScriptedAggregator([AllProvidersFailure(), 119000]))
        await monitor.refresh()

        snapshot = await monitor.refresh()

        assert snapshot.value == 119000.0
        assert snapshot.error is None

    async def test_late_refresh_does_not_overwrite_newer_one(self) -> None:
        gate = asyncio.Event()
        monitor = RateMonitor(ScriptedAggregator([(gate, 100000), 120000]))

        slow = asyncio.create_task(monitor.refresh())
        await asyncio.sleep(0)
        assert monitor.snapshot.loading is True
        await monitor.refresh()
        gate.set()
        await slow

        assert monitor.snapshot.value == 120000.0
        assert monitor.snapshot.loading is False

    async def test_late_success_after_newer_failure_restores_rate(self) -> None:
        gate = asyncio.Event()
        monitor = RateMonitor(ScriptedAggregator([(gate, 120000), AllProvidersFailure()]))

        slow = asyncio.create_task(monitor.refresh())
        await asyncio.sleep(0)
        failed = await monitor.refresh()
        assert failed.value is None
        gate.set()
        await slow

        assert monitor.snapshot.value == 120000.0
        assert monitor.snapshot.error == "Failed to fetch BTC/PLN rate from all sources"
        assert monitor.snapshot.loading is False

    async def test_late_failure_after_newer_success_is_dropped(self) -> None:
        gate = asyncio.Event()
        monitor = RateMonitor(ScriptedAggregator([(gate, AllProvidersFailure()), 121000]))

        slow = asyncio.create_task(monitor.refresh())
        await asyncio.sleep(0)
        await monitor.refresh()
        gate.set()
        await slow

        assert monitor.snapshot.value == 121000.0
        assert monitor.snapshot.error is None

    async def test_on_update_receives_snapshot(self) -> None:
        pushed: List[RateSnapshot] = []

        async def on_update(snapshot: RateSnapshot) -> None:
            pushed.append(snapshot)

        monitor = RateMonitor(ScriptedAggregator([120000, AllProvidersFailure()]), on_update=on_update)
        await monitor.refresh()
        await monitor.refresh()

        assert [s.value for s in pushed] == [120000.0, 120000.0]
        assert pushed[-1].error is not None

    def test_snapshot_dict(self) -> None:
        snapshot = RateSnapshot(rate=AggregatedRate(rate=1.5, providers=("a", "b")), currency="PLN")

        data = snapshot.to_dict()

        assert data["rate"] == 1.5
        assert data["sources"] == 2
        assert data["providers"] == ["a", "b"]
        assert data["currency"] == "PLN"
        assert data["error"] is None


class TestLifecycle:
    async def test_start_refreshes_immediately_and_stop_cancels(self) -> None:
        applied = asyncio.Event()

        async def on_update(snapshot: RateSnapshot) -> None:
            applied.set()

        aggregator = ScriptedAggregator([120000])
        monitor = RateMonitor(aggregator, interval_seconds=3600, on_update=on_update)

        await monitor.start()
        assert monitor.is_running
        await asyncio.wait_for(applied.wait(), timeout=1)
        await monitor.stop()

        assert not monitor.is_running
        assert aggregator.calls == 1
        assert monitor.snapshot.value == 120000.0

    async def test_ticks_repeat_on_interval(self) -> None:
        aggregator = ScriptedAggregator([1, 2, 3, 4, 5, 6, 7, 8, 9, 10])
        monitor = RateMonitor(aggregator, interval_seconds=0.01)

        await monitor.start()
        await asyncio.sleep(0.1)
        await monitor.stop()

        assert aggregator.calls >= 2

    async def test_stop_cancels_in_flight_refresh(self) -> None:
        gate = asyncio.Event()
        aggregator = ScriptedAggregator([(gate, 120000)])
        monitor = RateMonitor(aggregator, interval_seconds=3600)

        await monitor.start()
        await asyncio.sleep(0.01)
        await monitor.stop()
        gate.set()
        await asyncio.sleep(0)

        assert monitor.snapshot.value is None

    async def test_start_twice_keeps_one_timer(self) -> None:
        monitor = RateMonitor(ScriptedAggregator([]), interval_seconds=3600)

        await monitor.start()
        first = monitor._task
        await monitor.start()

        assert monitor._task is first
        await monitor.stop()

    async def test_stop_without_start(self) -> None:
        monitor = RateMonitor(ScriptedAggregator([]))

        await monitor.stop()

        assert not monitor.is_running
