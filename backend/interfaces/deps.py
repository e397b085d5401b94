"""Shared singletons for settings, repository, and services."""
from __future__ import annotations

import logging

from app.config import get_settings
from application.rate_monitor import RateMonitor
from application.rate_service import RateAggregator
from application.report_service import ReportService
from infrastructure.socketio_manager import push_rate_snapshot
from infrastructure.sql_repo import SQLOfferStatsRepository

logger = logging.getLogger(__name__)

settings = get_settings()

repository = SQLOfferStatsRepository()
report_service = ReportService(settings, repository)

rate_aggregator = RateAggregator.from_config(settings)
rate_monitor = RateMonitor(
    rate_aggregator,
    interval_seconds=settings.rate_refresh_seconds,
    on_update=push_rate_snapshot,
)

logger.debug(
    "Rate providers: %s", ", ".join(p.name for p in rate_aggregator.providers) or "none"
)

