"""Reporting service: time-bucketed offer statistics for the dashboard."""
from __future__ import annotations

import logging
from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError

from app.config import AppConfig
from domain.offer import AggregateBucket, Granularity
from infrastructure.repository import OfferStatsRepository

logger = logging.getLogger(__name__)


class DataSourceFailure(RuntimeError):
    """The offers table could not be queried; detail stays in the server log."""

    public_message = "Failed to load offers data"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)


class ReportService:
    def __init__(self, config: AppConfig, repository: OfferStatsRepository):
        self.config = config
        self.repository = repository

    def build_report(self, group_by: Any) -> List[AggregateBucket]:
        """Validate the granularity, then run exactly one aggregation query.

        Raises InvalidParameterError before touching the data source, and
        DataSourceFailure when the query itself fails.
        """
        granularity = Granularity.parse(group_by)
        try:
            buckets = self.repository.aggregate(granularity, self.config.max_buckets)
        except SQLAlchemyError as exc:
            logger.exception("Offers aggregation failed for groupBy=%s", granularity.value)
            raise DataSourceFailure() from exc
        logger.debug("Offers aggregation groupBy=%s returned %d buckets", granularity.value, len(buckets))
        return buckets

    def offers_data(self, group_by: Any) -> Dict[str, Any]:
        return {"rows": [bucket.to_dict() for bucket in self.build_report(group_by)]}
