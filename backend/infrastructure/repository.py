"""Abstract repository interface for the reporting data source."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from domain.offer import AggregateBucket, Granularity


class OfferStatsRepository(ABC):
    """Read-only gateway over the offers fact table."""

    @abstractmethod
    def aggregate(self, granularity: Granularity, limit: int) -> List[AggregateBucket]:
        """Return the most recent `limit` non-empty buckets, ascending by start."""
        raise NotImplementedError
