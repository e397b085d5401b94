"""Pytest configuration and fixtures."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.config import AppConfig
from domain.offer import AggregateBucket, Granularity
from infrastructure.models import OfferModel
from infrastructure.repository import OfferStatsRepository


def make_offer(
    offer_id: str,
    status: str,
    created_at: datetime,
    reserved_after: float | None = None,
    paid_after: float | None = None,
    **fields: Any,
) -> OfferModel:
    """Offer row with reserved/paid timestamps given as seconds after creation."""
    return OfferModel(
        id=offer_id,
        status=status,
        created_at=created_at,
        reserved_at=created_at + timedelta(seconds=reserved_after) if reserved_after is not None else None,
        taker_paid_at=created_at + timedelta(seconds=paid_after) if paid_after is not None else None,
        **fields,
    )


class RecordingRepository(OfferStatsRepository):
    """Counts aggregate() calls; optionally raises or returns canned buckets."""

    def __init__(self, buckets: List[AggregateBucket] | None = None, error: Exception | None = None):
        self.calls: List[Granularity] = []
        self.buckets = buckets or []
        self.error = error

    def aggregate(self, granularity: Granularity, limit: int) -> List[AggregateBucket]:
        self.calls.append(granularity)
        if self.error is not None:
            raise self.error
        return list(self.buckets)


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig(raw={"reporting": {"max_buckets": 90}})


@pytest.fixture
def engine():
    """In-memory SQLite shared across threads (TestClient runs sync handlers in a pool)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return lambda: Session(engine)


@pytest.fixture
def add_offers(engine):
    def _add(offers: Iterable[OfferModel]) -> None:
        with Session(engine) as session:
            for offer in offers:
                session.add(offer)
            session.commit()

    return _add


@pytest.fixture
def provider_config() -> List[Dict[str, Any]]:
    return [
        {"name": "CoinGecko", "url": "https://coingecko.test/price", "path": ["bitcoin", "pln"]},
        {"name": "Yadio", "url": "https://yadio.test/exrates/pln", "path": ["BTC"]},
        {"name": "Blockchain.info", "url": "https://blockchain.test/ticker", "path": "PLN.last"},
    ]
