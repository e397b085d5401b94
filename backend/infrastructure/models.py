"""SQLModel ORM tables for the reporting data source."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime
from sqlmodel import SQLModel, Field


class OfferModel(SQLModel, table=True):
    """Marketplace offer, owned by the trading coordinator; read-only here."""

    __tablename__ = "offers"

    id: str = Field(primary_key=True)
    status: str = Field(default="created", index=True)
    # Naive timestamps, as the coordinator writes them.
    created_at: datetime = Field(index=True, sa_type=DateTime)
    reserved_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    taker_paid_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    fiat_amount: Optional[float] = None
    amount_sats: Optional[int] = Field(default=None, sa_type=BigInteger)
    maker_fees: Optional[int] = Field(default=None, sa_type=BigInteger)
    taker_fees: Optional[int] = Field(default=None, sa_type=BigInteger)
    taker_invoice_fees: Optional[int] = Field(default=None, sa_type=BigInteger)
