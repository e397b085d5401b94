"""Reporting endpoint: offer statistics bucketed by day, ISO week, or month."""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from application.report_service import DataSourceFailure
from domain.offer import InvalidParameterError
from interfaces import deps

router = APIRouter(prefix="/api", tags=["report"])


class OffersDataRequest(BaseModel):
    # Left untyped so a bad value is answered by our own 400, not a 422.
    groupBy: Optional[Any] = None


@router.post("/offers-data")
def offers_data(payload: Optional[OffersDataRequest] = None) -> Dict[str, Any]:
    group_by = payload.groupBy if payload else None
    try:
        return deps.report_service.offers_data(group_by)
    except InvalidParameterError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except DataSourceFailure as exc:
        raise HTTPException(status_code=500, detail=DataSourceFailure.public_message) from exc
