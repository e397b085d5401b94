"""BTC rate endpoint: the server-side monitor's current snapshot."""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter

from interfaces import deps

router = APIRouter(prefix="/api", tags=["rates"])


@router.get("/btc-rate")
async def btc_rate() -> Dict[str, Any]:
    """Stale-but-present: a failed refresh keeps the last rate and reports the error."""
    return deps.rate_monitor.snapshot.to_dict()
