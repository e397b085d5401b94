"""Socket.IO manager: pushes BTC rate refreshes to dashboard clients.

Flow:
    RateMonitor.refresh() -> push_rate_snapshot() -> "rates" room
"""
from __future__ import annotations

import logging
from typing import Optional, TYPE_CHECKING

import socketio

from app.config import get_settings

if TYPE_CHECKING:
    from application.rate_monitor import RateMonitor, RateSnapshot

logger = logging.getLogger(__name__)

RATES_ROOM = "rates"

sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=get_settings().cors_origins,
    logger=False,
    engineio_logger=False,
)

_rate_monitor: Optional["RateMonitor"] = None


def set_rate_monitor(monitor: "RateMonitor") -> None:
    """Snapshot source for clients that subscribe between refreshes."""
    global _rate_monitor
    _rate_monitor = monitor


# ========== Socket.IO events ==========

@sio.event
async def connect(sid: str, environ: dict) -> None:
    logger.debug("Socket.IO client connected: %s", sid)


@sio.event
async def disconnect(sid: str) -> None:
    logger.debug("Socket.IO client disconnected: %s", sid)


@sio.event
async def subscribe_rates(sid: str, data: dict = None) -> None:
    """Join the rates room and get the current snapshot right away."""
    await sio.enter_room(sid, RATES_ROOM)
    if _rate_monitor is not None:
        await sio.emit("btc_rate", _rate_monitor.snapshot.to_dict(), to=sid)


@sio.event
async def unsubscribe_rates(sid: str, data: dict = None) -> None:
    await sio.leave_room(sid, RATES_ROOM)


# ========== Push (called by RateMonitor) ==========

async def push_rate_snapshot(snapshot: "RateSnapshot") -> None:
    await sio.emit("btc_rate", snapshot.to_dict(), room=RATES_ROOM)
