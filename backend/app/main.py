"""FastAPI entry point for the Offers Analytics Dashboard API."""
import logging

import socketio
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from interfaces import report_router, rate_router
from interfaces import deps
from infrastructure.database import init_db
from infrastructure.socketio_manager import sio, set_rate_monitor

logging.basicConfig(
    level=deps.settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Socket.IO subscribers get the monitor's snapshot on join
set_rate_monitor(deps.rate_monitor)

app = FastAPI(title="Offers Analytics Dashboard")

app.include_router(report_router)
app.include_router(rate_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=deps.settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount Socket.IO next to FastAPI as one ASGI application
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)


# Every error leaves the API as {"error": "..."}
@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.debug("Rejected request body on %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


@app.exception_handler(Exception)
async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/health", tags=["health"])
def health_check() -> dict:
    """Expose a minimal health endpoint to help dev tooling."""
    return {"status": "ok", "configVersion": deps.settings.version}


# Background tasks ----------------------------------------------
@app.on_event("startup")
async def _start_background_tasks() -> None:  # pragma: no cover - runtime wiring
    init_db()
    await deps.rate_monitor.start()
    logger.info("Background tasks started: BTC rate monitor")


@app.on_event("shutdown")
async def _stop_background_tasks() -> None:  # pragma: no cover - runtime wiring
    await deps.rate_monitor.stop()
    logger.info("Background tasks stopped")
