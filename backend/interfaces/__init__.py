from .report_router import router as report_router
from .rate_router import router as rate_router

__all__ = [
    "report_router",
    "rate_router",
]
