"""SQLModel database configuration."""
from __future__ import annotations

import logging

from sqlalchemy.engine import Engine, make_url
from sqlmodel import SQLModel, create_engine, Session

from app.config import AppConfig, get_settings

logger = logging.getLogger(__name__)

# Dialects the aggregation query knows how to bucket.
SUPPORTED_DIALECTS = ("postgresql", "sqlite")


def build_engine(settings: AppConfig) -> Engine:
    url = make_url(settings.database_url)
    if url.get_backend_name() not in SUPPORTED_DIALECTS:
        raise ValueError(
            f"Unsupported database dialect: {url.get_backend_name()} "
            f"(expected one of: {', '.join(SUPPORTED_DIALECTS)})"
        )
    is_sqlite = url.get_backend_name() == "sqlite"
    return create_engine(
        url,
        echo=settings.database_echo,
        pool_pre_ping=not is_sqlite,
        connect_args={"check_same_thread": False} if is_sqlite else {},
    )


engine = build_engine(get_settings())


def init_db(bind: Engine | None = None) -> None:
    """Create the offers table when it is missing (local SQLite setups)."""
    from . import models  # noqa: F401  # ensure SQLModel metadata is loaded

    target = bind or engine
    SQLModel.metadata.create_all(target)
    logger.info("Database ready (%s)", target.url.render_as_string(hide_password=True))


def SessionLocal() -> Session:
    return Session(engine)
