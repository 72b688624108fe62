"""
Database Layer - SQLAlchemy engine + session factory.

Persistence here is a tiny key-value table, so the engine is synchronous:
reads and writes are treated as fast and happen inline with each request.
"""
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from jetcharge import config

logger = logging.getLogger("jetcharge-db")


class Base(DeclarativeBase):
    pass


def make_engine(url: str) -> Engine:
    """Build an engine for ``url``; in-memory SQLite shares one connection."""
    url_obj = make_url(url)
    if url_obj.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True, echo=False)

    database = url_obj.database or ""
    if not database or database == ":memory:":
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, connect_args={"check_same_thread": False})


engine = make_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


def init_db(bind: Engine = None) -> None:
    """Create tables if missing. Safe to call on every startup."""
    from jetcharge.models import orm_models  # noqa: F401

    target = bind if bind is not None else engine
    Base.metadata.create_all(target)
    logger.info("Database tables initialized.")
