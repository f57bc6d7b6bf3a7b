"""
Jotter Backend — Database Engine Construction
=============================================

What:  Async SQLAlchemy engine and session factory builders, plus the ORM base.
Why:   The engine is created from an explicit Settings object by whoever owns
       it (SqlEntryStore, Alembic, the backfill command); nothing here runs
       at import time.

Connection Pooling:
    pool_size / max_overflow come from settings for server databases.
    SQLite (used in tests) ignores them and gets SQLAlchemy's defaults.
    pool_recycle=3600 retires connections before server-side idle timeouts.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import Settings


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (shared metadata for Alembic)."""
    pass


def build_engine(settings: Settings) -> AsyncEngine:
    """
    Create the async engine for `settings.database_url`.

    Raises:
        ValueError: database_url is not configured
    """
    if not settings.database_url:
        raise ValueError("database_url is not configured")

    kwargs = {
        "pool_pre_ping": settings.db_pool_pre_ping,
        # SQL echo is noisy; only useful while debugging
        "echo": settings.log_level == "DEBUG",
    }
    if not settings.database_url.startswith("sqlite"):
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=3600,
        )
    return create_async_engine(settings.database_url, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: rows are converted to records after the commit
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
