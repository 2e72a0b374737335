"""
Database engine and session factory for the audit and user tables.

SQLite (aiosqlite) in development and tests, PostgreSQL (asyncpg) in
production. Both are built on first use so importing the package never
opens a connection.
"""

from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from eduaudit.config import settings

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    pass


_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _engine_kwargs(url: str) -> dict:
    kwargs: dict = {"echo": settings.debug, "pool_pre_ping": True}
    # Pool sizing only applies to server databases
    if not url.startswith("sqlite"):
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=settings.db_pool_recycle,
        )
    return kwargs


def get_engine() -> AsyncEngine:
    """Process-wide engine, created from DATABASE_URL on first call."""
    global _engine
    if _engine is None:
        url = settings.async_database_url
        _engine = create_async_engine(url, **_engine_kwargs(url))
        logger.info("database_engine_created", dialect=_engine.dialect.name)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to ``get_engine()``. Objects stay usable after commit."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def init_db() -> None:
    """Create the tables outside production; production runs the Alembic migration."""
    import eduaudit.db.models  # noqa: F401  (populates Base.metadata)

    engine = get_engine()
    if settings.is_production:
        logger.info("schema_managed_by_alembic")
        return

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("tables_created", environment=settings.environment)


async def close_db() -> None:
    """Dispose of the engine at shutdown."""
    global _engine, _session_factory
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("database_closed")
