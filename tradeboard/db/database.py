"""
Async engine, session factory and declarative base.

PostgreSQL (asyncpg) in production, SQLite (aiosqlite) locally and in
tests. An in-memory SQLite URL gets a single shared connection so every
session sees the same tables.
"""

import logging
from typing import Any, AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from tradeboard.config import get_settings

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict[str, Any]:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}
    options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in url:
        options["poolclass"] = StaticPool
    return options


_settings = get_settings()
engine = create_async_engine(
    _settings.async_database_url,
    echo=_settings.debug,
    **_engine_options(_settings.async_database_url),
)

async_session_factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


class Base(DeclarativeBase):
    """Declarative base shared by every ORM model."""


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one session per request.
    Uncommitted work is rolled back if the handler raises.
    """
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create any missing tables. Called once at startup."""
    import tradeboard.models  # noqa: F401  (registers models on Base.metadata)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Database ready, tables: {sorted(Base.metadata.tables)}")
