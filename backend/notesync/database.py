"""
NoteSync Backend — Database Engine & Session Factory
======================================================

What:  Async SQLAlchemy engine, session factory and declarative base for the
       record service.
Why:   Centralizes all database connection logic in one place.
How:   Creates an async engine with connection pooling. The SQL record gateway
       receives the session factory and opens one session per call.
Who:   Used by the app factory (wiring), the health route and Alembic.
When:  Engine is created at module import; sessions are created per gateway call.

Connection Pooling Strategy:
    pool_size / max_overflow / pool_pre_ping come from settings. SQLite
    engines (local runs, tests) use SQLAlchemy's default pool and ignore them.
"""

from typing import Any, Dict

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from notesync.config import settings


def _engine_options() -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    if not settings.is_sqlite:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return options


# ── Engine Configuration ──────────────────────────────────────────────────
engine: AsyncEngine = create_async_engine(settings.database_url, **_engine_options())

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: rows are converted to domain notes after commit
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (shared metadata for Alembic)."""
    pass


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def create_schema() -> None:
    """
    Create missing tables directly from the ORM metadata.

    Only used for SQLite databases during local runs; PostgreSQL deployments
    are migrated with Alembic.
    """
    from notesync.models.note import NoteRecord  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Close all pooled connections. Called during application shutdown."""
    await engine.dispose()
