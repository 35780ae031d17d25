"""Async SQLAlchemy session factory."""
from collections.abc import AsyncGenerator
from functools import lru_cache
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from core.config import Settings, get_settings


def build_engine(settings: Settings) -> AsyncEngine:
    """
    Create the async engine for the configured database.

    PostgreSQL (asyncpg) gets a bounded pool and a per-statement deadline
    (`db_command_timeout`); a statement that exceeds it fails the request rather
    than being retried. SQLite (tests, local dev) gets foreign keys turned on so
    ON DELETE rules behave as they do in PostgreSQL, and explicit BEGIN so that
    SAVEPOINTs work under the driver's transaction handling.
    """
    kwargs: dict[str, Any] = {"echo": False}
    if settings.is_sqlite:
        if ":memory:" in settings.database_url:
            # One shared connection, otherwise each connection gets its own empty database
            kwargs["poolclass"] = StaticPool
        engine = create_async_engine(settings.database_url, **kwargs)

        @event.listens_for(engine.sync_engine, "connect")
        def _on_connect(dbapi_connection, connection_record) -> None:  # noqa: ANN001, ARG001
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def _on_begin(conn) -> None:  # noqa: ANN001
            conn.exec_driver_sql("BEGIN")

        return engine

    return create_async_engine(
        settings.database_url,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        connect_args={"command_timeout": settings.db_command_timeout},
        **kwargs,
    )


@lru_cache
def get_engine() -> AsyncEngine:
    """Process-wide engine, created on first use."""
    return build_engine(get_settings())


@lru_cache
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the session factory bound to the process-wide engine."""
    return async_sessionmaker(
        get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """
    Yield an async database session.

    Uses unit-of-work pattern: services use flush() for refreshing objects,
    commit happens once here at request end. This ensures atomic transactions
    per request - if anything fails, all changes are rolled back.
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
