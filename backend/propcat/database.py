"""Async engine, session factory and transaction helpers.

One AsyncSession per request (via get_session). Writes run inside
``transaction(session)`` which commits on success and rolls back on any
error; SQLAlchemy failures surface as StoreError so the API boundary never
leaks driver details.
"""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator

import structlog
from fastapi import Request
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from propcat.config import settings
from propcat.errors import ConflictError, StoreError
from propcat.models.db import Base

logger = structlog.get_logger()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(url: str | None = None, **kwargs) -> AsyncEngine:
    """Create the async engine. SQLite connections get FK enforcement (cascades rely on it)."""
    url = url or settings.database_url
    engine = create_async_engine(url, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: serializers read attributes after commit
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables directly from metadata (dev/test; production uses Alembic)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    """Return the app's session factory, creating engine + factory on first use."""
    state = request.app.state
    factory = getattr(state, "session_factory", None)
    if factory is None:
        state.engine = create_engine()
        factory = state.session_factory = build_session_factory(state.engine)
    return factory


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a request-scoped session."""
    factory = get_session_factory(request)
    async with factory() as session:
        yield session


@contextlib.asynccontextmanager
async def transaction(session: AsyncSession, operation: str = "write") -> AsyncIterator[AsyncSession]:
    """Commit everything done in the block, or nothing.

    Catalog errors raised inside the block propagate unchanged after rollback.
    Constraint violations (a slug taken, a row deleted underneath us) become
    ConflictError; any other SQLAlchemy error becomes StoreError.
    """
    try:
        yield session
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        logger.warning("store_conflict", operation=operation, error=str(exc.orig))
        raise ConflictError("The change conflicts with existing catalog data") from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("store_error", operation=operation, error=str(exc), exc_info=exc)
        raise StoreError() from exc
    except BaseException:
        await session.rollback()
        raise


@contextlib.asynccontextmanager
async def store_errors(operation: str) -> AsyncIterator[None]:
    """Translate SQLAlchemy failures in read paths into StoreError."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("store_error", operation=operation, error=str(exc), exc_info=exc)
        raise StoreError() from exc
