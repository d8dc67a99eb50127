"""PostgreSQL access for the progress stores.

engine and async_session_factory exist only when DATABASE_URL is set;
otherwise both are None and progress_sync wires in-memory stores instead.
session_scope() gives each store call its own short transaction and maps
SQLAlchemy failures onto the service's error types.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from course_tracker.core.config import SETTINGS
from course_tracker.core.errors import ConcurrencyConflictError, TransientStoreError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base shared by db.tables and alembic/env.py."""


if SETTINGS.database_url:
    engine = create_async_engine(
        SETTINGS.database_url,
        echo=SETTINGS.is_dev,
        pool_size=SETTINGS.db_pool_size,
        max_overflow=10,
    )
    async_session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
else:
    engine = None
    async_session_factory = None


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Run one transaction; commit on success, roll back on exception.

    Driver failures surface as TransientStoreError and unique-key
    violations as ConcurrencyConflictError, so callers never see
    SQLAlchemy exceptions.
    """
    try:
        async with factory() as session, session.begin():
            yield session
    except IntegrityError as exc:
        raise ConcurrencyConflictError(
            f"conflicting write: {exc.orig.__class__.__name__}"
        ) from exc
    except SQLAlchemyError as exc:
        raise TransientStoreError(f"database error: {exc.__class__.__name__}") from exc


@asynccontextmanager
async def lifespan_db():
    """Startup/shutdown hook for the database engine."""
    if engine is None:
        logger.info("No DATABASE_URL configured: using in-memory stores")
        yield
        return

    logger.info("Database engine created: %s", engine.url)
    yield
    await engine.dispose()
    logger.info("Database engine disposed")
