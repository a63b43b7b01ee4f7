"""Async session management for SQLAlchemy."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from showroom.errors import PersistenceError

from .base import get_async_session_factory

logger = structlog.get_logger()


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get an async database session that commits once on exit.

    Usage:
        async with get_db_session() as session:
            result = await session.execute(...)

    Database failures roll back the whole unit of work and surface as
    `PersistenceError`.

    Yields:
        AsyncSession instance
    """
    session_factory = get_async_session_factory()
    session = session_factory()

    try:
        yield session
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error("database_error", error=str(e), error_type=type(e).__name__)
        raise PersistenceError(f"Database operation failed: {e}") from e
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
