"""Engine and session factory for the thread store and product catalog.

PostgreSQL is used when `DATABASE_URL` is set, otherwise a local SQLite file.
Both are driven through SQLAlchemy's asyncio extension.
"""

from pathlib import Path
from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

_engine: Optional[AsyncEngine] = None
_async_session_factory: Optional[async_sessionmaker[AsyncSession]] = None

_ASYNC_DRIVER_PREFIXES = (
    ("postgres://", "postgresql+asyncpg://"),
    ("postgresql://", "postgresql+asyncpg://"),
)


class Base(DeclarativeBase):
    """Declarative base for threads and products."""


def get_database_url(db_path: Optional[Path] = None) -> str:
    """Resolve the async database URL.

    A configured PostgreSQL URL is rewritten to the asyncpg driver. Without
    one, `db_path` (or the configured SQLite path) is used and its directory
    created.
    """
    from showroom.config.settings import settings

    if settings.database_url:
        for prefix, replacement in _ASYNC_DRIVER_PREFIXES:
            if settings.database_url.startswith(prefix):
                return replacement + settings.database_url[len(prefix):]
        return settings.database_url

    sqlite_path = db_path or settings.database_path
    sqlite_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite+aiosqlite:///{sqlite_path}"


def get_engine(db_path: Optional[Path] = None) -> AsyncEngine:
    """Return the process-wide engine, creating it on first use.

    Connections are never pooled: catalog searches open their own sessions
    concurrently, and the test client runs on a different event loop than
    async tests.
    """
    global _engine

    if _engine is None:
        _engine = create_async_engine(get_database_url(db_path), echo=False, poolclass=NullPool)
    return _engine


def get_async_session_factory(
    engine: Optional[AsyncEngine] = None,
) -> async_sessionmaker[AsyncSession]:
    """Return the session factory bound to `engine` (default: the shared engine).

    Sessions keep loaded rows usable after commit, since threads are mapped to
    domain models once the unit of work has closed.
    """
    global _async_session_factory

    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(
            engine or get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_factory


async def init_db(db_path: Optional[Path] = None) -> None:
    """Create the threads and products tables if they are missing."""
    from showroom.db import models  # noqa: F401 - register models with Base

    async with get_engine(db_path).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def reset_engine() -> None:
    """Forget the shared engine and session factory (settings changed, or between tests)."""
    global _engine, _async_session_factory
    _engine = None
    _async_session_factory = None


LIKE_ESCAPE = "\\"


def contains_pattern(keyword: str) -> str:
    """ILIKE pattern matching `keyword` literally anywhere; pair with `escape=LIKE_ESCAPE`."""
    escaped = (
        keyword.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"
