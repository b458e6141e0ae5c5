"""Async engine and session management.

The hosted backend hands out a plain Postgres connection string; it is
turned into an asyncpg-backed SQLAlchemy engine here. SQLite URLs are
accepted for local development.
"""

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from tenacity import retry, stop_after_attempt, wait_exponential

from ..config import DatabaseSettings, get_settings
from .models import Base

DEFAULT_POOL_SIZE = 5
DEFAULT_MAX_OVERFLOW = 10
DEFAULT_POOL_TIMEOUT = 30
DEFAULT_POOL_RECYCLE = 1800  # seconds

ASYNC_POSTGRES_SCHEME = "postgresql+asyncpg://"
SYNC_POSTGRES_SCHEMES = ("postgres://", "postgresql://")


def normalize_database_url(url: str) -> str:
    """Select the async driver for Postgres URLs without one.

    Examples:
        postgres://u:p@host/db    -> postgresql+asyncpg://u:p@host/db
        postgresql://u:p@host/db  -> postgresql+asyncpg://u:p@host/db
    """
    for scheme in SYNC_POSTGRES_SCHEMES:
        if url.startswith(scheme):
            return ASYNC_POSTGRES_SCHEME + url[len(scheme):]
    return url


def get_database_url() -> str:
    """Database URL from settings, falling back to ``DATABASE_URL``.

    Raises:
        ValueError: If no URL is configured.
    """
    url = get_settings().database.url or os.environ.get("DATABASE_URL", "")
    if not url:
        raise ValueError("Database connection string not found. Set DATABASE_URL")
    return normalize_database_url(url)


def create_engine(
    url: str | None = None,
    pool_size: int = DEFAULT_POOL_SIZE,
    max_overflow: int = DEFAULT_MAX_OVERFLOW,
    echo: bool = False,
    **kwargs: Any,
) -> AsyncEngine:
    """Create an async engine; pooled with pre-ping for Postgres."""
    url = normalize_database_url(url) if url else get_database_url()

    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo, **kwargs)

    return create_async_engine(
        url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=DEFAULT_POOL_TIMEOUT,
        pool_recycle=DEFAULT_POOL_RECYCLE,
        pool_pre_ping=True,
        echo=echo,
        **kwargs,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded rows usable after commit and never autoflush."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


class DatabaseConnection:
    """Lazily created engine plus session factory for one database."""

    def __init__(
        self,
        url: str | None = None,
        pool_size: int = DEFAULT_POOL_SIZE,
        max_overflow: int = DEFAULT_MAX_OVERFLOW,
        echo: bool = False,
    ):
        self._url = url
        self._pool_size = pool_size
        self._max_overflow = max_overflow
        self._echo = echo
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> "DatabaseConnection":
        return cls(
            url=settings.url or None,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            echo=settings.echo,
        )

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = create_engine(
                url=self._url,
                pool_size=self._pool_size,
                max_overflow=self._max_overflow,
                echo=self._echo,
            )
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            self._session_factory = create_session_factory(self.engine)
        return self._session_factory

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session that commits on success and rolls back on error.

        Usage:
            async with db.session() as session:
                ledger = CreditLedger(session)
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def connect(self) -> None:
        """Round-trip a trivial query, retrying transient failures."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    async def create_tables(self) -> None:
        """Create missing tables; production schemas are managed by Alembic."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)


_db: DatabaseConnection | None = None


def get_db() -> DatabaseConnection:
    """Process-wide connection built from settings on first use."""
    global _db
    if _db is None:
        _db = DatabaseConnection.from_settings(get_settings().database)
    return _db


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a request-scoped session.

    Usage in FastAPI:
        @router.get("/credits")
        async def get_balance(session: AsyncSession = Depends(get_session)):
            ...
    """
    async with get_db().session() as session:
        yield session
