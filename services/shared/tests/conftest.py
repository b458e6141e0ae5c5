"""Pytest configuration and fixtures for shared package tests.

Ledger and vote service tests run against an in-memory SQLite database
through aiosqlite; every test gets a fresh schema. Concurrency tests use a
file-backed database so each session gets its own connection.
"""

from collections.abc import AsyncGenerator
from datetime import date, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from mvo_shared.credits import CreditGuard, CreditLedger
from mvo_shared.db.connection import create_session_factory
from mvo_shared.db.models import Base
from mvo_shared.votes import VoteService

TEST_DATABASE_URL = "sqlite+aiosqlite://"
START_DATE = date(2026, 3, 14)


class FakeClock:
    """Controllable calendar for day-boundary tests."""

    def __init__(self, today: date = START_DATE):
        self.today = today

    def __call__(self) -> date:
        return self.today

    def advance(self, days: int = 1) -> None:
        self.today += timedelta(days=days)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    async with create_session_factory(engine)() as session:
        yield session


@pytest.fixture
async def file_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed database that several sessions can write concurrently."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'mvo.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def file_session_factory(file_engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(file_engine)


@pytest.fixture
def count_rows(session):
    """Count the rows of a model's table."""

    async def _count(model) -> int:
        result = await session.execute(select(func.count()).select_from(model))
        return result.scalar_one()

    return _count


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ledger(session, clock) -> CreditLedger:
    return CreditLedger(session, clock=clock, timeout_seconds=2.0)


@pytest.fixture
def guard(ledger) -> CreditGuard:
    return CreditGuard(ledger)


@pytest.fixture
def vote_service(session) -> VoteService:
    return VoteService(session, timeout_seconds=2.0)
