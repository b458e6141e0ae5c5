"""Pytest configuration and fixtures for API tests."""

from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from mvo_api.dependencies.credits import get_ledger, get_vote_service
from mvo_api.main import register_exception_handlers
from mvo_api.middleware import CorrelationIdMiddleware
from mvo_api.routes import admin_credits, credits, health, votes
from mvo_shared.config import refresh_settings
from mvo_shared.credits import CreditBalance, CreditLedger, PlanTier
from mvo_shared.votes import VoteService

TODAY = date(2026, 3, 14)
USER_ID = "auth0|alice"
INTERNAL_KEY = "test-internal-key"


def make_balance(plan: str = "free", used_today: int = 0, user_id: str = USER_ID) -> CreditBalance:
    return CreditBalance(user_id, PlanTier(plan), used_today, TODAY)


@pytest.fixture
def balance():
    """Factory for balances dated today."""
    return make_balance


# ============================================================================
# Settings
# ============================================================================


@pytest.fixture(autouse=True)
def settings_env(monkeypatch):
    """Pin the auth settings used by the dependencies."""
    monkeypatch.setenv("AUTH_INTERNAL_API_KEY", INTERNAL_KEY)
    monkeypatch.setenv("AUTH_USER_ID_HEADER", "X-User-Id")
    refresh_settings()
    yield
    monkeypatch.undo()
    refresh_settings()


# ============================================================================
# Service Mocks
# ============================================================================


@pytest.fixture
def mock_ledger():
    """A ledger mock returning a fresh free-plan balance by default."""
    ledger = MagicMock(spec=CreditLedger)
    ledger.load = AsyncMock(return_value=make_balance())
    ledger.deduct = AsyncMock(return_value=make_balance(used_today=10))
    ledger.set_plan = AsyncMock(return_value=make_balance("builder"))
    return ledger


@pytest.fixture
def mock_vote_service():
    service = MagicMock(spec=VoteService)
    service.register_idea = AsyncMock()
    service.get_tally = AsyncMock()
    service.toggle = AsyncMock()
    service.get_user_votes = AsyncMock()
    return service


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
def app(mock_ledger, mock_vote_service) -> FastAPI:
    """Create a FastAPI test application with mocked dependencies.

    Skips the real lifespan so no database connection is attempted.
    """

    @asynccontextmanager
    async def mock_lifespan(app: FastAPI):
        app.state.db_initialized = False
        yield

    application = FastAPI(title="MVO Credits API", version="0.1.0", lifespan=mock_lifespan)
    application.add_middleware(CorrelationIdMiddleware)
    register_exception_handlers(application)

    application.include_router(health.router)
    application.include_router(credits.router)
    application.include_router(admin_credits.router)
    application.include_router(votes.router)

    application.dependency_overrides[get_ledger] = lambda: mock_ledger
    application.dependency_overrides[get_vote_service] = lambda: mock_vote_service
    return application


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create a synchronous test client."""
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"X-User-Id": USER_ID}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Internal-Api-Key": INTERNAL_KEY}
