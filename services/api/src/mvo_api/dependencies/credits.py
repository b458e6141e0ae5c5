"""Service dependencies built on the request's database session."""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mvo_shared.config import get_settings
from mvo_shared.credits import CreditGuard, CreditLedger
from mvo_shared.db.connection import get_session
from mvo_shared.votes import VoteService


async def get_ledger(session: AsyncSession = Depends(get_session)) -> CreditLedger:
    return CreditLedger.from_settings(session)


async def get_guard(ledger: CreditLedger = Depends(get_ledger)) -> CreditGuard:
    return CreditGuard(ledger)


async def get_vote_service(session: AsyncSession = Depends(get_session)) -> VoteService:
    return VoteService(
        session,
        timeout_seconds=get_settings().credits.storage_timeout_seconds,
    )
