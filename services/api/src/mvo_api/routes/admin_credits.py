"""Internal plan management routes.

Called by the billing webhook after a successful checkout or cancellation.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from mvo_shared.credits import CreditLedger
from mvo_shared.logging.config import get_logger

from ..dependencies.auth import require_internal_key
from ..dependencies.credits import get_ledger
from ..models.credits import CreditBalanceResponse, SetPlanRequest
from .credits import balance_response

logger = get_logger(__name__)
router = APIRouter(
    prefix="/api/v1/admin/credits",
    tags=["Admin - Credits"],
    dependencies=[Depends(require_internal_key)],
)


@router.put("/{user_id}/plan", response_model=CreditBalanceResponse, summary="Set User Plan")
async def set_user_plan(
    body: SetPlanRequest,
    user_id: str = Path(..., min_length=1, max_length=255),
    ledger: CreditLedger = Depends(get_ledger),
) -> CreditBalanceResponse:
    """Move a user to another plan and grant a fresh daily quota."""
    balance = await ledger.set_plan(user_id, body.plan)
    logger.info("Plan set via admin API", user_id=user_id, plan=balance.plan.value)
    return balance_response(balance)
