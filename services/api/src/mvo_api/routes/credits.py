"""Credit balance, catalog and spend routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from mvo_shared.credits import (
    FEATURE_COSTS,
    CreditBalance,
    CreditGuard,
    CreditLedger,
    Feature,
    get_plan_catalog,
)
from mvo_shared.errors import InsufficientCredits

from ..dependencies.auth import AuthenticatedUser, require_auth
from ..dependencies.credits import get_guard, get_ledger
from ..models.credits import (
    AffordabilityResponse,
    CreditBalanceResponse,
    FeatureCostsResponse,
    PlanCatalogResponse,
    PlanResponse,
    SpendRequest,
    SpendResponse,
)

router = APIRouter(prefix="/api/v1/credits", tags=["Credits"])


def balance_response(balance: CreditBalance) -> CreditBalanceResponse:
    return CreditBalanceResponse(**balance.to_dict())


@router.get("", response_model=CreditBalanceResponse, summary="Get Credit Balance")
async def get_balance(
    user: AuthenticatedUser = Depends(require_auth),
    ledger: CreditLedger = Depends(get_ledger),
) -> CreditBalanceResponse:
    """Get the caller's plan, usage and remaining credits for today."""
    return balance_response(await ledger.load(user.user_id))


@router.get("/plans", response_model=PlanCatalogResponse, summary="List Plans")
async def list_plans() -> PlanCatalogResponse:
    return PlanCatalogResponse(plans=[PlanResponse(**plan) for plan in get_plan_catalog()])


@router.get("/features", response_model=FeatureCostsResponse, summary="List Feature Costs")
async def list_feature_costs() -> FeatureCostsResponse:
    return FeatureCostsResponse(
        features={feature.value: cost for feature, cost in FEATURE_COSTS.items()}
    )


@router.get("/check", response_model=AffordabilityResponse, summary="Check Affordability")
async def check_affordability(
    cost: int = Query(..., ge=1, description="Credits the action would cost"),
    user: AuthenticatedUser = Depends(require_auth),
    ledger: CreditLedger = Depends(get_ledger),
) -> AffordabilityResponse:
    """Read-only check used before showing a spend confirmation."""
    balance = await ledger.load(user.user_id)
    return AffordabilityResponse(
        cost=cost,
        can_afford=balance.can_afford(cost),
        balance=balance_response(balance),
    )


@router.post("/spend", response_model=SpendResponse, summary="Spend Credits on a Feature")
async def spend_credits(
    body: SpendRequest,
    user: AuthenticatedUser = Depends(require_auth),
    guard: CreditGuard = Depends(get_guard),
) -> SpendResponse:
    """Charge the feature's cost to the caller.

    Responds 402 with the shortfall when the balance is too low. Retrying
    with the same idempotency key does not charge twice.
    """
    try:
        feature = Feature(body.feature)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown feature: {body.feature}",
        ) from None

    result = await guard.authorize_feature(
        user.user_id,
        feature,
        lambda: feature.value,
        idempotency_key=body.idempotency_key,
    )
    if not result.granted:
        raise InsufficientCredits(result.required, result.remaining or 0)

    return SpendResponse(
        granted=True,
        feature=feature.value,
        required=result.required,
        remaining=result.remaining,
        balance=balance_response(result.balance) if result.balance else None,
    )
