"""Request and response models for credit endpoints."""

from datetime import date

from pydantic import BaseModel, Field

from .base import BaseResponse


class CreditBalanceResponse(BaseResponse):
    """A caller's credit balance for today."""

    user_id: str = Field(description="Owner of the balance")
    plan: str = Field(description="Current plan tier")
    daily_allotment: int | None = Field(description="Credits per day, null when unlimited")
    used_today: int = Field(ge=0, description="Credits spent since the last reset")
    remaining: int | None = Field(description="Credits left today, null when unlimited")
    unlimited: bool = Field(description="Whether the plan has no daily cap")
    last_reset_date: date = Field(description="Calendar day the usage counter applies to")


class PlanResponse(BaseResponse):
    tier: str
    label: str
    daily_allotment: int | None
    unlimited: bool
    monthly_price_cents: int


class PlanCatalogResponse(BaseModel):
    plans: list[PlanResponse]


class FeatureCostsResponse(BaseModel):
    features: dict[str, int] = Field(description="Credit cost per premium feature")


class AffordabilityResponse(BaseModel):
    cost: int
    can_afford: bool
    balance: CreditBalanceResponse


class SpendRequest(BaseModel):
    """Charge credits for a premium feature."""

    feature: str = Field(min_length=1, max_length=50, description="Premium feature name")
    idempotency_key: str | None = Field(
        default=None,
        min_length=1,
        max_length=100,
        description="Client key that makes retries of the same spend free",
    )


class SpendResponse(BaseModel):
    granted: bool
    feature: str
    required: int
    remaining: int | None
    shortfall: int = 0
    balance: CreditBalanceResponse | None = None


class SetPlanRequest(BaseModel):
    plan: str = Field(min_length=1, max_length=20, description="Target plan tier")
