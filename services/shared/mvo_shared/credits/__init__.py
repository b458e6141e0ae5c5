"""Credit ledger, plan entitlements and the credit guard."""

from .guard import AuthorizationResult, CreditGuard
from .ledger import CreditBalance, CreditLedger, refresh_if_stale, today_in
from .plans import (
    DEFAULT_PLAN,
    FEATURE_COSTS,
    PLAN_DEFINITIONS,
    Feature,
    PlanDefinition,
    PlanTier,
    daily_allotment,
    feature_cost,
    get_plan_catalog,
    get_plan_definition,
    is_unlimited,
    parse_plan,
)

__all__ = [
    "AuthorizationResult",
    "CreditBalance",
    "CreditGuard",
    "CreditLedger",
    "DEFAULT_PLAN",
    "FEATURE_COSTS",
    "Feature",
    "PLAN_DEFINITIONS",
    "PlanDefinition",
    "PlanTier",
    "daily_allotment",
    "feature_cost",
    "get_plan_catalog",
    "get_plan_definition",
    "is_unlimited",
    "parse_plan",
    "refresh_if_stale",
    "today_in",
]
