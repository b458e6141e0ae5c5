"""Plan tiers, daily allotments and feature costs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..errors import InvalidPlan


class PlanTier(str, Enum):
    FREE = "free"
    STARTER = "starter"
    BUILDER = "builder"
    OPERATOR = "operator"


DEFAULT_PLAN = PlanTier.FREE

# Names used by older checkout flows and stored rows.
PLAN_ALIASES: dict[str, PlanTier] = {
    "pro": PlanTier.STARTER,
    "premium": PlanTier.BUILDER,
    "innovator": PlanTier.OPERATOR,
}


@dataclass(frozen=True)
class PlanDefinition:
    """Static entitlements for one plan tier.

    ``daily_allotment`` is None for the unlimited tier.
    """

    tier: PlanTier
    label: str
    daily_allotment: int | None
    monthly_price_cents: int

    @property
    def is_unlimited(self) -> bool:
        return self.daily_allotment is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "tier": self.tier.value,
            "label": self.label,
            "daily_allotment": self.daily_allotment,
            "unlimited": self.is_unlimited,
            "monthly_price_cents": self.monthly_price_cents,
        }


PLAN_DEFINITIONS: dict[PlanTier, PlanDefinition] = {
    PlanTier.FREE: PlanDefinition(PlanTier.FREE, "Free", 10, 0),
    PlanTier.STARTER: PlanDefinition(PlanTier.STARTER, "Starter", 100, 500),
    PlanTier.BUILDER: PlanDefinition(PlanTier.BUILDER, "Builder", 250, 2000),
    PlanTier.OPERATOR: PlanDefinition(PlanTier.OPERATOR, "Operator", None, 10000),
}


class Feature(str, Enum):
    PERSONA_PANEL = "persona_panel"
    DEEP_RESEARCH = "deep_research"
    FULL_SYNTHESIS = "full_synthesis"
    RE_RUN = "re_run"
    RISK_HIGHLIGHTER = "risk_highlighter"


FEATURE_COSTS: dict[Feature, int] = {
    Feature.PERSONA_PANEL: 10,
    Feature.DEEP_RESEARCH: 30,
    Feature.FULL_SYNTHESIS: 40,
    Feature.RE_RUN: 10,
    Feature.RISK_HIGHLIGHTER: 10,
}


def parse_plan(value: PlanTier | str) -> PlanTier:
    """Resolve a plan value, accepting legacy aliases.

    Args:
        value: A tier, a tier name in any case, or a legacy alias.

    Returns:
        The matching tier.

    Raises:
        InvalidPlan: If the value is not a known tier or alias.
    """
    if isinstance(value, PlanTier):
        return value
    if not isinstance(value, str):
        raise InvalidPlan(value)
    key = value.strip().lower()
    if key in PLAN_ALIASES:
        return PLAN_ALIASES[key]
    try:
        return PlanTier(key)
    except ValueError:
        raise InvalidPlan(value) from None


def get_plan_definition(plan: PlanTier | str) -> PlanDefinition:
    """Look up the static entitlements of a plan.

    Args:
        plan: A tier or any name accepted by parse_plan.

    Returns:
        The plan definition.

    Raises:
        InvalidPlan: If the plan is not a known tier or alias.
    """
    return PLAN_DEFINITIONS[parse_plan(plan)]


def daily_allotment(plan: PlanTier | str) -> int | None:
    """Daily credit allotment for a plan, None when unlimited."""
    return get_plan_definition(plan).daily_allotment


def is_unlimited(plan: PlanTier | str) -> bool:
    """Whether the plan has no daily cap."""
    return get_plan_definition(plan).is_unlimited


def feature_cost(feature: Feature | str) -> int:
    """Credit cost of a premium feature.

    Raises:
        ValueError: If the feature is unknown.
    """
    return FEATURE_COSTS[Feature(feature)]


def get_plan_catalog() -> list[dict[str, Any]]:
    """Serialized plan definitions in tier order, cheapest first.

    Returns:
        One dict per tier, as produced by PlanDefinition.to_dict.
    """
    return [PLAN_DEFINITIONS[tier].to_dict() for tier in PlanTier]
