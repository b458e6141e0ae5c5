"""Pydantic model modules for the API."""

from .base import BaseResponse, ErrorResponse
from .credits import (
    AffordabilityResponse,
    CreditBalanceResponse,
    FeatureCostsResponse,
    PlanCatalogResponse,
    PlanResponse,
    SetPlanRequest,
    SpendRequest,
    SpendResponse,
)
from .votes import (
    IdeaVotesResponse,
    MyVotesResponse,
    ToggleVoteResponse,
    UserVotesResponse,
    VoteMetricsResponse,
    VoteTallyResponse,
)

__all__ = [
    "AffordabilityResponse",
    "BaseResponse",
    "CreditBalanceResponse",
    "ErrorResponse",
    "FeatureCostsResponse",
    "IdeaVotesResponse",
    "MyVotesResponse",
    "PlanCatalogResponse",
    "PlanResponse",
    "SetPlanRequest",
    "SpendRequest",
    "SpendResponse",
    "ToggleVoteResponse",
    "UserVotesResponse",
    "VoteMetricsResponse",
    "VoteTallyResponse",
]
