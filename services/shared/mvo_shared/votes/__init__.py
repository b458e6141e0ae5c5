"""Idea votes: tally metrics, the toggle service and feed ranking."""

from .aggregator import (
    VOTE_COLORS,
    EngagementTier,
    VoteMetrics,
    VoteTally,
    VoteType,
    dominant_type,
    engagement_tier,
    popularity_score,
    sentiment,
    summarize,
    vote_percentages,
)
from .ranking import (
    CreatorAnalytics,
    IdeaStats,
    creator_analytics,
    rank_explore,
    rank_newest,
    rank_trending,
)
from .toggle import ToggleResult, VoteService

__all__ = [
    "CreatorAnalytics",
    "EngagementTier",
    "IdeaStats",
    "ToggleResult",
    "VOTE_COLORS",
    "VoteMetrics",
    "VoteService",
    "VoteTally",
    "VoteType",
    "creator_analytics",
    "dominant_type",
    "engagement_tier",
    "popularity_score",
    "rank_explore",
    "rank_newest",
    "rank_trending",
    "sentiment",
    "summarize",
    "vote_percentages",
]
