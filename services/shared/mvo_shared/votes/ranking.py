"""Feed ordering and creator dashboard figures derived from vote tallies."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .aggregator import VoteTally, VoteType, popularity_score

DEFAULT_FEED_LIMIT = 20


@dataclass(frozen=True)
class IdeaStats:
    """Everything the feeds need to know about one idea."""

    idea_id: str
    tally: VoteTally = field(default_factory=VoteTally)
    comment_count: int = 0
    created_at: datetime | None = None

    @property
    def interactions(self) -> int:
        return self.tally.total + self.comment_count

    @property
    def score(self) -> int:
        return popularity_score(self.tally)


@dataclass(frozen=True)
class CreatorAnalytics:
    total_ideas: int
    total_votes: int
    total_comments: int
    average_score: float
    engagement_rate: float
    impact_score: float
    feasibility_score: float
    vote_breakdown: dict[VoteType, int]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_ideas": self.total_ideas,
            "total_votes": self.total_votes,
            "total_comments": self.total_comments,
            "average_score": self.average_score,
            "engagement_rate": self.engagement_rate,
            "impact_score": self.impact_score,
            "feasibility_score": self.feasibility_score,
            "vote_breakdown": {k.value: v for k, v in self.vote_breakdown.items()},
        }


def _page(ideas: list[IdeaStats], limit: int, offset: int = 0) -> list[IdeaStats]:
    if limit < 0 or offset < 0:
        raise ValueError("limit and offset must be non-negative")
    return ideas[offset : offset + limit]


def rank_trending(ideas: Iterable[IdeaStats], limit: int = DEFAULT_FEED_LIMIT) -> list[IdeaStats]:
    """Most interactions (votes plus comments) first."""
    ranked = sorted(ideas, key=lambda idea: idea.interactions, reverse=True)
    return _page(ranked, limit)


def rank_explore(
    ideas: Iterable[IdeaStats],
    limit: int = DEFAULT_FEED_LIMIT,
    offset: int = 0,
) -> list[IdeaStats]:
    """Highest popularity score first, paged."""
    ranked = sorted(ideas, key=lambda idea: idea.score, reverse=True)
    return _page(ranked, limit, offset)


def rank_newest(ideas: Iterable[IdeaStats], limit: int = DEFAULT_FEED_LIMIT) -> list[IdeaStats]:
    """Most recently created first; ideas without a timestamp go last."""
    ranked = sorted(
        ideas,
        key=lambda idea: (idea.created_at is not None, idea.created_at or datetime.min),
        reverse=True,
    )
    return _page(ranked, limit)


def creator_analytics(ideas: Iterable[IdeaStats]) -> CreatorAnalytics:
    """Aggregate dashboard figures over all of a creator's ideas.

    Rates are capped at 100. With no ideas every figure is zero.
    """
    ideas = list(ideas)
    breakdown = {vote_type: 0 for vote_type in VoteType}
    total_comments = 0
    total_score = 0
    for idea in ideas:
        for vote_type in VoteType:
            breakdown[vote_type] += idea.tally.count(vote_type)
        total_comments += idea.comment_count
        total_score += idea.score

    total_ideas = len(ideas)
    total_votes = sum(breakdown.values())
    if total_ideas == 0:
        return CreatorAnalytics(0, 0, 0, 0.0, 0.0, 0.0, 0.0, breakdown)

    interactions = total_votes + total_comments
    engagement_rate = min(100.0, interactions / total_ideas * 10)
    impact_score = min(
        100.0, (breakdown[VoteType.PAY] * 3 + total_comments) / total_ideas * 5
    )
    if total_votes > 0:
        net_use = breakdown[VoteType.USE] - breakdown[VoteType.DISLIKE]
        feasibility_score = min(100.0, net_use / (total_votes + 1) * 50 + 50)
    else:
        feasibility_score = 0.0

    return CreatorAnalytics(
        total_ideas=total_ideas,
        total_votes=total_votes,
        total_comments=total_comments,
        average_score=total_score / total_ideas,
        engagement_rate=engagement_rate,
        impact_score=impact_score,
        feasibility_score=feasibility_score,
        vote_breakdown=breakdown,
    )
