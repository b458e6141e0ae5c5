"""Pure transformations from raw vote tallies to presentation metrics.

No I/O and no state; safe to call from any request handler or test.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class VoteType(str, Enum):
    DISLIKE = "dislike"
    USE = "use"
    PAY = "pay"


class EngagementTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


VOTE_COLORS: dict[VoteType, str] = {
    VoteType.DISLIKE: "#9CA3AF",
    VoteType.USE: "#66D3FF",
    VoteType.PAY: "#A78BFA",
}

# Exact ties on the highest count go to the first entry.
DOMINANT_TIE_BREAK: tuple[VoteType, ...] = (VoteType.PAY, VoteType.USE, VoteType.DISLIKE)

# Lower bounds (inclusive) of the medium and high engagement tiers
MEDIUM_ENGAGEMENT_THRESHOLD = 10
HIGH_ENGAGEMENT_THRESHOLD = 20

# Popularity weights used for ranking
SCORE_WEIGHTS: dict[VoteType, int] = {
    VoteType.PAY: 3,
    VoteType.USE: 2,
    VoteType.DISLIKE: -1,
}


@dataclass(frozen=True)
class VoteTally:
    """Per-type vote counts for one idea. Counts are never negative."""

    dislike: int = 0
    use: int = 0
    pay: int = 0

    def __post_init__(self) -> None:
        for vote_type in VoteType:
            if self.count(vote_type) < 0:
                raise ValueError(f"{vote_type.value} count must be non-negative")

    @property
    def total(self) -> int:
        return self.dislike + self.use + self.pay

    def count(self, vote_type: VoteType) -> int:
        """Count for one vote type."""
        if vote_type is VoteType.DISLIKE:
            return self.dislike
        if vote_type is VoteType.USE:
            return self.use
        if vote_type is VoteType.PAY:
            return self.pay
        raise ValueError(f"Unknown vote type: {vote_type!r}")

    def to_dict(self) -> dict[str, int]:
        return {
            "dislike_count": self.dislike,
            "use_count": self.use,
            "pay_count": self.pay,
        }


@dataclass(frozen=True)
class VoteMetrics:
    total_votes: int
    sentiment: float
    dominant_type: VoteType | None
    dominant_color: str | None
    engagement: EngagementTier
    score: int
    percentages: dict[VoteType, float]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_votes": self.total_votes,
            "sentiment": self.sentiment,
            "dominant_type": self.dominant_type.value if self.dominant_type else None,
            "dominant_color": self.dominant_color,
            "engagement": self.engagement.value,
            "score": self.score,
            "percentages": {k.value: v for k, v in self.percentages.items()},
        }


def sentiment(tally: VoteTally) -> float:
    """Net sentiment in [-100, 100]; 0 when there are no votes."""
    total = tally.total
    if total == 0:
        return 0.0
    return ((tally.use + tally.pay - tally.dislike) / total) * 100


def dominant_type(tally: VoteTally) -> VoteType | None:
    """Vote type with the highest count, None when there are no votes."""
    if tally.total == 0:
        return None
    return max(
        DOMINANT_TIE_BREAK,
        key=lambda vote_type: (tally.count(vote_type), -DOMINANT_TIE_BREAK.index(vote_type)),
    )


def engagement_tier(total_interactions: int) -> EngagementTier:
    """Bucket votes plus comments into low / medium / high."""
    if total_interactions < MEDIUM_ENGAGEMENT_THRESHOLD:
        return EngagementTier.LOW
    if total_interactions < HIGH_ENGAGEMENT_THRESHOLD:
        return EngagementTier.MEDIUM
    return EngagementTier.HIGH


def popularity_score(tally: VoteTally) -> int:
    """Weighted score used to rank ideas.

    Args:
        tally: Vote counts for one idea.

    Returns:
        3 per pay vote plus 2 per use vote minus 1 per dislike. May be
        negative.
    """
    return sum(weight * tally.count(vote_type) for vote_type, weight in SCORE_WEIGHTS.items())


def vote_percentages(tally: VoteTally) -> dict[VoteType, float]:
    """Share of each vote type in the total.

    Args:
        tally: Vote counts for one idea.

    Returns:
        Percentages keyed by every vote type. All zero when there are no
        votes, otherwise they sum to 100.
    """
    total = tally.total
    if total == 0:
        return {vote_type: 0.0 for vote_type in VoteType}
    return {vote_type: tally.count(vote_type) / total * 100 for vote_type in VoteType}


def summarize(tally: VoteTally, comment_count: int = 0) -> VoteMetrics:
    """All derived metrics for one idea.

    Args:
        tally: Vote counts for the idea.
        comment_count: Comments on the idea, counted toward engagement only.

    Returns:
        The metrics shown next to the idea.
    """
    dominant = dominant_type(tally)
    return VoteMetrics(
        total_votes=tally.total,
        sentiment=sentiment(tally),
        dominant_type=dominant,
        dominant_color=VOTE_COLORS[dominant] if dominant else None,
        engagement=engagement_tier(tally.total + max(0, comment_count)),
        score=popularity_score(tally),
        percentages=vote_percentages(tally),
    )
