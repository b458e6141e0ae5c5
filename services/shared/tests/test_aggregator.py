"""Tests for vote tally metrics."""

import pytest

from mvo_shared.votes.aggregator import (
    VOTE_COLORS,
    EngagementTier,
    VoteTally,
    VoteType,
    dominant_type,
    engagement_tier,
    popularity_score,
    sentiment,
    summarize,
    vote_percentages,
)


class TestVoteTally:
    def test_total(self):
        assert VoteTally(dislike=2, use=3, pay=5).total == 10

    def test_rejects_negative_counts(self):
        with pytest.raises(ValueError):
            VoteTally(dislike=-1)

    def test_to_dict_uses_count_keys(self):
        assert VoteTally(1, 2, 3).to_dict() == {
            "dislike_count": 1,
            "use_count": 2,
            "pay_count": 3,
        }


class TestSentiment:
    def test_mixed_votes(self):
        assert sentiment(VoteTally(dislike=2, use=3, pay=5)) == pytest.approx(60.0)

    def test_no_votes_is_neutral(self):
        assert sentiment(VoteTally()) == 0.0

    def test_bounds(self):
        assert sentiment(VoteTally(dislike=7)) == -100.0
        assert sentiment(VoteTally(use=1, pay=4)) == 100.0


class TestDominantType:
    def test_highest_count_wins(self):
        assert dominant_type(VoteTally(dislike=2, use=3, pay=5)) is VoteType.PAY
        assert dominant_type(VoteTally(dislike=9, use=3, pay=5)) is VoteType.DISLIKE

    def test_no_votes(self):
        assert dominant_type(VoteTally()) is None

    @pytest.mark.parametrize(
        "tally,expected",
        [
            (VoteTally(dislike=4, use=4, pay=4), VoteType.PAY),
            (VoteTally(dislike=4, use=4, pay=1), VoteType.USE),
            (VoteTally(dislike=4, use=1, pay=4), VoteType.PAY),
        ],
    )
    def test_ties_prefer_pay_then_use(self, tally, expected):
        assert dominant_type(tally) is expected


class TestEngagementTier:
    @pytest.mark.parametrize(
        "interactions,expected",
        [
            (0, EngagementTier.LOW),
            (9, EngagementTier.LOW),
            (10, EngagementTier.MEDIUM),
            (19, EngagementTier.MEDIUM),
            (20, EngagementTier.HIGH),
            (500, EngagementTier.HIGH),
        ],
    )
    def test_boundaries(self, interactions, expected):
        assert engagement_tier(interactions) is expected


class TestScoring:
    def test_popularity_score_weights(self):
        assert popularity_score(VoteTally(dislike=2, use=3, pay=5)) == 19

    def test_percentages(self):
        percentages = vote_percentages(VoteTally(dislike=1, use=1, pay=2))
        assert percentages[VoteType.PAY] == 50.0
        assert sum(percentages.values()) == pytest.approx(100.0)

    def test_percentages_without_votes(self):
        assert set(vote_percentages(VoteTally()).values()) == {0.0}


class TestSummarize:
    def test_example_idea(self):
        metrics = summarize(VoteTally(dislike=2, use=3, pay=5))

        assert metrics.total_votes == 10
        assert metrics.sentiment == pytest.approx(60.0)
        assert metrics.dominant_type is VoteType.PAY
        assert metrics.dominant_color == VOTE_COLORS[VoteType.PAY]
        assert metrics.engagement is EngagementTier.MEDIUM

    def test_comments_count_towards_engagement(self):
        metrics = summarize(VoteTally(use=5), comment_count=15)
        assert metrics.engagement is EngagementTier.HIGH

    def test_empty_tally(self):
        data = summarize(VoteTally()).to_dict()
        assert data["dominant_type"] is None
        assert data["dominant_color"] is None
        assert data["engagement"] == "low"
