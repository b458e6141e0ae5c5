"""Response models for idea vote endpoints."""

from pydantic import BaseModel, Field


class VoteTallyResponse(BaseModel):
    dislike_count: int = Field(ge=0)
    use_count: int = Field(ge=0)
    pay_count: int = Field(ge=0)


class VoteMetricsResponse(BaseModel):
    total_votes: int
    sentiment: float = Field(ge=-100, le=100, description="Net sentiment percentage")
    dominant_type: str | None
    dominant_color: str | None
    engagement: str = Field(description="low, medium or high")
    score: int = Field(description="Weighted popularity score")
    percentages: dict[str, float]


class UserVotesResponse(BaseModel):
    dislike: bool = False
    use: bool = False
    pay: bool = False


class IdeaVotesResponse(BaseModel):
    """Tally, derived metrics and (when identified) the caller's own votes."""

    idea_id: str
    tally: VoteTallyResponse
    metrics: VoteMetricsResponse
    user_votes: UserVotesResponse | None = None


class ToggleVoteResponse(BaseModel):
    idea_id: str
    vote_type: str
    active: bool = Field(description="Whether the vote is on after the toggle")
    tally: VoteTallyResponse
    metrics: VoteMetricsResponse


class MyVotesResponse(BaseModel):
    votes: dict[str, UserVotesResponse]
