"""Idea vote routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query, status

from mvo_shared.votes import VoteService, VoteTally, VoteType, summarize

from ..dependencies.auth import AuthenticatedUser, optional_auth, require_auth
from ..dependencies.credits import get_vote_service
from ..models.votes import (
    IdeaVotesResponse,
    MyVotesResponse,
    ToggleVoteResponse,
    UserVotesResponse,
    VoteMetricsResponse,
    VoteTallyResponse,
)

router = APIRouter(prefix="/api/v1/ideas", tags=["Votes"])

MAX_IDEAS_PER_LOOKUP = 100


def _tally_response(tally: VoteTally) -> VoteTallyResponse:
    return VoteTallyResponse(**tally.to_dict())


def _metrics_response(tally: VoteTally) -> VoteMetricsResponse:
    return VoteMetricsResponse(**summarize(tally).to_dict())


def _user_votes_response(votes: dict[VoteType, bool]) -> UserVotesResponse:
    return UserVotesResponse(**{vote_type.value: on for vote_type, on in votes.items()})


@router.get("/votes/mine", response_model=MyVotesResponse, summary="Get My Votes")
async def get_my_votes(
    idea_ids: list[str] = Query(default=[], description="Ideas to look up"),
    user: AuthenticatedUser = Depends(require_auth),
    votes: VoteService = Depends(get_vote_service),
) -> MyVotesResponse:
    """Which vote types the caller has on for each requested idea."""
    ids = [idea_id for idea_id in idea_ids if idea_id][:MAX_IDEAS_PER_LOOKUP]
    user_votes = await votes.get_user_votes(user.user_id, ids)
    return MyVotesResponse(
        votes={idea_id: _user_votes_response(v) for idea_id, v in user_votes.items()}
    )


@router.post(
    "/{idea_id}",
    response_model=IdeaVotesResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register Idea",
)
async def register_idea(
    idea_id: str = Path(..., min_length=1, max_length=255),
    user: AuthenticatedUser = Depends(require_auth),
    votes: VoteService = Depends(get_vote_service),
) -> IdeaVotesResponse:
    """Create the vote tally for a newly published idea. Idempotent."""
    tally = await votes.register_idea(idea_id)
    return IdeaVotesResponse(
        idea_id=idea_id,
        tally=_tally_response(tally),
        metrics=_metrics_response(tally),
    )


@router.get("/{idea_id}/votes", response_model=IdeaVotesResponse, summary="Get Idea Votes")
async def get_idea_votes(
    idea_id: str = Path(..., min_length=1, max_length=255),
    user: AuthenticatedUser | None = Depends(optional_auth),
    votes: VoteService = Depends(get_vote_service),
) -> IdeaVotesResponse:
    """Tally and metrics for an idea, plus the caller's votes when identified."""
    tally = await votes.get_tally(idea_id)
    user_votes = None
    if user is not None:
        mine = await votes.get_user_votes(user.user_id, [idea_id])
        user_votes = _user_votes_response(mine[idea_id])
    return IdeaVotesResponse(
        idea_id=idea_id,
        tally=_tally_response(tally),
        metrics=_metrics_response(tally),
        user_votes=user_votes,
    )


@router.post(
    "/{idea_id}/votes/{vote_type}",
    response_model=ToggleVoteResponse,
    summary="Toggle Vote",
)
async def toggle_vote(
    vote_type: VoteType,
    idea_id: str = Path(..., min_length=1, max_length=255),
    user: AuthenticatedUser = Depends(require_auth),
    votes: VoteService = Depends(get_vote_service),
) -> ToggleVoteResponse:
    """Turn the caller's vote of this type on if it was off, off if it was on."""
    result = await votes.toggle(user.user_id, idea_id, vote_type)
    return ToggleVoteResponse(
        idea_id=idea_id,
        vote_type=result.vote_type.value,
        active=result.active,
        tally=_tally_response(result.tally),
        metrics=_metrics_response(result.tally),
    )
