"""Vote toggle state machine and tally persistence.

Each (user, idea, vote type) tuple is either on (an ``IdeaVote`` row
exists) or off. A toggle flips the tuple and moves the matching tally
counter by exactly one, in one transaction. The unique constraint on the
tuple turns a duplicate submit into an IntegrityError, after which the
toggle is re-evaluated against the state the other request left behind.
"""

from __future__ import annotations

from collections.abc import Awaitable, Iterable
from dataclasses import dataclass
from typing import Any, TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.models import IdeaVote, IdeaVoteTally
from ..db.timeouts import storage_call
from ..errors import IdeaNotFound, VoteConflict
from ..logging.config import get_logger
from .aggregator import VoteTally, VoteType

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_STORAGE_TIMEOUT = 5.0
MAX_TOGGLE_ATTEMPTS = 3

COUNTER_COLUMNS = {
    VoteType.DISLIKE: IdeaVoteTally.dislike_count,
    VoteType.USE: IdeaVoteTally.use_count,
    VoteType.PAY: IdeaVoteTally.pay_count,
}


@dataclass(frozen=True)
class ToggleResult:
    idea_id: str
    vote_type: VoteType
    active: bool
    tally: VoteTally

    def to_dict(self) -> dict[str, Any]:
        return {
            "idea_id": self.idea_id,
            "vote_type": self.vote_type.value,
            "active": self.active,
            "tally": self.tally.to_dict(),
        }


def _to_tally(row: IdeaVoteTally) -> VoteTally:
    return VoteTally(dislike=row.dislike_count, use=row.use_count, pay=row.pay_count)


class VoteService:
    """Persists vote toggles and per-idea tallies."""

    def __init__(
        self,
        session: AsyncSession,
        timeout_seconds: float = DEFAULT_STORAGE_TIMEOUT,
    ) -> None:
        self.session = session
        self.timeout_seconds = timeout_seconds

    async def register_idea(self, idea_id: str) -> VoteTally:
        """Create the all-zero tally for a new idea (no-op if it exists)."""
        row = await self._fetch_tally(idea_id)
        if row is not None:
            return _to_tally(row)

        self.session.add(
            IdeaVoteTally(idea_id=idea_id, dislike_count=0, use_count=0, pay_count=0)
        )
        try:
            await self._run("register idea", self.session.flush())
        except IntegrityError:
            await self.session.rollback()
            return await self.get_tally(idea_id)
        await self._run("commit", self.session.commit())

        logger.info("Registered idea vote tally", idea_id=idea_id)
        return VoteTally()

    async def get_tally(self, idea_id: str) -> VoteTally:
        """Raises IdeaNotFound if the idea has no tally."""
        row = await self._fetch_tally(idea_id)
        if row is None:
            raise IdeaNotFound(idea_id)
        return _to_tally(row)

    async def toggle(
        self,
        user_id: str,
        idea_id: str,
        vote_type: VoteType | str,
    ) -> ToggleResult:
        """Flip the user's vote of ``vote_type`` on the idea.

        Args:
            user_id: The voter.
            idea_id: The idea being voted on.
            vote_type: One of dislike, use or pay.

        Returns:
            Whether the vote is now on, with the tally after the change.

        Raises:
            ValueError: If vote_type is not dislike, use or pay.
            IdeaNotFound: If the idea has no tally.
            VoteConflict: If concurrent toggles of the same vote keep colliding.
        """
        vote_type = VoteType(vote_type)
        await self.get_tally(idea_id)

        for _ in range(MAX_TOGGLE_ATTEMPTS):
            if await self._remove_vote(user_id, idea_id, vote_type):
                await self._adjust_counter(idea_id, vote_type, -1)
                active = False
            else:
                self.session.add(
                    IdeaVote(idea_id=idea_id, voter_id=user_id, vote_type=vote_type.value)
                )
                try:
                    await self._run("add vote", self.session.flush())
                except IntegrityError:
                    await self.session.rollback()
                    continue
                await self._adjust_counter(idea_id, vote_type, 1)
                active = True
            await self._run("commit", self.session.commit())
            break
        else:
            raise VoteConflict(idea_id, vote_type.value)

        tally = await self.get_tally(idea_id)
        logger.info(
            "Vote toggled",
            user_id=user_id,
            idea_id=idea_id,
            vote_type=vote_type.value,
            active=active,
            total_votes=tally.total,
        )
        return ToggleResult(idea_id=idea_id, vote_type=vote_type, active=active, tally=tally)

    async def get_user_votes(
        self,
        user_id: str,
        idea_ids: Iterable[str],
    ) -> dict[str, dict[VoteType, bool]]:
        """Which vote types the user has on for each idea.

        Args:
            user_id: The voter.
            idea_ids: Ideas to report on. Duplicates are collapsed.

        Returns:
            A map from idea id to vote type to on/off. Every requested idea
            is present with every vote type.
        """
        ids = list(dict.fromkeys(idea_ids))
        votes = {idea_id: {vote_type: False for vote_type in VoteType} for idea_id in ids}
        if not ids:
            return votes

        result = await self._run(
            "load user votes",
            self.session.execute(
                select(IdeaVote.idea_id, IdeaVote.vote_type).where(
                    IdeaVote.voter_id == user_id,
                    IdeaVote.idea_id.in_(ids),
                )
            ),
        )
        for idea_id, vote_type in result.all():
            votes[idea_id][VoteType(vote_type)] = True
        return votes

    # --- Internals ---

    async def _run(self, operation: str, awaitable: Awaitable[T]) -> T:
        return await storage_call(operation, awaitable, self.timeout_seconds)

    async def _fetch_tally(self, idea_id: str) -> IdeaVoteTally | None:
        result = await self._run(
            "load tally",
            self.session.execute(
                select(IdeaVoteTally)
                .where(IdeaVoteTally.idea_id == idea_id)
                .execution_options(populate_existing=True)
            ),
        )
        return result.scalar_one_or_none()

    async def _remove_vote(self, user_id: str, idea_id: str, vote_type: VoteType) -> bool:
        result = await self._run(
            "remove vote",
            self.session.execute(
                delete(IdeaVote)
                .where(
                    IdeaVote.idea_id == idea_id,
                    IdeaVote.voter_id == user_id,
                    IdeaVote.vote_type == vote_type.value,
                )
                .execution_options(synchronize_session=False)
            ),
        )
        return result.rowcount == 1

    async def _adjust_counter(self, idea_id: str, vote_type: VoteType, delta: int) -> None:
        column = COUNTER_COLUMNS[vote_type]
        conditions = [IdeaVoteTally.idea_id == idea_id]
        if delta < 0:
            conditions.append(column >= -delta)
        await self._run(
            "update tally",
            self.session.execute(
                update(IdeaVoteTally)
                .where(*conditions)
                .values({column.key: column + delta})
                .execution_options(synchronize_session=False)
            ),
        )
