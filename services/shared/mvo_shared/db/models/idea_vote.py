"""Idea vote tally and per-voter toggle state models."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, generate_uuid


class IdeaVoteTally(Base, TimestampMixin):
    """Aggregated vote counters for one idea."""

    __tablename__ = "IdeaVoteTallies"

    idea_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    dislike_count: Mapped[int] = mapped_column(default=0, nullable=False)
    use_count: Mapped[int] = mapped_column(default=0, nullable=False)
    pay_count: Mapped[int] = mapped_column(default=0, nullable=False)


class IdeaVote(Base):
    """A vote that is currently 'on'. Absence of the row means 'off'."""

    __tablename__ = "IdeaVotes"

    vote_id: Mapped[UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    idea_id: Mapped[str] = mapped_column(
        ForeignKey("IdeaVoteTallies.idea_id"),
        nullable=False,
    )
    voter_id: Mapped[str] = mapped_column(String(255), nullable=False)
    vote_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Vote type: 'dislike', 'use' or 'pay'",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("idea_id", "voter_id", "vote_type", name="uq_idea_votes_voter_type"),
        Index("ix_idea_votes_voter", "voter_id", "idea_id"),
    )
