"""SQLAlchemy database models for the MVO credits and votes service."""

from .base import Base, TimestampMixin, generate_uuid
from .credit_usage import CreditUsage
from .idea_vote import IdeaVote, IdeaVoteTally
from .user_credit import UserCredit

__all__ = [
    "Base",
    "CreditUsage",
    "IdeaVote",
    "IdeaVoteTally",
    "TimestampMixin",
    "UserCredit",
    "generate_uuid",
]
