"""Shared database module."""

from .connection import (
    DatabaseConnection,
    create_engine,
    create_session_factory,
    get_database_url,
    get_db,
    get_session,
    normalize_database_url,
)
from .models import (
    Base,
    CreditUsage,
    IdeaVote,
    IdeaVoteTally,
    TimestampMixin,
    UserCredit,
    generate_uuid,
)

__all__ = [
    "Base",
    "CreditUsage",
    "DatabaseConnection",
    "IdeaVote",
    "IdeaVoteTally",
    "TimestampMixin",
    "UserCredit",
    "create_engine",
    "create_session_factory",
    "generate_uuid",
    "get_database_url",
    "get_db",
    "get_session",
    "normalize_database_url",
]
