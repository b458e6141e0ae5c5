"""FastAPI dependencies."""

from .auth import AuthenticatedUser, optional_auth, require_auth, require_internal_key
from .credits import get_guard, get_ledger, get_vote_service

__all__ = [
    "AuthenticatedUser",
    "get_guard",
    "get_ledger",
    "get_vote_service",
    "optional_auth",
    "require_auth",
    "require_internal_key",
]
