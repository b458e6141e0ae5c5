"""Error taxonomy for the credits and votes subsystem.

Only ``InsufficientCredits`` has a user-facing remediation (an upgrade
prompt). Everything else should be surfaced as a generic retry/apology
message by the caller.
"""

from __future__ import annotations

from typing import Any


class MVOError(Exception):
    """Base class for all domain errors."""


class StorageUnavailable(MVOError):
    """The backing store could not be reached or timed out.

    Transient: the whole read may be retried. Deductions must not be blindly
    retried without an idempotency key.
    """

    def __init__(self, operation: str, cause: BaseException | None = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Storage unavailable during {operation}{detail}")


class InsufficientCredits(MVOError):
    """The user's remaining daily balance does not cover the cost."""

    def __init__(self, required: int, remaining: int):
        self.required = required
        self.remaining = remaining
        super().__init__(
            f"Insufficient credits: required {required}, remaining {remaining}"
        )

    @property
    def shortfall(self) -> int:
        return max(0, self.required - self.remaining)

    def to_dict(self) -> dict[str, Any]:
        return {
            "required": self.required,
            "remaining": self.remaining,
            "shortfall": self.shortfall,
        }


class InvalidPlan(MVOError, ValueError):
    """A plan value outside the closed plan enumeration."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Invalid plan: {value!r}")


class IdeaNotFound(MVOError, LookupError):
    """No vote tally is registered for the idea."""

    def __init__(self, idea_id: str):
        self.idea_id = idea_id
        super().__init__(f"Idea not found: {idea_id}")


class VoteConflict(MVOError):
    """A vote toggle kept colliding with concurrent toggles of the same vote."""

    def __init__(self, idea_id: str, vote_type: str):
        self.idea_id = idea_id
        self.vote_type = vote_type
        super().__init__(f"Concurrent toggles of {vote_type} on idea {idea_id}")


class CreditContention(MVOError):
    """A deduction kept losing its conditional update to concurrent writers.

    The balance covered the cost on every attempt, so this is not a refusal.
    Nothing was charged and the request may be repeated.
    """

    def __init__(self, user_id: str, amount: int):
        self.user_id = user_id
        self.amount = amount
        super().__init__(f"Concurrent updates to the credits of {user_id}")
