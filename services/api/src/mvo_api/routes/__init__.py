"""API route modules."""

from . import admin_credits, credits, health, votes

__all__ = ["admin_credits", "credits", "health", "votes"]
