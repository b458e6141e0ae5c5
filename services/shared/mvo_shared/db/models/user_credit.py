"""Per-user credit ledger row."""

from datetime import date

from sqlalchemy import CheckConstraint, Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class UserCredit(Base, TimestampMixin):
    """Daily credit counters for one user.

    The daily allotment is derived from ``plan`` and never stored.
    """

    __tablename__ = "UserCredits"

    user_id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="Opaque user id issued by the auth provider",
    )
    plan: Mapped[str] = mapped_column(
        String(20),
        default="free",
        nullable=False,
        comment="Plan tier: 'free', 'starter', 'builder' or 'operator'",
    )
    used_today: Mapped[int] = mapped_column(default=0, nullable=False)
    last_reset_date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        CheckConstraint("used_today >= 0", name="ck_user_credits_used_nonnegative"),
        Index("ix_user_credits_plan", "plan"),
    )
