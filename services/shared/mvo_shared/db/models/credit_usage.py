"""Credit usage model recording every committed deduction."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, generate_uuid


class CreditUsage(Base):
    """One deduction against a user's daily allotment."""

    __tablename__ = "CreditUsages"

    usage_id: Mapped[UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    user_id: Mapped[str] = mapped_column(
        ForeignKey("UserCredits.user_id"),
        nullable=False,
    )
    amount: Mapped[int] = mapped_column(nullable=False)
    feature: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        comment="Feature the credits were spent on (deep_research, ...)",
    )
    idempotency_key: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="Client token de-duplicating retried deductions",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "idempotency_key", name="uq_credit_usage_idempotency"),
        Index("ix_credit_usage_user_created", "user_id", "created_at"),
    )
