"""Credits and votes schema.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create credit ledger and idea vote tables."""
    op.create_table(
        "UserCredits",
        sa.Column("user_id", sa.String(255), primary_key=True),
        sa.Column("plan", sa.String(20), nullable=False, server_default="free"),
        sa.Column("used_today", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_reset_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("used_today >= 0", name="ck_user_credits_used_nonnegative"),
    )
    op.create_index("ix_user_credits_plan", "UserCredits", ["plan"])

    op.create_table(
        "CreditUsages",
        sa.Column("usage_id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(255),
            sa.ForeignKey("UserCredits.user_id"),
            nullable=False,
        ),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("feature", sa.String(50), nullable=True),
        sa.Column("idempotency_key", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "idempotency_key", name="uq_credit_usage_idempotency"),
    )
    op.create_index("ix_credit_usage_user_created", "CreditUsages", ["user_id", "created_at"])

    op.create_table(
        "IdeaVoteTallies",
        sa.Column("idea_id", sa.String(255), primary_key=True),
        sa.Column("dislike_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("use_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("pay_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "IdeaVotes",
        sa.Column("vote_id", sa.Uuid(), primary_key=True),
        sa.Column(
            "idea_id",
            sa.String(255),
            sa.ForeignKey("IdeaVoteTallies.idea_id"),
            nullable=False,
        ),
        sa.Column("voter_id", sa.String(255), nullable=False),
        sa.Column("vote_type", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "idea_id", "voter_id", "vote_type", name="uq_idea_votes_voter_type"
        ),
    )
    op.create_index("ix_idea_votes_voter", "IdeaVotes", ["voter_id", "idea_id"])


def downgrade() -> None:
    """Drop credit ledger and idea vote tables."""
    op.drop_index("ix_idea_votes_voter", table_name="IdeaVotes")
    op.drop_table("IdeaVotes")
    op.drop_table("IdeaVoteTallies")
    op.drop_index("ix_credit_usage_user_created", table_name="CreditUsages")
    op.drop_table("CreditUsages")
    op.drop_index("ix_user_credits_plan", table_name="UserCredits")
    op.drop_table("UserCredits")
