"""Add interview_round_signals: signals that updated a round after it was created.

Revision ID: 002_add_interview_round_signals
Revises: 001_signal_pipeline_schema
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "002_add_interview_round_signals"
down_revision: Union[str, None] = "001_signal_pipeline_schema"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "interview_round_signals",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("interview_round_id", sa.Integer(), nullable=False),
        sa.Column("signal_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["interview_round_id"], ["interview_rounds.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["signal_id"], ["signals.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("interview_round_id", "signal_id", name="uq_interview_round_signal"),
    )
    op.create_index(op.f("ix_interview_round_signals_id"), "interview_round_signals", ["id"], unique=False)
    op.create_index(
        op.f("ix_interview_round_signals_interview_round_id"),
        "interview_round_signals",
        ["interview_round_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_interview_round_signals_signal_id"), "interview_round_signals", ["signal_id"], unique=False
    )


def downgrade() -> None:
    op.drop_table("interview_round_signals")
