"""Signal pipeline schema: users, applications, signals, rounds, feedback, LLM audit log.

Revision ID: 001_signal_pipeline_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_signal_pipeline_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_id"), "users", ["id"], unique=False)
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("website", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_companies_id"), "companies", ["id"], unique=False)
    op.create_index(op.f("ix_companies_name"), "companies", ["name"], unique=False)

    op.create_table(
        "job_roles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_job_roles_id"), "job_roles", ["id"], unique=False)
    op.create_index(op.f("ix_job_roles_title"), "job_roles", ["title"], unique=False)

    op.create_table(
        "interview_applications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=True),
        sa.Column("job_role_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("pipeline_stage", sa.String(), nullable=False, server_default="applied"),
        sa.Column("applied_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.ForeignKeyConstraint(["job_role_id"], ["job_roles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_interview_applications_id"), "interview_applications", ["id"], unique=False)
    op.create_index(op.f("ix_interview_applications_user_id"), "interview_applications", ["user_id"], unique=False)
    op.create_index(op.f("ix_interview_applications_company_id"), "interview_applications", ["company_id"], unique=False)
    op.create_index(op.f("ix_interview_applications_job_role_id"), "interview_applications", ["job_role_id"], unique=False)
    op.create_index("ix_interview_applications_user_status", "interview_applications", ["user_id", "status"], unique=False)

    op.create_table(
        "signals",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("interview_application_id", sa.Integer(), nullable=True),
        sa.Column("email_type", sa.String(), nullable=True),
        sa.Column("subject", sa.String(), nullable=True),
        sa.Column("from_email", sa.String(), nullable=True),
        sa.Column("from_name", sa.String(), nullable=True),
        sa.Column("snippet", sa.Text(), nullable=True),
        sa.Column("body_preview", sa.Text(), nullable=True),
        sa.Column("body_html", sa.Text(), nullable=True),
        sa.Column("email_date", sa.DateTime(), nullable=True),
        sa.Column("thread_id", sa.String(), nullable=True),
        sa.Column("extracted_data", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["interview_application_id"], ["interview_applications.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_signals_id"), "signals", ["id"], unique=False)
    op.create_index(op.f("ix_signals_user_id"), "signals", ["user_id"], unique=False)
    op.create_index(op.f("ix_signals_interview_application_id"), "signals", ["interview_application_id"], unique=False)
    op.create_index(op.f("ix_signals_email_type"), "signals", ["email_type"], unique=False)
    op.create_index(op.f("ix_signals_thread_id"), "signals", ["thread_id"], unique=False)

    op.create_table(
        "interview_rounds",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("interview_application_id", sa.Integer(), nullable=False),
        sa.Column("stage", sa.String(), nullable=False, server_default="other"),
        sa.Column("stage_name", sa.String(), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("interviewer_name", sa.String(), nullable=True),
        sa.Column("interviewer_role", sa.String(), nullable=True),
        sa.Column("video_link", sa.String(), nullable=True),
        sa.Column("confirmation_source", sa.String(), nullable=True),
        sa.Column("result", sa.String(), nullable=False, server_default="pending"),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("source_signal_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["interview_application_id"], ["interview_applications.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["source_signal_id"], ["signals.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_interview_rounds_id"), "interview_rounds", ["id"], unique=False)
    op.create_index(
        op.f("ix_interview_rounds_interview_application_id"), "interview_rounds", ["interview_application_id"], unique=False
    )
    op.create_index("ix_interview_rounds_source_signal", "interview_rounds", ["source_signal_id"], unique=False)
    op.create_index(
        "ix_interview_rounds_app_scheduled", "interview_rounds", ["interview_application_id", "scheduled_at"], unique=False
    )

    op.create_table(
        "interview_feedbacks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("interview_round_id", sa.Integer(), nullable=False),
        sa.Column("went_well", sa.Text(), nullable=True),
        sa.Column("to_improve", sa.Text(), nullable=True),
        sa.Column("ai_summary", sa.Text(), nullable=True),
        sa.Column("interviewer_notes", sa.Text(), nullable=True),
        sa.Column("recommended_action", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["interview_round_id"], ["interview_rounds.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("interview_round_id"),
    )
    op.create_index(op.f("ix_interview_feedbacks_id"), "interview_feedbacks", ["id"], unique=False)

    op.create_table(
        "company_feedbacks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("interview_application_id", sa.Integer(), nullable=False),
        sa.Column("source_signal_id", sa.Integer(), nullable=True),
        sa.Column("feedback_type", sa.String(), nullable=False, server_default="general"),
        sa.Column("feedback_text", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("next_steps", sa.Text(), nullable=True),
        sa.Column("self_reflection", sa.Text(), nullable=True),
        sa.Column("received_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["interview_application_id"], ["interview_applications.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["source_signal_id"], ["signals.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_company_feedbacks_id"), "company_feedbacks", ["id"], unique=False)
    op.create_index(
        op.f("ix_company_feedbacks_interview_application_id"), "company_feedbacks", ["interview_application_id"], unique=False
    )
    op.create_index("ix_company_feedbacks_source_signal", "company_feedbacks", ["source_signal_id"], unique=False)

    op.create_table(
        "llm_api_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("operation_type", sa.String(), nullable=False),
        sa.Column("provider", sa.String(), nullable=False),
        sa.Column("model", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=True),
        sa.Column("signal_id", sa.Integer(), nullable=True),
        sa.Column("latency_ms", sa.Integer(), nullable=True),
        sa.Column("input_tokens", sa.Integer(), nullable=True),
        sa.Column("output_tokens", sa.Integer(), nullable=True),
        sa.Column("prompt_chars", sa.Integer(), nullable=True),
        sa.Column("confidence_score", sa.Float(), nullable=True),
        sa.Column("extracted_fields", sa.JSON(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("error_type", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["signal_id"], ["signals.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_llm_api_logs_id"), "llm_api_logs", ["id"], unique=False)
    op.create_index(op.f("ix_llm_api_logs_operation_type"), "llm_api_logs", ["operation_type"], unique=False)
    op.create_index(op.f("ix_llm_api_logs_provider"), "llm_api_logs", ["provider"], unique=False)
    op.create_index(op.f("ix_llm_api_logs_signal_id"), "llm_api_logs", ["signal_id"], unique=False)


def downgrade() -> None:
    op.drop_table("llm_api_logs")
    op.drop_table("company_feedbacks")
    op.drop_table("interview_feedbacks")
    op.drop_table("interview_rounds")
    op.drop_table("signals")
    op.drop_table("interview_applications")
    op.drop_table("job_roles")
    op.drop_table("companies")
    op.drop_table("users")
