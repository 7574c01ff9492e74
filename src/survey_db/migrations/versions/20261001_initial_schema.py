"""Create survey graph, session, response, report and seed tables.

Revision ID: 20261001_initial
Revises:
Create Date: 2026-10-01
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP

# revision identifiers, used by Alembic.
revision = "20261001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text("now()")),
        sa.Column("updated_at", TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    # --- Survey graph ---
    op.create_table(
        "pages",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("title", sa.Text, nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("dynamic_fields", JSONB, nullable=False,
                  server_default=sa.text("'[]'::jsonb")),
        *_timestamps(),
    )
    op.create_table(
        "surveys",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("icon", sa.Text, nullable=True),
        sa.Column("priority", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("auth_type", sa.String(20), nullable=False,
                  server_default=sa.text("'NONE'")),
        sa.Column("export_list", sa.Text, nullable=True),
        sa.Column("first_page_id", sa.Integer,
                  sa.ForeignKey("pages.id", ondelete="RESTRICT"), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "questions",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("page_id", sa.Integer,
                  sa.ForeignKey("pages.id", ondelete="CASCADE"), nullable=False),
        sa.Column("survey_id", sa.Integer,
                  sa.ForeignKey("surveys.id", ondelete="CASCADE"), nullable=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("title", sa.Text, nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("hint", sa.Text, nullable=True),
        sa.Column("required", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("risk_evaluation", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("priority", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("next_question_id", sa.Integer,
                  sa.ForeignKey("questions.id", ondelete="SET NULL"), nullable=True),
        sa.Column("auth_relation", sa.String(20), nullable=True),
        sa.Column("export_field", sa.Text, nullable=True),
        sa.Column("condition", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("dynamic_fields", JSONB, nullable=False,
                  server_default=sa.text("'[]'::jsonb")),
        *_timestamps(),
    )
    op.create_index("ix_questions_page_id", "questions", ["page_id"])
    op.create_index("ix_questions_survey_id", "questions", ["survey_id"])

    op.create_table(
        "question_options",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("question_id", sa.Integer,
                  sa.ForeignKey("questions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("priority", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("next_question_id", sa.Integer,
                  sa.ForeignKey("questions.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_question_options_question_id", "question_options", ["question_id"])

    # --- Sessions and responses ---
    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("survey_id", sa.Integer, nullable=False),
        sa.Column("auth", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("email", sa.Text, nullable=True),
        sa.Column("phone", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False,
                  server_default=sa.text("'active'")),
        sa.Column("last_response_id", sa.Integer, nullable=True),
        sa.Column("finished_at", TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_sessions_survey_id", "sessions", ["survey_id"])
    op.create_index("ix_sessions_status", "sessions", ["status"])

    op.create_table(
        "responses",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("session_id", sa.Integer,
                  sa.ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("page_id", sa.Integer, nullable=False),
        sa.Column("previous_response_id", sa.Integer,
                  sa.ForeignKey("responses.id", ondelete="SET NULL"), nullable=True),
        sa.Column("questions", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("values", JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("progress", JSONB, nullable=True),
        sa.Column("version", sa.Integer, nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("session_id", "page_id", name="uq_response_session_page"),
    )
    op.create_index("ix_responses_session_id", "responses", ["session_id"])

    # sessions.last_response_id -> responses.id, added once both tables exist
    op.create_foreign_key(
        "fk_sessions_last_response", "sessions", "responses",
        ["last_response_id"], ["id"], ondelete="SET NULL",
    )

    # --- Reports and seed bookkeeping ---
    op.create_table(
        "reports",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("session_id", sa.Integer,
                  sa.ForeignKey("sessions.id", ondelete="CASCADE"),
                  nullable=False, unique=True),
        sa.Column("survey_id", sa.Integer, nullable=False),
        sa.Column("auth", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("email", sa.Text, nullable=True),
        sa.Column("phone", sa.Text, nullable=True),
        sa.Column("export_list", sa.Text, nullable=True),
        sa.Column("started_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("finished_at", TIMESTAMP(timezone=True), nullable=True),
        sa.Column("answers", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        *_timestamps(),
    )
    op.create_index("ix_reports_survey_id", "reports", ["survey_id"])

    op.create_table(
        "seed_metadata",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("key", sa.String(100), nullable=False, unique=True),
        sa.Column("hash", sa.Text, nullable=False),
        sa.Column("version", sa.String(20), nullable=False),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("seed_metadata")
    op.drop_table("reports")
    op.drop_constraint("fk_sessions_last_response", "sessions", type_="foreignkey")
    op.drop_table("responses")
    op.drop_table("sessions")
    op.drop_table("question_options")
    op.drop_table("questions")
    op.drop_table("surveys")
    op.drop_table("pages")
