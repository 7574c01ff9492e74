"""Session and response tables.

A session owns a chain of responses, one per page visit, linked
backwards through ``previous_response_id``.  Graph ids (survey, page,
questions) are stored without foreign keys: reseeding rebuilds the graph,
and respondent history outlives it.

Concurrency: responses carry a ``version`` counter managed by SQLAlchemy
(``version_id_col``), so a flush against a row changed by someone else
raises ``StaleDataError``; the unique ``(session_id, page_id)`` pair stops
two writers from creating the same successor.
"""

from datetime import datetime

from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from survey_db.models.base import Base, TimestampMixin
from survey_db.models.enums import SessionStatus


class SurveySession(TimestampMixin, Base):
    """One respondent's pass through one survey."""

    __tablename__ = "sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    survey_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # --- Identity (read by the engine for auth filtering and prefill) ---
    auth: Mapped[bool] = mapped_column(nullable=False, default=False)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(Text, nullable=True)

    # --- Lifecycle ---
    status: Mapped[SessionStatus] = mapped_column(
        String(20), nullable=False, default=SessionStatus.ACTIVE, index=True,
    )
    # sessions <-> responses reference each other; the FK is added after both tables
    last_response_id: Mapped[int | None] = mapped_column(
        ForeignKey(
            "responses.id",
            use_alter=True,
            name="fk_sessions_last_response",
            ondelete="SET NULL",
        ),
        nullable=True,
    )
    finished_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<SurveySession(id={self.id}, survey={self.survey_id}, "
            f"status={self.status!r}, last_response={self.last_response_id})>"
        )


class ResponseRow(TimestampMixin, Base):
    """One visit to one page within a session."""

    __tablename__ = "responses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    session_id: Mapped[int] = mapped_column(
        ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    page_id: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_response_id: Mapped[int | None] = mapped_column(
        ForeignKey("responses.id", ondelete="SET NULL"), nullable=True,
    )
    # Visible question ids at the time of the visit, descending priority
    questions: Mapped[list] = mapped_column(
        JSONB, nullable=False, server_default=text("'[]'::jsonb"), default=list,
    )
    # {"<question id>": answer}; only this page's own questions
    values: Mapped[dict] = mapped_column(
        JSONB, nullable=False, server_default=text("'{}'::jsonb"), default=dict,
    )
    # {"current": n, "total": m, "truncated": bool}
    progress: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("session_id", "page_id", name="uq_response_session_page"),
    )

    def __repr__(self) -> str:
        return (
            f"<ResponseRow(id={self.id}, session={self.session_id}, "
            f"page={self.page_id}, version={self.version})>"
        )
