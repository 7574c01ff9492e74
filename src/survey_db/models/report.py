"""Reports: the flattened answer list of a finished session."""

from datetime import datetime

from sqlalchemy import ForeignKey, Integer, Text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from survey_db.models.base import Base, TimestampMixin


class ReportRow(TimestampMixin, Base):
    __tablename__ = "reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    session_id: Mapped[int] = mapped_column(
        ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, unique=True,
    )
    survey_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    auth: Mapped[bool] = mapped_column(nullable=False, default=False)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(Text, nullable=True)
    export_list: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    finished_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    # [{"question_id", "title", "answer", "type", "required", "risk_evaluation",
    #   "export_field"}, ...]
    answers: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
