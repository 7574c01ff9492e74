"""Survey graph tables: surveys, pages, questions, question_options.

Rows are written once by the graph builder and read-only afterwards.
Pointer fields (``next_question``, conditions, overlay patches) are
filled in the builder's second pass, so they are nullable or default to
empty JSON.
"""

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from survey_db.models.base import Base, TimestampMixin


class SurveyRow(TimestampMixin, Base):
    __tablename__ = "surveys"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Higher is listed first
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    auth_type: Mapped[str] = mapped_column(
        String(20), nullable=False, server_default=text("'NONE'"),
    )
    export_list: Mapped[str | None] = mapped_column(Text, nullable=True)
    first_page_id: Mapped[int] = mapped_column(
        ForeignKey("pages.id", ondelete="RESTRICT"), nullable=False,
    )

    def __repr__(self) -> str:
        return f"<SurveyRow(id={self.id}, title={self.title!r})>"


class PageRow(TimestampMixin, Base):
    __tablename__ = "pages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # [{"condition": [{"question": id, "value": ...}], "values": {...}}, ...]
    dynamic_fields: Mapped[list] = mapped_column(
        JSONB, nullable=False, server_default=text("'[]'::jsonb"), default=list,
    )

    questions: Mapped[list["QuestionRow"]] = relationship(
        back_populates="page",
        order_by="QuestionRow.priority.desc()",
        lazy="selectin",
    )


class QuestionRow(TimestampMixin, Base):
    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    page_id: Mapped[int] = mapped_column(
        ForeignKey("pages.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    survey_id: Mapped[int | None] = mapped_column(
        ForeignKey("surveys.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    hint: Mapped[str | None] = mapped_column(Text, nullable=True)
    required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    risk_evaluation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_question_id: Mapped[int | None] = mapped_column(
        ForeignKey("questions.id", ondelete="SET NULL"), nullable=True,
    )
    auth_relation: Mapped[str | None] = mapped_column(String(20), nullable=True)
    export_field: Mapped[str | None] = mapped_column(Text, nullable=True)
    # [{"question": id, "value": ...}, ...]; AND-ed
    condition: Mapped[list] = mapped_column(
        JSONB, nullable=False, server_default=text("'[]'::jsonb"), default=list,
    )
    dynamic_fields: Mapped[list] = mapped_column(
        JSONB, nullable=False, server_default=text("'[]'::jsonb"), default=list,
    )

    page: Mapped[PageRow] = relationship(back_populates="questions")
    options: Mapped[list["OptionRow"]] = relationship(
        back_populates="question",
        foreign_keys="OptionRow.question_id",
        order_by="OptionRow.priority.desc()",
        lazy="selectin",
    )


class OptionRow(TimestampMixin, Base):
    __tablename__ = "question_options"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    question_id: Mapped[int] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_question_id: Mapped[int | None] = mapped_column(
        ForeignKey("questions.id", ondelete="SET NULL"), nullable=True,
    )

    question: Mapped[QuestionRow] = relationship(
        back_populates="options", foreign_keys=[question_id],
    )
