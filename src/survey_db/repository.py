"""Async repository implementing the engine's storage contract on PostgreSQL.

All public methods accept an ``AsyncSession`` so the caller controls
transaction boundaries; methods flush, never commit.

Graph reads convert ORM rows to the SDK's immutable pydantic models.
Session and response reads return the ORM rows themselves: the engine
only touches the attributes listed in
:mod:`survey_engine.interfaces`.

Conflicts surface as :class:`ResponseConflictError`: a stale
``version_id_col`` (``StaleDataError``) on update, or the unique
``(session_id, page_id)`` constraint (``IntegrityError``) on insert.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from survey_engine.errors import ResponseConflictError
from survey_engine.interfaces import SurveyStorage
from survey_engine.models.graph import Option, Page, Question, Survey

from survey_db.models.base import utcnow
from survey_db.models.enums import SessionStatus
from survey_db.models.report import ReportRow
from survey_db.models.seed import SeedMetadata
from survey_db.models.session import ResponseRow, SurveySession
from survey_db.models.survey import OptionRow, PageRow, QuestionRow, SurveyRow

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Row -> model conversion
# ---------------------------------------------------------------------------

def _to_survey(row: SurveyRow) -> Survey:
    return Survey(
        id=row.id,
        title=row.title,
        description=row.description,
        icon=row.icon,
        priority=row.priority,
        first_page=row.first_page_id,
        auth_type=row.auth_type,
        export_list=row.export_list,
    )


def _to_question(row: QuestionRow) -> Question:
    return Question(
        id=row.id,
        page=row.page_id,
        survey=row.survey_id,
        type=row.type,
        title=row.title,
        description=row.description,
        hint=row.hint,
        required=row.required,
        risk_evaluation=row.risk_evaluation,
        priority=row.priority,
        next_question=row.next_question_id,
        auth_relation=row.auth_relation,
        export_field=row.export_field,
        condition=row.condition or [],
        dynamic_fields=row.dynamic_fields or [],
        options=[
            Option(
                id=o.id,
                question=o.question_id,
                title=o.title,
                priority=o.priority,
                next_question=o.next_question_id,
            )
            for o in row.options
        ],
    )


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


class SurveyRepository(SurveyStorage):
    """Async read/write operations on the survey, session and response tables."""

    # ------------------------------------------------------------------
    # Graph reads
    # ------------------------------------------------------------------

    async def get_survey(self, db: AsyncSession, survey_id: int) -> Survey | None:
        row = await db.get(SurveyRow, survey_id)
        return _to_survey(row) if row is not None else None

    async def list_surveys(self, db: AsyncSession) -> list[Survey]:
        stmt = select(SurveyRow).order_by(SurveyRow.priority.desc(), SurveyRow.id)
        result = await db.execute(stmt)
        return [_to_survey(row) for row in result.scalars().all()]

    async def count_surveys(self, db: AsyncSession) -> int:
        result = await db.execute(select(func.count()).select_from(SurveyRow))
        return int(result.scalar_one())

    async def get_page(self, db: AsyncSession, page_id: int) -> Page | None:
        stmt = (
            select(PageRow)
            .where(PageRow.id == page_id)
            .options(selectinload(PageRow.questions).selectinload(QuestionRow.options))
            .execution_options(populate_existing=True)
        )
        row = (await db.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return Page(
            id=row.id,
            title=row.title,
            description=row.description,
            dynamic_fields=row.dynamic_fields or [],
            questions=[_to_question(q) for q in row.questions],
        )

    async def get_question(self, db: AsyncSession, question_id: int) -> Question | None:
        stmt = (
            select(QuestionRow)
            .where(QuestionRow.id == question_id)
            .options(selectinload(QuestionRow.options))
            .execution_options(populate_existing=True)
        )
        row = (await db.execute(stmt)).scalar_one_or_none()
        return _to_question(row) if row is not None else None

    # ------------------------------------------------------------------
    # Graph writes
    # ------------------------------------------------------------------

    async def create_page(self, db: AsyncSession, *, title, description) -> int:
        row = PageRow(title=title, description=description, dynamic_fields=[])
        db.add(row)
        await db.flush()
        return row.id

    async def update_page(self, db: AsyncSession, page_id: int, *, dynamic_fields) -> None:
        row = await db.get(PageRow, page_id)
        if row is None:
            raise ValueError(f"Page not found: {page_id}")
        row.dynamic_fields = list(dynamic_fields)
        await db.flush()

    async def create_question(
        self, db: AsyncSession, *, page_id: int, priority: int, fields: dict[str, Any]
    ) -> int:
        row = QuestionRow(
            page_id=page_id,
            priority=priority,
            type=_enum_value(fields["type"]),
            title=fields.get("title"),
            description=fields.get("description"),
            hint=fields.get("hint"),
            required=bool(fields.get("required")),
            risk_evaluation=bool(fields.get("risk_evaluation")),
            auth_relation=_enum_value(fields.get("auth_relation")),
            export_field=fields.get("export_field"),
            condition=[],
            dynamic_fields=[],
        )
        db.add(row)
        await db.flush()
        return row.id

    async def update_question(
        self,
        db: AsyncSession,
        question_id: int,
        *,
        survey_id,
        next_question,
        condition,
        dynamic_fields,
    ) -> None:
        row = await db.get(QuestionRow, question_id)
        if row is None:
            raise ValueError(f"Question not found: {question_id}")
        row.survey_id = survey_id
        row.next_question_id = next_question
        row.condition = list(condition)
        row.dynamic_fields = list(dynamic_fields)
        await db.flush()

    async def create_option(
        self, db: AsyncSession, *, question_id, title, priority, next_question
    ) -> int:
        row = OptionRow(
            question_id=question_id,
            title=title,
            priority=priority,
            next_question_id=next_question,
        )
        db.add(row)
        await db.flush()
        return row.id

    async def create_survey(
        self,
        db: AsyncSession,
        *,
        title,
        description,
        icon,
        priority,
        auth_type,
        export_list,
        first_page,
    ) -> int:
        row = SurveyRow(
            title=title,
            description=description,
            icon=icon,
            priority=priority,
            auth_type=auth_type,
            export_list=export_list,
            first_page_id=first_page,
        )
        db.add(row)
        await db.flush()
        return row.id

    async def clear_surveys(self, db: AsyncSession) -> None:
        # reverse dependency order
        for model in (OptionRow, QuestionRow, SurveyRow, PageRow):
            await db.execute(delete(model))
        await db.flush()
        logger.info("Cleared all surveys, pages, questions and options")

    async def get_seed_hash(self, db: AsyncSession, key: str) -> str | None:
        stmt = select(SeedMetadata).where(SeedMetadata.key == key)
        row = (await db.execute(stmt)).scalar_one_or_none()
        return row.hash if row is not None else None

    async def store_seed_hash(
        self, db: AsyncSession, key: str, value: str, version: str
    ) -> None:
        stmt = select(SeedMetadata).where(SeedMetadata.key == key)
        row = (await db.execute(stmt)).scalar_one_or_none()
        if row is None:
            db.add(SeedMetadata(key=key, hash=value, version=version))
        else:
            row.hash = value
            row.version = version
        await db.flush()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(
        self, db: AsyncSession, *, survey_id, auth, email, phone
    ) -> SurveySession:
        """Insert a new session row and return it."""
        row = SurveySession(survey_id=survey_id, auth=auth, email=email, phone=phone)
        db.add(row)
        await db.flush()  # Populate id and timestamps
        return row

    async def get_session(self, db: AsyncSession, session_id: int) -> SurveySession | None:
        return await db.get(SurveySession, session_id)

    async def set_last_response(
        self, db: AsyncSession, session: SurveySession, response_id: int
    ) -> SurveySession:
        session.last_response_id = response_id
        await db.flush()
        return session

    async def finish_session(self, db: AsyncSession, session: SurveySession) -> bool:
        if session.status == SessionStatus.FINISHED:
            return False
        session.status = SessionStatus.FINISHED
        session.finished_at = utcnow()
        await db.flush()
        return True

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    async def get_response(self, db: AsyncSession, response_id: int) -> ResponseRow | None:
        return await db.get(ResponseRow, response_id)

    async def find_response(
        self, db: AsyncSession, *, session_id: int, page_id: int
    ) -> ResponseRow | None:
        stmt = select(ResponseRow).where(
            ResponseRow.session_id == session_id,
            ResponseRow.page_id == page_id,
        )
        return (await db.execute(stmt)).scalar_one_or_none()

    async def create_response(
        self,
        db: AsyncSession,
        *,
        session_id,
        page_id,
        questions,
        previous_response_id,
        values,
        progress,
    ) -> ResponseRow:
        row = ResponseRow(
            session_id=session_id,
            page_id=page_id,
            previous_response_id=previous_response_id,
            questions=list(questions),
            values=_own_values(values, questions),
            progress=progress,
        )
        db.add(row)
        try:
            # SAVEPOINT so a lost race leaves the outer transaction usable
            async with db.begin_nested():
                await db.flush()
        except IntegrityError as exc:
            raise ResponseConflictError(
                None, f"page {page_id} already has a response in session {session_id}",
            ) from exc
        return row

    async def update_response(
        self,
        db: AsyncSession,
        response: ResponseRow,
        *,
        expected_version: int,
        values=None,
        questions=None,
        previous_response_id=None,
        progress=None,
    ) -> ResponseRow:
        if response.version != expected_version:
            raise ResponseConflictError(
                response.id,
                f"expected version {expected_version}, found {response.version}",
            )
        if questions is not None:
            response.questions = list(questions)
        if values is not None:
            response.values = _own_values(values, response.questions)
        if previous_response_id is not None:
            response.previous_response_id = previous_response_id
        if progress is not None:
            response.progress = progress
        try:
            await db.flush()
        except StaleDataError as exc:
            raise ResponseConflictError(response.id, "modified concurrently") from exc
        return response

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    async def save_report(
        self,
        db: AsyncSession,
        session: SurveySession,
        *,
        answers: list[dict[str, Any]],
        export_list: str | None = None,
    ) -> None:
        stmt = select(ReportRow).where(ReportRow.session_id == session.id)
        row = (await db.execute(stmt)).scalar_one_or_none()
        if row is None:
            row = ReportRow(session_id=session.id)
            db.add(row)
        row.survey_id = session.survey_id
        row.auth = session.auth
        row.email = session.email
        row.phone = session.phone
        row.started_at = session.created_at
        row.finished_at = session.finished_at
        row.export_list = export_list
        row.answers = answers
        await db.flush()


def _own_values(values: dict[Any, Any] | None, questions: list[int]) -> dict[str, Any]:
    """Keep only answers to the response's own questions; JSON object keys."""
    allowed = {int(q) for q in questions}
    return {str(k): v for k, v in (values or {}).items() if int(k) in allowed}
