"""In-process storage backend.

Implements :class:`~survey_engine.interfaces.SurveyStorage` with plain
dicts so the engine, builder and seeder can run without PostgreSQL (walk
scripts, tests).  The ``db`` argument is accepted and ignored.

Rows handed out by :meth:`get_response` are copies, so two callers that
load the same response and both write it back hit the same optimistic
version check as with the real repository.
"""

from __future__ import annotations

import copy
import itertools
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from survey_engine.errors import ResponseConflictError
from survey_engine.interfaces import SurveyStorage
from survey_engine.models.graph import Option, Page, Question, Survey


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SessionRecord:
    """Mirror of the ``sessions`` table row."""

    id: int
    survey_id: int
    auth: bool = False
    email: str | None = None
    phone: str | None = None
    status: str = "active"
    last_response_id: int | None = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    finished_at: datetime | None = None


@dataclass
class ResponseRecord:
    """Mirror of the ``responses`` table row."""

    id: int
    session_id: int
    page_id: int
    previous_response_id: int | None = None
    questions: list[int] = field(default_factory=list)
    values: dict = field(default_factory=dict)
    progress: dict | None = None
    version: int = 1
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)


class InMemoryStorage(SurveyStorage):
    """Dict-backed storage; ids are allocated from one shared counter."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.surveys: dict[int, dict[str, Any]] = {}
        self.pages: dict[int, dict[str, Any]] = {}
        self.questions: dict[int, dict[str, Any]] = {}
        self.options: dict[int, dict[str, Any]] = {}
        self.sessions: dict[int, SessionRecord] = {}
        self.responses: dict[int, ResponseRecord] = {}
        self.reports: dict[int, list[dict[str, Any]]] = {}
        self.report_export_lists: dict[int, str | None] = {}
        self.seed_hashes: dict[str, dict[str, str]] = {}

    # ------------------------------------------------------------------
    # Graph reads
    # ------------------------------------------------------------------

    async def get_survey(self, db, survey_id):
        raw = self.surveys.get(survey_id)
        return Survey(**raw) if raw is not None else None

    async def list_surveys(self, db):
        rows = sorted(self.surveys.values(), key=lambda s: -s["priority"])
        return [Survey(**raw) for raw in rows]

    async def count_surveys(self, db):
        return len(self.surveys)

    async def get_page(self, db, page_id):
        raw = self.pages.get(page_id)
        if raw is None:
            return None
        questions = [
            self._build_question(qid)
            for qid, q in self.questions.items()
            if q["page"] == page_id
        ]
        return Page(**raw, questions=questions)

    async def get_question(self, db, question_id):
        if question_id not in self.questions:
            return None
        return self._build_question(question_id)

    def _build_question(self, question_id: int) -> Question:
        options = sorted(
            (o for o in self.options.values() if o["question"] == question_id),
            key=lambda o: -o["priority"],
        )
        return Question(
            **self.questions[question_id],
            options=[Option(**o) for o in options],
        )

    # ------------------------------------------------------------------
    # Graph writes
    # ------------------------------------------------------------------

    async def create_page(self, db, *, title, description):
        pid = next(self._ids)
        self.pages[pid] = {
            "id": pid, "title": title, "description": description, "dynamic_fields": [],
        }
        return pid

    async def update_page(self, db, page_id, *, dynamic_fields):
        self.pages[page_id]["dynamic_fields"] = copy.deepcopy(dynamic_fields)

    async def create_question(self, db, *, page_id, priority, fields):
        qid = next(self._ids)
        self.questions[qid] = {**fields, "id": qid, "page": page_id, "priority": priority}
        return qid

    async def update_question(
        self, db, question_id, *, survey_id, next_question, condition, dynamic_fields,
    ):
        self.questions[question_id].update(
            survey=survey_id,
            next_question=next_question,
            condition=copy.deepcopy(condition),
            dynamic_fields=copy.deepcopy(dynamic_fields),
        )

    async def create_option(self, db, *, question_id, title, priority, next_question):
        oid = next(self._ids)
        self.options[oid] = {
            "id": oid,
            "question": question_id,
            "title": title,
            "priority": priority,
            "next_question": next_question,
        }
        return oid

    async def create_survey(
        self, db, *, title, description, icon, priority, auth_type, export_list, first_page,
    ):
        sid = next(self._ids)
        self.surveys[sid] = {
            "id": sid,
            "title": title,
            "description": description,
            "icon": icon,
            "priority": priority,
            "auth_type": auth_type,
            "export_list": export_list,
            "first_page": first_page,
        }
        return sid

    async def clear_surveys(self, db):
        self.options.clear()
        self.questions.clear()
        self.pages.clear()
        self.surveys.clear()

    async def get_seed_hash(self, db, key):
        entry = self.seed_hashes.get(key)
        return entry["hash"] if entry else None

    async def store_seed_hash(self, db, key, value, version):
        self.seed_hashes[key] = {"hash": value, "version": version}

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(self, db, *, survey_id, auth, email, phone):
        row = SessionRecord(
            id=next(self._ids), survey_id=survey_id, auth=auth, email=email, phone=phone,
        )
        self.sessions[row.id] = row
        return row

    async def get_session(self, db, session_id):
        return self.sessions.get(session_id)

    async def set_last_response(self, db, session, response_id):
        session.last_response_id = response_id
        session.updated_at = _now()
        return session

    async def finish_session(self, db, session):
        if session.status == "finished":
            return False
        now = _now()
        session.status = "finished"
        session.finished_at = now
        session.updated_at = now
        return True

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    async def get_response(self, db, response_id):
        row = self.responses.get(response_id)
        return replace(row) if row is not None else None

    async def find_response(self, db, *, session_id, page_id):
        for row in self.responses.values():
            if row.session_id == session_id and row.page_id == page_id:
                return replace(row)
        return None

    async def create_response(
        self, db, *, session_id, page_id, questions, previous_response_id, values, progress,
    ):
        if await self.find_response(db, session_id=session_id, page_id=page_id):
            raise ResponseConflictError(None, f"page {page_id} already answered in session {session_id}")
        row = ResponseRecord(
            id=next(self._ids),
            session_id=session_id,
            page_id=page_id,
            previous_response_id=previous_response_id,
            questions=list(questions),
            values=_own_values(values, questions),
            progress=progress,
        )
        self.responses[row.id] = row
        return replace(row)

    async def update_response(
        self,
        db,
        response,
        *,
        expected_version,
        values=None,
        questions=None,
        previous_response_id=None,
        progress=None,
    ):
        stored = self.responses[response.id]
        if stored.version != expected_version:
            raise ResponseConflictError(
                response.id, f"expected version {expected_version}, found {stored.version}",
            )
        if questions is not None:
            stored.questions = list(questions)
        if values is not None:
            stored.values = _own_values(values, stored.questions)
        if previous_response_id is not None:
            stored.previous_response_id = previous_response_id
        if progress is not None:
            stored.progress = progress
        stored.version += 1
        stored.updated_at = _now()
        return replace(stored)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    async def save_report(self, db, session, *, answers, export_list=None):
        self.reports[session.id] = copy.deepcopy(answers)
        self.report_export_lists[session.id] = export_list


def _own_values(values: dict[int, Any], questions: list[int]) -> dict[int, Any]:
    """Keep only answers to the response's own questions."""
    allowed = set(questions)
    return {int(k): v for k, v in (values or {}).items() if int(k) in allowed}
