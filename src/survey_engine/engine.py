"""SurveyEngine — the response state machine.

Stateless engine pattern: each call loads what it needs from storage,
computes the next step, persists changes, and returns the result.  The
only in-memory state is a registry of per-response locks.

The engine accepts a ``db`` handle from the caller (an ``AsyncSession``
with the PostgreSQL backend) so that the caller controls transaction
boundaries.

Response lifecycle::

    OPEN --respond(invalid)--> OPEN            errors returned, nothing stored
    OPEN --respond(valid)----> ADVANCED        values stored, successor linked
    OPEN --respond(valid)----> SESSION-FINISHED no page left to show

Each response is one visit to one page.  Responses are linked backwards
through ``previous_response`` into a chain that ends at the session's
first response; answers from earlier links feed the conditions and
overlays of later ones.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Any

from survey_engine.errors import ResponseChainError
from survey_engine.evaluator import ConditionEvaluator
from survey_engine.interfaces import FinishListener, SurveyStorage
from survey_engine.models.graph import AuthRelation, Question, Survey, SurveyAuthType
from survey_engine.models.session import (
    Progress,
    RespondResult,
    ResponseView,
    SessionInfo,
    TraversalResult,
)
from survey_engine.overlay import OverlayResolver
from survey_engine.progress import ProgressEstimator
from survey_engine.traversal import GraphTraverser
from survey_engine.validation import AnswerValidator

logger = logging.getLogger(__name__)


def normalize_values(values: dict[Any, Any] | None) -> dict[int, Any]:
    """Coerce answer-map keys to question ids (JSON objects carry string keys)."""
    normalized: dict[int, Any] = {}
    for key, value in (values or {}).items():
        try:
            normalized[int(key)] = value
        except (TypeError, ValueError):
            raise ValueError(f"Invalid question id in values: {key!r}") from None
    return normalized


class SurveyEngine:
    """Drives respondents through survey graphs.

    Args:
        repo: storage backend; defaults to the PostgreSQL repository
        listeners: notified once per session when it finishes
    """

    def __init__(
        self,
        repo: SurveyStorage | None = None,
        *,
        listeners: list[FinishListener] | None = None,
    ) -> None:
        if repo is None:
            from survey_db.repository import SurveyRepository

            repo = SurveyRepository()
        self._repo = repo
        self._evaluator = ConditionEvaluator()
        self._overlay = OverlayResolver(self._evaluator)
        self._traverser = GraphTraverser(repo, self._overlay, self._evaluator)
        self._progress = ProgressEstimator(self._traverser)
        self._validator = AnswerValidator(self._evaluator)
        self._listeners: list[FinishListener] = list(listeners or [])
        # response id -> lock; entries vanish once no call holds the lock
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @property
    def repo(self) -> SurveyStorage:
        return self._repo

    def add_listener(self, listener: FinishListener) -> None:
        self._listeners.append(listener)

    # ==================================================================
    # Surveys
    # ==================================================================

    async def list_surveys(self, db: Any) -> list[Survey]:
        """All surveys, highest priority first."""
        return await self._repo.list_surveys(db)

    # ==================================================================
    # Session lifecycle
    # ==================================================================

    async def start_session(
        self,
        db: Any,
        *,
        survey_id: int,
        auth: bool = False,
        email: str | None = None,
        phone: str | None = None,
    ) -> SessionInfo:
        """Start a session and create its first response.

        The first page is found by a structural traversal from every
        question of the survey's first page; for anonymous sessions
        questions prefilled from identity are skipped, possibly skipping
        whole pages.  If nothing is left to show, the session is created
        already finished.

        Raises:
            ValueError: unknown survey, or authentication required.
        """
        survey = await self._repo.get_survey(db, survey_id)
        if survey is None:
            raise ValueError(f"Survey not found: {survey_id}")
        if survey.auth_type == SurveyAuthType.REQUIRED and not auth:
            raise ValueError(f"Survey {survey_id}: authentication required")

        first_page = await self._repo.get_page(db, survey.first_page)
        if first_page is None:
            raise ValueError(f"Page not found: {survey.first_page}")

        session = await self._repo.create_session(
            db, survey_id=survey_id, auth=auth, email=email, phone=phone,
        )

        result = None
        starting = [q.id for q in first_page.questions]
        if starting:
            result = await self._traverser.advance(
                db, starting, skip_auth_questions=not auth,
            )

        if result is None or not result.questions:
            logger.info("Session %s: survey %s has nothing to show", session.id, survey_id)
            await self._finish(db, session)
            return self._to_session_info(session)

        response = await self._create_response(db, session, result, previous=None)
        await self._repo.set_last_response(db, session, response.id)

        logger.info(
            "Session started: id=%s survey=%s auth=%s first_response=%s",
            session.id, survey_id, auth, response.id,
        )
        return self._to_session_info(session)

    async def get_session(self, db: Any, session_id: int) -> SessionInfo | None:
        """Fetch session info by id.  Returns None if not found."""
        row = await self._repo.get_session(db, session_id)
        if row is None:
            return None
        return self._to_session_info(row)

    # ==================================================================
    # Responses
    # ==================================================================

    async def get_response(self, db: Any, response_id: int) -> ResponseView:
        """Return a response with overlays resolved against the chain's answers.

        Raises:
            ValueError: the response does not exist.
        """
        response = await self._load_response(db, response_id)
        values = await self._chain_values(db, response)

        page = await self._repo.get_page(db, response.page_id)
        if page is None:
            raise ValueError(f"Page not found: {response.page_id}")

        questions = await self._visible_questions(db, response, values, page.questions)
        progress = Progress(**response.progress) if response.progress else None

        return ResponseView(
            id=response.id,
            session=response.session_id,
            previous_response=response.previous_response_id,
            page=self._overlay.resolve_page(page, values),
            questions=questions,
            values=values,
            progress=progress,
        )

    async def respond(
        self, db: Any, *, response_id: int, values: dict[Any, Any]
    ) -> RespondResult:
        """Submit answers for a response and advance the session.

        Calls for the same response id are serialized; a write that lost a
        race with another process fails with ``ResponseConflictError``.

        Returns:
            RespondResult with ``errors`` (nothing stored), or the
            successor's id, or ``finished=True``.

        Raises:
            ValueError: unknown response or malformed question ids.
            ResponseConflictError: the response changed underneath us.
            ResponseChainError: the successor page is already in this
                response's history (cyclic survey graph).
        """
        submitted = normalize_values(values)

        lock = self._locks.get(response_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[response_id] = lock

        async with lock:
            return await self._respond(db, response_id, submitted)

    async def _respond(
        self, db: Any, response_id: int, values: dict[int, Any]
    ) -> RespondResult:
        response = await self._load_response(db, response_id)
        session = await self._repo.get_session(db, response.session_id)
        if session is None:
            raise ValueError(f"Session not found: {response.session_id}")
        expected_version = response.version

        prior = await self._chain_values(db, response, include_self=False)
        merged = {**prior, **values}

        questions = await self._visible_questions(db, response, merged)
        errors = self._validator.validate(questions, values, context=merged)
        if errors:
            logger.debug("Response %s rejected: %s", response_id, errors)
            return RespondResult(errors=errors)

        nxt: TraversalResult | None = None
        if response.questions:
            walk = await self._traverser.advance(db, list(response.questions), merged)
            if walk.next_page_questions:
                nxt = await self._traverser.advance(
                    db, walk.next_page_questions, skip_auth_questions=not session.auth,
                )

        successor = None
        if nxt is not None and nxt.questions:
            successor = await self._repo.find_response(
                db, session_id=session.id, page_id=nxt.page,
            )
            if successor is not None:
                await self._check_chain(db, response, successor.id)

        response = await self._repo.update_response(
            db, response, expected_version=expected_version, values=values,
        )

        if nxt is None or not nxt.questions:
            await self._finish(db, session)
            return RespondResult(finished=True)

        if successor is not None:
            progress = await self._estimate(db, session, nxt.questions, response)
            successor = await self._repo.update_response(
                db,
                successor,
                expected_version=successor.version,
                questions=nxt.questions,
                previous_response_id=response.id,
                progress=progress.model_dump(),
            )
            logger.info("Response %s: relinked successor %s", response.id, successor.id)
        else:
            successor = await self._create_response(db, session, nxt, previous=response)
            logger.info("Response %s: created successor %s", response.id, successor.id)

        await self._repo.set_last_response(db, session, successor.id)
        return RespondResult(next_response=successor.id)

    # ==================================================================
    # Internal helpers
    # ==================================================================

    async def _load_response(self, db: Any, response_id: int) -> Any:
        response = await self._repo.get_response(db, response_id)
        if response is None:
            raise ValueError(f"Response not found: {response_id}")
        return response

    async def _ancestors(self, db: Any, response: Any) -> list[Any]:
        """Earlier responses of the chain, nearest first."""
        chain = []
        seen = {response.id}
        prev_id = response.previous_response_id
        while prev_id is not None and prev_id not in seen:
            seen.add(prev_id)
            prev = await self._repo.get_response(db, prev_id)
            if prev is None:
                break
            chain.append(prev)
            prev_id = prev.previous_response_id
        return chain

    async def _chain_values(
        self, db: Any, response: Any, *, include_self: bool = True
    ) -> dict[int, Any]:
        """Answers of the chain merged oldest first (later pages win)."""
        merged: dict[int, Any] = {}
        for prev in reversed(await self._ancestors(db, response)):
            merged.update(normalize_values(prev.values))
        if include_self:
            merged.update(normalize_values(response.values))
        return merged

    async def _visible_questions(
        self,
        db: Any,
        response: Any,
        answers: dict[int, Any],
        page_questions: list[Question] | None = None,
    ) -> list[Question]:
        """The response's snapshot resolved against ``answers``, removed ones dropped."""
        by_id = {q.id: q for q in page_questions or []}
        resolved = []
        for qid in response.questions:
            base = by_id.get(qid) or await self._repo.get_question(db, qid)
            if base is None:
                logger.warning("Response %s: question %s not found", response.id, qid)
                continue
            question = self._overlay.resolve_question(base, answers)
            if not question.removed:
                resolved.append(question)
        resolved.sort(key=lambda q: -q.priority)
        return resolved

    async def _check_chain(self, db: Any, response: Any, successor_id: int) -> None:
        if successor_id == response.id:
            raise ResponseChainError(f"Response {response.id} cannot follow itself")
        for prev in await self._ancestors(db, response):
            if prev.id == successor_id:
                raise ResponseChainError(
                    f"Response {successor_id} is already before {response.id} in "
                    f"session {response.session_id}"
                )

    async def _estimate(
        self, db: Any, session: Any, questions: list[int], previous: Any | None
    ) -> Progress:
        previous_progress = None
        if previous is not None and previous.progress:
            previous_progress = Progress(**previous.progress)
        return await self._progress.estimate(
            db,
            questions,
            previous=previous_progress,
            skip_auth_questions=not session.auth,
        )

    async def _create_response(
        self,
        db: Any,
        session: Any,
        result: TraversalResult,
        *,
        previous: Any | None,
    ) -> Any:
        progress = await self._estimate(db, session, result.questions, previous)
        return await self._repo.create_response(
            db,
            session_id=session.id,
            page_id=result.page,
            questions=result.questions,
            previous_response_id=previous.id if previous is not None else None,
            values=await self._prefill(db, session, result.questions),
            progress=progress.model_dump(),
        )

    async def _prefill(self, db: Any, session: Any, questions: list[int]) -> dict[int, Any]:
        """Initial answers for identity-bound questions of an authenticated session."""
        if not session.auth:
            return {}
        identity = {AuthRelation.EMAIL: session.email, AuthRelation.PHONE: session.phone}
        values: dict[int, Any] = {}
        for qid in questions:
            question = await self._repo.get_question(db, qid)
            if question is None or question.auth_relation is None:
                continue
            value = identity.get(question.auth_relation)
            if value:
                values[qid] = value
        return values

    async def _finish(self, db: Any, session: Any) -> None:
        if not await self._repo.finish_session(db, session):
            return
        logger.info("Session finished: id=%s", session.id)
        for listener in self._listeners:
            await listener.session_finished(db, session)

    @staticmethod
    def _to_session_info(row: Any) -> SessionInfo:
        """Convert a session row to the public SessionInfo model."""
        return SessionInfo(
            id=row.id,
            survey=row.survey_id,
            auth=row.auth,
            status=getattr(row.status, "value", row.status),
            last_response=row.last_response_id,
            created_at=row.created_at,
            finished_at=row.finished_at,
        )
