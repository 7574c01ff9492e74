"""Question-graph traversal.

Two layers:

  - :func:`walk_page` — pure page-local walk.  Starting from a set of
    question ids, follows ``next_question`` and option edges within one
    page, collecting the visible questions and the ids that lie on later
    pages (the frontier).
  - :class:`GraphTraverser` — cross-page traversal.  Loads the owning page
    from storage, resolves overlays, runs the page walk and, when the
    page turns out empty (conditions, removed questions, auth filtering),
    moves on to the frontier until a page with visible content or the end
    of the graph is reached.

Both layers have two modes selected by ``answers``:

  - ``answers=None`` — structural mode.  Conditions are ignored and every
    option edge is followed.  Used for progress estimation and to
    materialize the next page.
  - ``answers`` given — value mode.  Guards are checked, overlays applied,
    and only the selected options' edges are followed.
"""

from __future__ import annotations

import logging
from typing import Any

from survey_engine.constants import BRANCHING_TYPES, MAX_PAGE_HOPS, MULTI_VALUE_TYPES
from survey_engine.errors import TraversalLimitError
from survey_engine.evaluator import ConditionEvaluator
from survey_engine.interfaces import SurveyStorage
from survey_engine.models.graph import Question
from survey_engine.models.session import PageWalk, TraversalResult
from survey_engine.overlay import OverlayResolver

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Page-local walk
# ---------------------------------------------------------------------------

def walk_page(
    starting: list[int],
    page_questions: list[Question],
    answers: dict[int, Any] | None = None,
    evaluator: ConditionEvaluator | None = None,
) -> PageWalk:
    """Walk the question graph of a single page.

    Args:
        starting: question ids to expand from
        page_questions: the page's questions (overlay-resolved in value mode)
        answers: submitted answers; None selects structural mode
        evaluator: condition evaluator (a default one is created if omitted)

    Returns:
        PageWalk with the visible ids (descending priority) and the ids
        reached on other pages, in discovery order.
    """
    evaluator = evaluator or ConditionEvaluator()
    by_id = {q.id: q for q in page_questions}

    # dicts as ordered sets
    seen: dict[int, None] = {}
    visited: dict[int, Question] = {}
    frontier: dict[int, None] = {}

    def expand(qid: int | None) -> None:
        if qid is None or qid in seen:
            return
        seen[qid] = None

        question = by_id.get(qid)
        if question is None:
            frontier[qid] = None
            return

        if answers is not None and not evaluator.satisfied(question.condition, answers):
            return

        # removed by an overlay: hidden, but its edges still lead somewhere
        if not question.removed:
            visited[qid] = question

        expand(question.next_question)

        if question.type not in BRANCHING_TYPES:
            return
        if answers is None:
            for option in question.options:
                expand(option.next_question)
            return

        for option in _selected_options(question, answers.get(qid)):
            expand(option.next_question)

    for qid in starting:
        expand(qid)

    ordered = sorted(visited.values(), key=lambda q: -q.priority)
    return PageWalk(
        questions=[q.id for q in ordered],
        next_page_questions=list(frontier),
    )


def _selected_options(question: Question, answer: Any) -> list:
    if answer is None or answer == "" or answer == []:
        return []
    chosen = answer if question.type in MULTI_VALUE_TYPES and isinstance(answer, list) else [answer]
    # booleans are never option ids
    chosen = [c for c in chosen if not isinstance(c, bool)]
    return [o for o in question.options if o.id in chosen]


# ---------------------------------------------------------------------------
# Cross-page traversal
# ---------------------------------------------------------------------------

class GraphTraverser:
    """Runs page walks across page boundaries, skipping pages left empty.

    Args:
        repo: storage backend used to load questions and pages
        overlay: resolver applied to page questions in value mode
    """

    def __init__(
        self,
        repo: SurveyStorage,
        overlay: OverlayResolver | None = None,
        evaluator: ConditionEvaluator | None = None,
    ) -> None:
        self._repo = repo
        self._evaluator = evaluator or ConditionEvaluator()
        self._overlay = overlay or OverlayResolver(self._evaluator)

    async def advance(
        self,
        db: Any,
        starting: list[int],
        answers: dict[int, Any] | None = None,
        *,
        skip_auth_questions: bool = False,
    ) -> TraversalResult:
        """Find the next page with visible questions, starting from ``starting``.

        All ids in ``starting`` are assumed to sit on the same page; the
        page of the first id is used.

        Raises:
            ValueError: ``starting`` is empty or names an unknown question.
            TraversalLimitError: more than ``MAX_PAGE_HOPS`` consecutive
                pages were empty (cyclic graph).
        """
        if not starting:
            raise ValueError("Traversal needs at least one starting question")

        current = list(starting)
        for _ in range(MAX_PAGE_HOPS):
            page_id, questions = await self._load_page_questions(db, current[0])
            if answers is not None:
                questions = self._overlay.resolve_questions(questions, answers)

            walk = walk_page(current, questions, answers, self._evaluator)
            visible = walk.questions
            if skip_auth_questions:
                auth_ids = {q.id for q in questions if q.auth_relation is not None}
                visible = [qid for qid in visible if qid not in auth_ids]

            if visible or not walk.next_page_questions:
                return TraversalResult(
                    page=page_id,
                    questions=visible,
                    next_page_questions=walk.next_page_questions,
                )

            logger.debug("page %s has no visible questions, skipping", page_id)
            current = walk.next_page_questions

        raise TraversalLimitError(
            f"Traversal from questions {starting} crossed more than "
            f"{MAX_PAGE_HOPS} empty pages"
        )

    async def _load_page_questions(self, db: Any, question_id: int):
        question = await self._repo.get_question(db, question_id)
        if question is None:
            raise ValueError(f"Question not found: {question_id}")
        page = await self._repo.get_page(db, question.page)
        if page is None:
            raise ValueError(f"Page not found: {question.page}")
        return page.id, page.questions
