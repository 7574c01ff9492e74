"""Session and response models — the contract between the engine and API callers.

These models define what the engine returns.  They are intentionally
decoupled from the ORM models in ``survey_db`` so that API consumers never
see database internals.

  - PageWalk / TraversalResult: traversal outputs
  - Progress: "page N of M" estimate stored on each response
  - ResponseView: a response with overlays resolved against prior answers
  - RespondResult: outcome of one submission (errors, successor, or finish)
  - SessionInfo: public view of a started session
  - ReportAnswer: one flattened answer line consumed by reporting
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from .graph import Page, Question, QuestionType


class PageWalk(BaseModel):
    """Result of walking one page's question graph."""

    # Visible question ids, descending priority
    questions: list[int]
    # Ids reached through edges that leave the page, in discovery order
    next_page_questions: list[int]


class TraversalResult(PageWalk):
    """Page walk resolved across page boundaries; ``page`` owns ``questions``."""

    page: int


class Progress(BaseModel):
    """Position of a response within its session: page ``current`` of ``total``.

    ``truncated`` is set when the estimator hit its iteration cap, meaning
    ``total`` is a lower bound (usually a cyclic survey graph).
    """

    current: int
    total: int
    truncated: bool = False


class ResponseView(BaseModel):
    """A response as shown to the respondent.

    ``values`` merges the answers of the whole chain (earlier pages first),
    and both ``page`` and ``questions`` have their overlay patches applied
    against it.  Questions removed by an overlay are not listed.
    """

    id: int
    session: int
    previous_response: Optional[int] = None
    page: Page
    questions: list[Question]
    values: dict[int, Any]
    progress: Optional[Progress] = None


class RespondResult(BaseModel):
    """Outcome of ``SurveyEngine.respond``.

    Exactly one of these shapes is returned:
      - ``errors`` non-empty: submission rejected, nothing persisted
      - ``next_response`` set: answers stored, respondent moves on
      - ``finished`` true: answers stored, session completed
    """

    errors: dict[int, str] = {}
    next_response: Optional[int] = None
    finished: bool = False


class SessionInfo(BaseModel):
    """Public view of session state for API consumers."""

    id: int
    survey: int
    auth: bool
    status: str
    last_response: Optional[int] = None
    created_at: datetime
    finished_at: Optional[datetime] = None


class ReportAnswer(BaseModel):
    """One line of a finished session's answer list."""

    question_id: Optional[int] = None
    title: Optional[str] = None
    answer: Any = None
    type: Optional[QuestionType] = None
    required: bool = False
    risk_evaluation: bool = False
    export_field: Optional[str] = None
