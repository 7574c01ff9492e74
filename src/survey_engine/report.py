"""ReportBuilder — flattens a finished session into an answer list.

Registered on the engine as a :class:`FinishListener`.  When a session
finishes, the response chain is walked back from ``last_response``,
reversed into visiting order, and every question shown along the way is
turned into one :class:`ReportAnswer` line with a human-readable answer:

    SELECT / RADIO / INFOCARD   option title
    MULTISELECT                 list of option titles
    FILES                       list of file urls
    LOCATION                    coordinate pair
    anything else               the raw value

Questions whose guard does not hold against the session's answers are
left out.  Surveys with optional authentication get a leading
"anonymous" line.  Rendering (CSV or otherwise) is left to consumers of
the stored report.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from survey_engine.evaluator import ConditionEvaluator
from survey_engine.interfaces import FinishListener, SurveyStorage
from survey_engine.models.graph import Question, QuestionType, SurveyAuthType
from survey_engine.models.session import ReportAnswer
from survey_engine.overlay import OverlayResolver
from survey_engine.validation import is_blank

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Display values
# ---------------------------------------------------------------------------

def _option_title(question: Question, value: Any) -> Any:
    for option in question.options:
        if option.id == value:
            return option.title
    return value


def _option_titles(question: Question, value: Any) -> Any:
    items = value if isinstance(value, list) else [value]
    return [_option_title(question, item) for item in items]


def _file_urls(question: Question, value: Any) -> Any:
    return [item.get("url") for item in value if isinstance(item, dict)]


def _coordinates(question: Question, value: Any) -> Any:
    try:
        return value["features"][0]["geometry"]["coordinates"] or []
    except (KeyError, IndexError, TypeError):
        return []


def _raw(question: Question, value: Any) -> Any:
    return value


DISPLAY: dict[QuestionType, Callable[[Question, Any], Any]] = {
    QuestionType.SELECT: _option_title,
    QuestionType.RADIO: _option_title,
    QuestionType.INFOCARD: _option_title,
    QuestionType.ADDRESS: _raw,
    QuestionType.MULTISELECT: _option_titles,
    QuestionType.CHECKBOX: _raw,
    QuestionType.EMAIL: _raw,
    QuestionType.INPUT: _raw,
    QuestionType.NUMBER: _raw,
    QuestionType.TEXT: _raw,
    QuestionType.DATE: _raw,
    QuestionType.DATETIME: _raw,
    QuestionType.FILES: _file_urls,
    QuestionType.LOCATION: _coordinates,
}


def display_value(question: Question, value: Any) -> Any:
    """Human-readable rendering of ``value`` as an answer to ``question``."""
    if is_blank(value):
        return value
    return DISPLAY[question.type](question, value)


# ---------------------------------------------------------------------------
# ReportBuilder
# ---------------------------------------------------------------------------

ANONYMOUS_TITLE = "Anonymous?"
ANONYMOUS_EXPORT_FIELD = "anonymous"


class ReportBuilder(FinishListener):
    """Builds and stores the answer list of a finished session."""

    def __init__(self, repo: SurveyStorage) -> None:
        self._repo = repo
        self._evaluator = ConditionEvaluator()
        self._overlay = OverlayResolver(self._evaluator)

    async def session_finished(self, db: Any, session: Any) -> None:
        answers = await self.build(db, session)
        survey = await self._repo.get_survey(db, session.survey_id)
        await self._repo.save_report(
            db,
            session,
            answers=[a.model_dump(mode="json") for a in answers],
            export_list=survey.export_list if survey is not None else None,
        )
        logger.info("Report stored: session=%s answers=%d", session.id, len(answers))

    async def build(self, db: Any, session: Any) -> list[ReportAnswer]:
        """Flatten the session's response chain into report lines."""
        chain = []
        seen: set[int] = set()
        response_id = session.last_response_id
        while response_id is not None and response_id not in seen:
            seen.add(response_id)
            response = await self._repo.get_response(db, response_id)
            if response is None:
                break
            chain.append(response)
            response_id = response.previous_response_id
        chain.reverse()

        merged: dict[int, Any] = {}
        for response in chain:
            merged.update({int(k): v for k, v in response.values.items()})

        lines: list[ReportAnswer] = []
        survey = await self._repo.get_survey(db, session.survey_id)
        if survey is not None and survey.auth_type == SurveyAuthType.OPTIONAL:
            lines.append(ReportAnswer(
                title=ANONYMOUS_TITLE,
                answer="no" if session.auth else "yes",
                required=True,
                risk_evaluation=False,
                export_field=ANONYMOUS_EXPORT_FIELD,
            ))

        for response in chain:
            for qid in response.questions:
                base = await self._repo.get_question(db, qid)
                if base is None:
                    logger.warning("Report: question %s vanished, skipped", qid)
                    continue
                question = self._overlay.resolve_question(base, merged)
                if question.removed or not self._evaluator.satisfied(question.condition, merged):
                    continue

                value = merged.get(qid)
                lines.append(ReportAnswer(
                    question_id=question.id,
                    title=question.title,
                    answer=display_value(question, value),
                    type=question.type,
                    required=question.required,
                    risk_evaluation=question.risk_evaluation,
                    export_field=question.export_field,
                ))
        return lines
