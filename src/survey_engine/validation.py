"""AnswerValidator — checks submitted values against visible questions.

Validation never raises: the result is a ``{question_id: code}`` map that
is handed back to the respondent as-is.  An empty map means the
submission is acceptable.

Codes:
    REQUIRED                          required and blank (guard holds)
    OPTION: <ids>                     unknown option id
    ARRAY: <ids>                      MULTISELECT value is not a list
    BOOLEAN                           CHECKBOX value is not a bool
    FILES must be array               FILES value is not a list
    FILES item must have url property FILES entry without ``url``
    EMAIL                             not an e-mail address
    LOCATION                          no ``features[0].geometry.coordinates``

``<ids>`` lists the question's current option ids, comma-separated.
"""

from __future__ import annotations

import re
from typing import Any, Callable

from survey_engine.evaluator import ConditionEvaluator
from survey_engine.models.graph import Question, QuestionType

_EMAIL_RE = re.compile(
    r'^(([^<>()\[\]\\.,;:\s@"]+(\.[^<>()\[\]\\.,;:\s@"]+)*)|.(".+"))@'
    r"((\[[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\])|(([a-zA-Z\-0-9]+\.)+[a-zA-Z]{2,}))$"
)


def is_blank(value: Any) -> bool:
    """True for values that count as "not answered".

    ``0`` is an answer; an unticked checkbox (``False``) is not.
    """
    return value is None or value is False or value == "" or value == []


def _option_list(question: Question) -> str:
    return ",".join(str(oid) for oid in question.option_ids())


# ---------------------------------------------------------------------------
# Per-type checks: return an error code or None
# ---------------------------------------------------------------------------

def _known_option(question: Question, value: Any) -> bool:
    # JSON true/false must not pass as option ids 1/0
    return not isinstance(value, bool) and value in question.option_ids()


def _check_single_option(question: Question, value: Any) -> str | None:
    if not _known_option(question, value):
        return f"OPTION: {_option_list(question)}"
    return None


def _check_multi_option(question: Question, value: Any) -> str | None:
    if not isinstance(value, list):
        return f"ARRAY: {_option_list(question)}"
    if not all(_known_option(question, item) for item in value):
        return f"OPTION: {_option_list(question)}"
    return None


def _check_boolean(question: Question, value: Any) -> str | None:
    return None if isinstance(value, bool) else "BOOLEAN"


def _check_files(question: Question, value: Any) -> str | None:
    if not isinstance(value, list):
        return "FILES must be array"
    for item in value:
        if not isinstance(item, dict) or not item.get("url"):
            return "FILES item must have url property"
    return None


def _check_email(question: Question, value: Any) -> str | None:
    return None if _EMAIL_RE.match(str(value).lower()) else "EMAIL"


def _check_location(question: Question, value: Any) -> str | None:
    try:
        coordinates = value["features"][0]["geometry"]["coordinates"]
    except (KeyError, IndexError, TypeError):
        return "LOCATION"
    return None if coordinates else "LOCATION"


def _no_check(question: Question, value: Any) -> str | None:
    return None


# ADDRESS answers are option ids too, but the option set is not enforced.
CHECKS: dict[QuestionType, Callable[[Question, Any], str | None]] = {
    QuestionType.SELECT: _check_single_option,
    QuestionType.RADIO: _check_single_option,
    QuestionType.INFOCARD: _check_single_option,
    QuestionType.ADDRESS: _no_check,
    QuestionType.MULTISELECT: _check_multi_option,
    QuestionType.CHECKBOX: _check_boolean,
    QuestionType.EMAIL: _check_email,
    QuestionType.INPUT: _no_check,
    QuestionType.NUMBER: _no_check,
    QuestionType.TEXT: _no_check,
    QuestionType.DATE: _no_check,
    QuestionType.DATETIME: _no_check,
    QuestionType.FILES: _check_files,
    QuestionType.LOCATION: _check_location,
}


class AnswerValidator:
    """Validates one page submission."""

    def __init__(self, evaluator: ConditionEvaluator | None = None) -> None:
        self._evaluator = evaluator or ConditionEvaluator()

    def validate(
        self,
        questions: list[Question],
        values: dict[int, Any],
        context: dict[int, Any] | None = None,
    ) -> dict[int, str]:
        """Return the error map for ``values`` against ``questions``.

        Args:
            questions: the visible, overlay-resolved questions of the page
            values: submitted answers for this page
            context: answers used to evaluate REQUIRED guards; defaults to
                ``values`` (callers pass the chain's merged answers)
        """
        context = values if context is None else context
        errors: dict[int, str] = {}
        for question in questions:
            value = values.get(question.id)
            if is_blank(value):
                if question.required and self._evaluator.satisfied(question.condition, context):
                    errors[question.id] = "REQUIRED"
                continue

            error = CHECKS[question.type](question, value)
            if error:
                errors[question.id] = error
        return errors
