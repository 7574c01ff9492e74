"""Pydantic models for symbolic survey templates.

Templates mirror the YAML files under ``surveys/``.  Every cross-reference
inside a template uses an author-chosen symbolic id (a string such as
``"17.1"``) rather than a storage id, because questions routinely point
forward to questions defined later, and option cycles point back.  The
:class:`~survey_engine.builder.GraphBuilder` resolves them.

A condition reference picks its expected value one of three ways:
  - ``value``: given literally
  - ``value_index``: the n-th option (creation order) of the referenced question
  - neither: the option of the referenced question whose ``next_question``
    is the guarded question (reverse lookup)
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, field_validator

from .graph import AuthRelation, QuestionType, SurveyAuthType, as_condition_list


def _symbolic(v: Any) -> Any:
    # YAML authors write 4 and "4" interchangeably
    if v is None:
        return None
    return str(v)


class ConditionRef(BaseModel):
    """Symbolic condition: question id plus a literal or derived value."""

    question: str
    value: Any = None
    value_index: Optional[int] = None

    @field_validator("question", mode="before")
    @classmethod
    def _question_to_str(cls, v):
        return _symbolic(v)


class DynamicFieldTemplate(BaseModel):
    """Symbolic overlay patch.

    When ``values`` carries ``options``, its items are indexes into the
    owning question's option list and are translated to option ids at
    build time.
    """

    condition: ConditionRef
    values: dict[str, Any] = {}


class OptionTemplate(BaseModel):
    title: str
    next_question: Optional[str] = None

    @field_validator("next_question", mode="before")
    @classmethod
    def _next_to_str(cls, v):
        return _symbolic(v)


class QuestionTemplate(BaseModel):
    """One question as authored; ``id`` is symbolic and unique per survey."""

    id: str
    type: QuestionType = QuestionType.INPUT
    title: Optional[str] = None
    description: Optional[str] = None
    hint: Optional[str] = None
    required: bool = True
    risk_evaluation: bool = True
    next_question: Optional[str] = None
    auth_relation: Optional[AuthRelation] = None
    export_field: Optional[str] = None
    condition: List[ConditionRef] = []
    dynamic_fields: List[DynamicFieldTemplate] = []
    options: List[OptionTemplate] = []

    @field_validator("id", "next_question", mode="before")
    @classmethod
    def _ids_to_str(cls, v):
        return _symbolic(v)

    @field_validator("condition", mode="before")
    @classmethod
    def _listify(cls, v):
        return as_condition_list(v)


class PageTemplate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    dynamic_fields: List[DynamicFieldTemplate] = []
    questions: List[QuestionTemplate] = []


class SurveyTemplate(BaseModel):
    """A complete survey definition; pages are in display order."""

    title: str
    description: Optional[str] = None
    icon: Optional[str] = None
    auth_type: SurveyAuthType = SurveyAuthType.NONE
    export_list: Optional[str] = None
    pages: List[PageTemplate]
