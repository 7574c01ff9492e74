"""Graph models for materialized surveys.

A survey is a pointer-linked graph:

  - Survey: entry point, references its first page
  - Page: ordered container of questions, with page-level overlay patches
  - Question: graph node; may point to a ``next_question`` and may be
    guarded by a ``condition``
  - Option: selectable choice of a branching question; may point to its
    own ``next_question`` (the branch taken when the option is selected)

These models are read-only snapshots built from storage.  Overlay
resolution never mutates them; it returns patched copies.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class QuestionType(str, enum.Enum):
    """Closed set of question kinds.

    Answer shape per kind:
      - SELECT, RADIO, INFOCARD, ADDRESS: a single option id
      - MULTISELECT: a list of option ids
      - CHECKBOX: a boolean
      - EMAIL, INPUT, NUMBER, TEXT, DATE, DATETIME: a scalar
      - FILES: a list of ``{url, ...}`` dicts
      - LOCATION: a GeoJSON feature collection
    """

    SELECT = "SELECT"
    RADIO = "RADIO"
    INFOCARD = "INFOCARD"
    ADDRESS = "ADDRESS"
    MULTISELECT = "MULTISELECT"
    CHECKBOX = "CHECKBOX"
    EMAIL = "EMAIL"
    INPUT = "INPUT"
    NUMBER = "NUMBER"
    TEXT = "TEXT"
    DATE = "DATE"
    DATETIME = "DATETIME"
    FILES = "FILES"
    LOCATION = "LOCATION"


class AuthRelation(str, enum.Enum):
    """Session identity field a question's answer is prefilled from."""

    EMAIL = "EMAIL"
    PHONE = "PHONE"


class SurveyAuthType(str, enum.Enum):
    """Whether respondents may, must, or never authenticate."""

    NONE = "NONE"
    OPTIONAL = "OPTIONAL"
    REQUIRED = "REQUIRED"


def as_condition_list(value: Any) -> list:
    """Normalise a single condition, a list of them, or nothing to a list."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


class Condition(BaseModel):
    """Guard: question ``question``'s answer equals (or contains) ``value``."""

    model_config = ConfigDict(frozen=True)

    question: int
    value: Any = None


class DynamicField(BaseModel):
    """Overlay patch: when ``condition`` holds, merge ``values`` over the entity."""

    model_config = ConfigDict(frozen=True)

    condition: list[Condition]
    values: dict[str, Any]

    @field_validator("condition", mode="before")
    @classmethod
    def _listify(cls, v):
        return as_condition_list(v)


class Option(BaseModel):
    """A selectable choice belonging to exactly one branching question."""

    model_config = ConfigDict(frozen=True)

    id: int
    question: int
    title: str
    priority: int = 0
    next_question: Optional[int] = None


class Question(BaseModel):
    """A survey graph node.

    ``removed`` is never stored: it is set only on overlay-resolved copies
    when a patch carries the template's ``condition: false`` sentinel, and
    means "drop this question from its page".
    """

    model_config = ConfigDict(frozen=True)

    id: int
    page: int
    survey: Optional[int] = None
    type: QuestionType = QuestionType.INPUT
    title: Optional[str] = None
    description: Optional[str] = None
    hint: Optional[str] = None
    required: bool = False
    risk_evaluation: bool = False
    priority: int = 0
    next_question: Optional[int] = None
    auth_relation: Optional[AuthRelation] = None
    # column name of this answer in external report exports
    export_field: Optional[str] = None
    condition: list[Condition] = []
    dynamic_fields: list[DynamicField] = []
    options: list[Option] = []
    removed: bool = False

    @field_validator("condition", mode="before")
    @classmethod
    def _listify(cls, v):
        return as_condition_list(v)

    @field_validator("dynamic_fields", mode="before")
    @classmethod
    def _default_patches(cls, v):
        return v or []

    def option_ids(self) -> list[int]:
        return [o.id for o in self.options]


class Page(BaseModel):
    """Ordered group of questions shown together."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: Optional[str] = None
    description: Optional[str] = None
    dynamic_fields: list[DynamicField] = []
    questions: list[Question] = []

    @field_validator("dynamic_fields", mode="before")
    @classmethod
    def _default_patches(cls, v):
        return v or []

    def find_question(self, question_id: int) -> Question | None:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None


class Survey(BaseModel):
    """A questionnaire; traversal starts at ``first_page``."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: Optional[str] = None
    icon: Optional[str] = None
    priority: int = 0
    first_page: int
    auth_type: SurveyAuthType = SurveyAuthType.NONE
    # target list of external report exports
    export_list: Optional[str] = None
