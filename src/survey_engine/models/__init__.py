"""Public model re-exports for survey_engine.

Consumers should import from ``survey_engine.models`` rather than
reaching into sub-modules directly.
"""

# --- Graph ---
from survey_engine.models.graph import (
    AuthRelation,
    Condition,
    DynamicField,
    Option,
    Page,
    Question,
    QuestionType,
    Survey,
    SurveyAuthType,
)

# --- Templates ---
from survey_engine.models.template import (
    ConditionRef,
    DynamicFieldTemplate,
    OptionTemplate,
    PageTemplate,
    QuestionTemplate,
    SurveyTemplate,
)

# --- Session / response ---
from survey_engine.models.session import (
    PageWalk,
    Progress,
    ReportAnswer,
    RespondResult,
    ResponseView,
    SessionInfo,
    TraversalResult,
)

__all__ = [
    # Graph
    "AuthRelation",
    "Condition",
    "DynamicField",
    "Option",
    "Page",
    "Question",
    "QuestionType",
    "Survey",
    "SurveyAuthType",
    # Templates
    "ConditionRef",
    "DynamicFieldTemplate",
    "OptionTemplate",
    "PageTemplate",
    "QuestionTemplate",
    "SurveyTemplate",
    # Session
    "PageWalk",
    "Progress",
    "ReportAnswer",
    "RespondResult",
    "ResponseView",
    "SessionInfo",
    "TraversalResult",
]
