"""survey_engine — survey graph traversal SDK.

Public API:
    SurveyEngine      — response state machine (start, read, respond, finish)
    GraphTraverser    — cross-page traversal over a storage backend
    walk_page         — pure page-local traversal
    OverlayResolver   — applies answer-dependent patches to questions/pages
    ConditionEvaluator — evaluates visibility guards
    AnswerValidator   — per-type validation of submitted answers
    ProgressEstimator — "page N of M" estimation
    GraphBuilder      — two-phase template-to-graph builder
    TemplateSeeder    — idempotent, hash-keyed seeding of templates
    TemplateStore     — loads YAML templates from ``surveys/``
    ReportBuilder     — finish listener flattening a session into a report

Storage:
    SurveyStorage     — ABC implemented by storage backends
    FinishListener    — ABC for session-finished callbacks
    InMemoryStorage   — dict-backed backend for tooling and tests
"""

from survey_engine.builder import GraphBuilder, TemplateSeeder, template_hash
from survey_engine.engine import SurveyEngine
from survey_engine.errors import (
    ResponseChainError,
    ResponseConflictError,
    TemplateReferenceError,
    TraversalLimitError,
)
from survey_engine.evaluator import ConditionEvaluator
from survey_engine.interfaces import FinishListener, SurveyStorage
from survey_engine.memory import InMemoryStorage
from survey_engine.models.session import (
    Progress,
    RespondResult,
    ResponseView,
    SessionInfo,
)
from survey_engine.overlay import OverlayResolver
from survey_engine.progress import ProgressEstimator
from survey_engine.report import ReportBuilder
from survey_engine.templates import TemplateStore
from survey_engine.traversal import GraphTraverser, walk_page
from survey_engine.validation import AnswerValidator

__all__ = [
    # Engine & collaborators
    "SurveyEngine",
    "GraphTraverser",
    "walk_page",
    "OverlayResolver",
    "ConditionEvaluator",
    "AnswerValidator",
    "ProgressEstimator",
    "ReportBuilder",
    # Templates
    "GraphBuilder",
    "TemplateSeeder",
    "TemplateStore",
    "template_hash",
    # Storage
    "SurveyStorage",
    "FinishListener",
    "InMemoryStorage",
    # Results
    "Progress",
    "RespondResult",
    "ResponseView",
    "SessionInfo",
    # Errors
    "ResponseChainError",
    "ResponseConflictError",
    "TemplateReferenceError",
    "TraversalLimitError",
]
