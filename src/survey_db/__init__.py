"""survey_db — PostgreSQL persistence layer for surveys and sessions.

Provides the ORM models, async engine factory, and the repository that
implements ``survey_engine.interfaces.SurveyStorage``.  Consumed by the
FastAPI server and the seed CLI.
"""

from survey_db.engine import dispose_engine, get_engine, get_session_factory
from survey_db.models.enums import SessionStatus
from survey_db.models.session import ResponseRow, SurveySession
from survey_db.repository import SurveyRepository

__all__ = [
    "ResponseRow",
    "SurveySession",
    "SessionStatus",
    "get_engine",
    "get_session_factory",
    "dispose_engine",
    "SurveyRepository",
]
