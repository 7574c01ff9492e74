"""ORM models for survey_db."""

from survey_db.models.base import Base
from survey_db.models.enums import SessionStatus
from survey_db.models.report import ReportRow
from survey_db.models.seed import SeedMetadata
from survey_db.models.session import ResponseRow, SurveySession
from survey_db.models.survey import OptionRow, PageRow, QuestionRow, SurveyRow

__all__ = [
    "Base",
    "SessionStatus",
    "SurveyRow",
    "PageRow",
    "QuestionRow",
    "OptionRow",
    "SurveySession",
    "ResponseRow",
    "ReportRow",
    "SeedMetadata",
]
