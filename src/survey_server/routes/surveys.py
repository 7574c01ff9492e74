"""Survey catalogue endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.engine import SurveyEngine
from survey_engine.models.graph import Survey

from survey_server.dependencies import get_db, get_engine

router = APIRouter(tags=["surveys"])


@router.get("/surveys")
async def list_surveys(
    db: AsyncSession = Depends(get_db),
    engine: SurveyEngine = Depends(get_engine),
) -> list[Survey]:
    """List all surveys, highest priority first."""
    return await engine.list_surveys(db)
