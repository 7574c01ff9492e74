"""Response endpoints — read the current page, submit answers.

A submission either returns per-question validation errors (nothing is
stored), the id of the next response, or ``finished: true``.
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.engine import SurveyEngine
from survey_engine.models.session import RespondResult, ResponseView

from survey_server.dependencies import get_db, get_engine

router = APIRouter(tags=["responses"])


class RespondRequest(BaseModel):
    """Body for POST /responses/{id}/respond; keys are question ids."""
    values: dict[str, Any] = {}


@router.get("/responses/{response_id}")
async def get_response(
    response_id: int,
    db: AsyncSession = Depends(get_db),
    engine: SurveyEngine = Depends(get_engine),
) -> ResponseView:
    """Return the page, its resolved questions and the answers so far."""
    return await engine.get_response(db, response_id)


@router.post("/responses/{response_id}/respond")
async def respond(
    response_id: int,
    body: RespondRequest,
    db: AsyncSession = Depends(get_db),
    engine: SurveyEngine = Depends(get_engine),
) -> RespondResult:
    """Submit answers for a response.

    Returns 200 with the result (validation errors are part of the body),
    404 for an unknown response and 409 when the response was changed by
    a concurrent submission.
    """
    return await engine.respond(db, response_id=response_id, values=body.values)
