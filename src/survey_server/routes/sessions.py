"""Session endpoints — start a session, read its state.

Starting a session also creates its first response; clients continue
with ``GET /responses/{last_response}``.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.engine import SurveyEngine
from survey_engine.models.session import SessionInfo

from survey_server.dependencies import get_db, get_engine

router = APIRouter(tags=["sessions"])


# ------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------

class StartSessionRequest(BaseModel):
    """Body for POST /sessions."""
    survey_id: int
    auth: bool = False
    email: str | None = None
    phone: str | None = None


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("/sessions", status_code=201)
async def start_session(
    body: StartSessionRequest,
    db: AsyncSession = Depends(get_db),
    engine: SurveyEngine = Depends(get_engine),
) -> SessionInfo:
    """Start a survey session.

    Returns 201 with the session and its first response id.  Raises 404
    for an unknown survey and 403 when the survey requires authentication.
    """
    return await engine.start_session(
        db,
        survey_id=body.survey_id,
        auth=body.auth,
        email=body.email,
        phone=body.phone,
    )


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: int,
    db: AsyncSession = Depends(get_db),
    engine: SurveyEngine = Depends(get_engine),
) -> SessionInfo:
    info = await engine.get_session(db, session_id)
    if info is None:
        raise ValueError(f"Session not found: {session_id}")
    return info
