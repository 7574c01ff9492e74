"""FastAPI dependency injection — provides DB sessions and the engine.

Each request that touches the database gets a fresh ``AsyncSession`` via
``get_db()``.  The session is committed on success and rolled back on
error, matching the SDK convention where the engine and repository call
``flush()`` but never ``commit()``.
"""

from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from survey_db.engine import get_session_factory
from survey_engine.engine import SurveyEngine


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session; commit on success, rollback on error."""
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_engine(request: Request) -> SurveyEngine:
    """Return the engine singleton from ``app.state``."""
    return request.app.state.engine
