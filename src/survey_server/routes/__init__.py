"""Route registration — mounts all routers under ``/api/v1``."""

from fastapi import FastAPI

from survey_server.routes.responses import router as responses_router
from survey_server.routes.sessions import router as sessions_router
from survey_server.routes.surveys import router as surveys_router

API_PREFIX = "/api/v1"


def register_routes(app: FastAPI) -> None:
    """Include all sub-routers under the versioned API prefix."""
    app.include_router(surveys_router, prefix=API_PREFIX)
    app.include_router(sessions_router, prefix=API_PREFIX)
    app.include_router(responses_router, prefix=API_PREFIX)
