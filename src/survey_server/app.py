"""Application factory and CLI entry point.

``create_app()`` builds the FastAPI application with:
  - Lifespan handler that builds the engine once (and optionally seeds)
  - CORS middleware
  - Global exception handlers (SDK ValueError → 409/403/404/400)
  - All API routes mounted under ``/api/v1``
  - A ``/health`` endpoint for readiness probes

The ``cli()`` function is the ``survey-server`` console-script entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from survey_db.engine import dispose_engine, get_engine, get_session_factory
from survey_db.repository import SurveyRepository
from survey_engine.engine import SurveyEngine
from survey_engine.report import ReportBuilder
from survey_engine.templates import TemplateStore

from survey_server.config import ServerSettings, load_settings
from survey_server.errors import (
    generic_error_handler,
    key_error_handler,
    value_error_handler,
)
from survey_server.routes import register_routes
from survey_server.seed import seed_templates

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Lifespan — runs once at startup/shutdown
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialise shared resources at startup, tear down on shutdown.

    Startup:
      1. Optionally seed the survey templates (``SERVER_SEED_ON_STARTUP``)
      2. Build the ``SurveyEngine`` with the report listener
      3. Stash it on ``app.state`` for dependency injection

    Shutdown:
      1. Dispose the database engine's connection pool
    """
    settings: ServerSettings = app.state.settings

    if settings.seed_on_startup:
        store = TemplateStore(settings.template_dir)
        store.load()
        async with get_session_factory()() as db:
            async with db.begin():
                await seed_templates(db, store, refresh=settings.seed_refresh)

    repo = SurveyRepository()
    app.state.engine = SurveyEngine(repo, listeners=[ReportBuilder(repo)])
    logger.info("SurveyEngine ready")

    yield

    await dispose_engine()
    logger.info("Database engine disposed")


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------

def create_app(settings: ServerSettings | None = None) -> FastAPI:
    """Build and return the configured FastAPI application."""
    if settings is None:
        settings = load_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Survey API Server",
        description="REST API for branching multi-page surveys",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(KeyError, key_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    @app.get("/health")
    async def health() -> dict:
        """Readiness probe — verifies DB connectivity."""
        try:
            async with get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "ok"}
        except Exception as exc:
            logger.error("Health check failed: %s", exc)
            return {"status": "error", "detail": str(exc)}

    register_routes(app)
    return app


# Module-level ASGI export (for uvicorn survey_server.app:app)
app = create_app()


def cli() -> None:
    """Console-script entry point: ``survey-server``."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "survey_server.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
