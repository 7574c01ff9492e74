"""Seed CLI — load survey templates and materialize them in PostgreSQL.

Usage::

    survey-seed                       # surveys/ at repo root, seed if empty
    survey-seed --dir path/to/surveys
    survey-seed --refresh             # rebuild when the template hash changed

Exit codes: 0 on success (including "nothing to do"), 1 when a template
is invalid or references an unknown question.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

from survey_db.engine import dispose_engine, get_session_factory
from survey_db.repository import SurveyRepository
from survey_engine.builder import TemplateSeeder
from survey_engine.errors import TemplateReferenceError
from survey_engine.templates import TemplateStore

logger = logging.getLogger(__name__)


async def seed_templates(db, store: TemplateStore, *, refresh: bool) -> bool:
    """Run the seeder for ``store``'s templates inside the caller's transaction."""
    seeder = TemplateSeeder(SurveyRepository())
    return await seeder.seed(
        db, store.templates, content_hash=store.content_hash(), refresh=refresh,
    )


async def _run(template_dir: str | None, refresh: bool) -> bool:
    store = TemplateStore(template_dir)
    store.load()

    factory = get_session_factory()
    try:
        async with factory() as db:
            async with db.begin():
                return await seed_templates(db, store, refresh=refresh)
    finally:
        await dispose_engine()


def cli() -> None:
    """Console-script entry point: ``survey-seed``."""
    parser = argparse.ArgumentParser(description="Seed survey templates into the database")
    parser.add_argument(
        "--dir",
        default=os.getenv("SERVER_TEMPLATE_DIR") or None,
        help="Template directory (default: surveys/ at the repo root)",
    )
    parser.add_argument(
        "--refresh",
        action=argparse.BooleanOptionalAction,
        default=os.getenv("SEED_REFRESH_ENABLED", "false").lower() == "true",
        help="Rebuild all surveys when the template content hash changed",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    try:
        changed = asyncio.run(_run(args.dir, args.refresh))
    except (TemplateReferenceError, FileNotFoundError, ValueError) as exc:
        logger.error("Seeding failed: %s", exc)
        sys.exit(1)

    logger.info("Seeding %s", "completed" if changed else "skipped, nothing to do")


if __name__ == "__main__":
    cli()
