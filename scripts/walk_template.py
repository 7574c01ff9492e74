#!/usr/bin/env python3
"""Walk a survey template end-to-end against the in-memory backend.

Builds each template from ``surveys/`` (or ``--dir``) into an
:class:`InMemoryStorage`, starts a session and answers every page with
random valid values until the session finishes, printing one table row
per page visited.  Useful to eyeball branching, overlays and progress
without a database.

Usage::

    # Walk every bundled template once, random answers
    python scripts/walk_template.py

    # Reproducible run, authenticated session
    python scripts/walk_template.py --seed 7 --auth --email me@example.com

    # Only one survey
    python scripts/walk_template.py -t "Report an incident"
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import sys
from pathlib import Path
from typing import Any

_REPO_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_REPO_ROOT / "src"))

from rich.console import Console  # noqa: E402
from rich.table import Table  # noqa: E402

from survey_engine import (  # noqa: E402
    GraphBuilder,
    InMemoryStorage,
    ReportBuilder,
    SurveyEngine,
    TemplateStore,
)
from survey_engine.models.graph import Question, QuestionType  # noqa: E402
from survey_engine.models.template import SurveyTemplate  # noqa: E402

console = Console()

# Upper bound on pages per walk; a template that never finishes is a bug
_MAX_PAGES = 200


def random_answer(question: Question, rng: random.Random) -> Any:
    """A value that passes validation for ``question``."""
    qtype = question.type
    option_ids = question.option_ids()
    if qtype in (QuestionType.SELECT, QuestionType.RADIO, QuestionType.INFOCARD, QuestionType.ADDRESS):
        return rng.choice(option_ids) if option_ids else None
    if qtype == QuestionType.MULTISELECT:
        if not option_ids:
            return []
        return rng.sample(option_ids, rng.randint(1, len(option_ids)))
    if qtype == QuestionType.CHECKBOX:
        return True
    if qtype == QuestionType.EMAIL:
        return "walker@example.com"
    if qtype == QuestionType.NUMBER:
        return rng.randint(1, 100)
    if qtype == QuestionType.DATE:
        return "2026-01-15"
    if qtype == QuestionType.DATETIME:
        return "2026-01-15T10:30:00Z"
    if qtype == QuestionType.FILES:
        return [{"url": "https://files.example.com/photo.jpg"}]
    if qtype == QuestionType.LOCATION:
        return {
            "type": "FeatureCollection",
            "features": [{"geometry": {"type": "Point", "coordinates": [25.28, 54.68]}}],
        }
    return "sample answer"


async def walk(
    template: SurveyTemplate,
    rng: random.Random,
    *,
    auth: bool,
    email: str | None,
    verbose: bool,
) -> None:
    repo = InMemoryStorage()
    survey_id = await GraphBuilder(repo).build(None, template, priority=1)
    engine = SurveyEngine(repo, listeners=[ReportBuilder(repo)])

    session = await engine.start_session(None, survey_id=survey_id, auth=auth, email=email)

    table = Table(title=f"{template.title} (auth={auth})")
    table.add_column("#", justify="right")
    table.add_column("Progress")
    table.add_column("Page")
    table.add_column("Questions")
    table.add_column("Answers", overflow="fold")

    response_id = session.last_response
    step = 0
    while response_id is not None and step < _MAX_PAGES:
        step += 1
        view = await engine.get_response(None, response_id)

        # Answer the questions in visiting order; conditions on the same
        # page are evaluated against what was picked so far.
        values: dict[int, Any] = dict(view.values)
        answered: dict[int, Any] = {}
        for question in view.questions:
            if question.id in values:
                answered[question.id] = values[question.id]
                continue
            value = random_answer(question, rng)
            values[question.id] = value
            answered[question.id] = value

        result = await engine.respond(None, response_id=response_id, values=answered)
        if result.errors:
            console.print(f"[red]Validation errors on response {response_id}: {result.errors}")
            return

        progress = f"{view.progress.current}/{view.progress.total}" if view.progress else "-"
        if view.progress and view.progress.truncated:
            progress += " (cap)"
        table.add_row(
            str(step),
            progress,
            view.page.title or str(view.page.id),
            "\n".join(q.title or str(q.id) for q in view.questions),
            "\n".join(f"{k}: {v}" for k, v in answered.items()) if verbose else str(len(answered)),
        )
        response_id = result.next_response

    console.print(table)

    info = await engine.get_session(None, session.id)
    console.print(f"Session {info.id}: [bold]{info.status}[/bold]")
    report = repo.reports.get(session.id)
    if report is not None and verbose:
        for line in report:
            console.print(f"  {line['title']}: {line['answer']}")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Walk survey templates with random answers (in-memory backend)",
    )
    parser.add_argument("--dir", default=None, help="Template directory (default: surveys/)")
    parser.add_argument("-t", "--title", default=None, help="Only walk the survey with this title")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--auth", action="store_true", help="Walk as an authenticated respondent")
    parser.add_argument("--email", default=None, help="Session e-mail (with --auth)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show answers and report")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    store = TemplateStore(args.dir)
    store.load()
    templates = store.templates
    if args.title:
        templates = [t for t in templates if t.title == args.title]
        if not templates:
            console.print(f"[red]No template titled {args.title!r}")
            sys.exit(1)

    rng = random.Random(args.seed)
    for template in templates:
        asyncio.run(walk(template, rng, auth=args.auth, email=args.email, verbose=args.verbose))


if __name__ == "__main__":
    main()
