#!/usr/bin/env python3
"""API client integration test for the survey server.

Acts as a pure HTTP client against a live server (unlike
``walk_template.py``, which drives the SDK in-process): lists the
surveys, starts N sessions per survey, answers every page with random
valid values and reports sessions that fail, stall or get validation
errors back.

Usage::

    # Install deps (first time only)
    pip install -e ".[client]"

    # Quick smoke test (1 run per survey)
    python scripts/run_client_test.py -n 1 -v

    # Anonymous and authenticated sessions, full JSON payloads
    python scripts/run_client_test.py --auth both -vv

    # Reproducible run against another host
    python scripts/run_client_test.py --base-url http://survey:8080 --seed 42
"""

from __future__ import annotations

import argparse
import asyncio
import json
import random
import sys
import time
from dataclasses import dataclass, field
from typing import Any

import httpx
from rich.console import Console
from rich.table import Table

# Pool of random free-text answers
FREE_TEXT_POOL = [
    "Nothing to add",
    "It happened yesterday evening",
    "Near the main entrance",
    "Not sure",
    "Twice this week",
    "See the attached photo",
]

SAMPLE_LOCATION = {
    "type": "FeatureCollection",
    "features": [{"type": "Feature", "geometry": {"type": "Point", "coordinates": [25.28, 54.68]}}],
}

AUTH_MODES = {"anonymous": [False], "auth": [True], "both": [False, True]}


# ---------------------------------------------------------------------------
# APIClient — thin httpx wrapper
# ---------------------------------------------------------------------------

class APIClient:
    """Async HTTP client for the survey server API."""

    def __init__(self, base_url: str, timeout: float = 30.0):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> APIClient:
        self._client = httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout)
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()

    async def health_check(self) -> bool:
        """Return True if the server answers and reaches its database."""
        try:
            resp = await self._client.get("/health")  # type: ignore[union-attr]
        except (httpx.ConnectError, httpx.TimeoutException):
            return False
        return resp.status_code == 200 and resp.json().get("status") == "ok"

    async def list_surveys(self) -> list[dict]:
        return await self._get("/api/v1/surveys")

    async def start_session(self, survey_id: int, auth: bool, email: str | None) -> dict:
        return await self._post(
            "/api/v1/sessions",
            json={"survey_id": survey_id, "auth": auth, "email": email},
        )

    async def get_session(self, session_id: int) -> dict:
        return await self._get(f"/api/v1/sessions/{session_id}")

    async def get_response(self, response_id: int) -> dict:
        return await self._get(f"/api/v1/responses/{response_id}")

    async def respond(self, response_id: int, values: dict[str, Any]) -> dict:
        return await self._post(
            f"/api/v1/responses/{response_id}/respond", json={"values": values},
        )

    async def _get(self, path: str) -> Any:
        """GET, retry once on timeout."""
        try:
            resp = await self._client.get(path)  # type: ignore[union-attr]
        except httpx.TimeoutException:
            resp = await self._client.get(path)  # type: ignore[union-attr]
        resp.raise_for_status()
        return resp.json()

    async def _post(self, path: str, json: Any) -> Any:
        """POST, retry once on timeout."""
        try:
            resp = await self._client.post(path, json=json)  # type: ignore[union-attr]
        except httpx.TimeoutException:
            resp = await self._client.post(path, json=json)  # type: ignore[union-attr]
        resp.raise_for_status()
        return resp.json()


# ---------------------------------------------------------------------------
# AnswerGenerator — random valid answers per question type
# ---------------------------------------------------------------------------

class AnswerGenerator:
    """Generate random valid answers for the questions of one page."""

    def __init__(self, rng: random.Random):
        self._rng = rng

    def page(self, questions: list[dict], prefilled: dict[str, Any]) -> dict[str, Any]:
        """Answers keyed by question id; prefilled identity answers are kept."""
        values: dict[str, Any] = {}
        for question in questions:
            key = str(question["id"])
            if prefilled.get(key) not in (None, ""):
                values[key] = prefilled[key]
            else:
                values[key] = self.answer(question)
        return values

    def answer(self, question: dict) -> Any:
        qtype = question.get("type")
        option_ids = [o["id"] for o in question.get("options") or []]

        if qtype in ("SELECT", "RADIO", "INFOCARD", "ADDRESS"):
            return self._rng.choice(option_ids) if option_ids else None
        if qtype == "MULTISELECT":
            if not option_ids:
                return []
            return self._rng.sample(option_ids, self._rng.randint(1, len(option_ids)))
        if qtype == "CHECKBOX":
            return True
        if qtype == "EMAIL":
            return f"client{self._rng.randint(1, 999)}@example.com"
        if qtype == "NUMBER":
            return self._rng.randint(0, 100)
        if qtype == "DATE":
            return f"2026-{self._rng.randint(1, 12):02d}-{self._rng.randint(1, 28):02d}"
        if qtype == "DATETIME":
            return "2026-03-01T09:15:00Z"
        if qtype == "FILES":
            return [{"url": f"https://files.example.com/{self._rng.randint(1, 99)}.jpg"}]
        if qtype == "LOCATION":
            return SAMPLE_LOCATION
        return self._rng.choice(FREE_TEXT_POOL)


# ---------------------------------------------------------------------------
# SessionResult — outcome of one session run
# ---------------------------------------------------------------------------

@dataclass
class SessionResult:
    """Outcome of a single session run."""

    survey: str
    auth: bool
    run_index: int
    status: str = "pending"          # "success", "failed", "incomplete"
    session_id: int | None = None
    pages: int = 0
    progress: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def label(self) -> str:
        return f"{self.survey} ({'auth' if self.auth else 'anonymous'})"


# ---------------------------------------------------------------------------
# RichPrinter — verbosity-aware console output
# ---------------------------------------------------------------------------

class RichPrinter:
    """Verbosity-aware console output using rich."""

    def __init__(self, verbosity: int = 0):
        self.console = Console()
        self.verbosity = verbosity

    def session_header(self, index: int, total: int, result: SessionResult) -> None:
        self.console.print(
            f"\n[bold cyan][{index}/{total}][/] {result.label} (run {result.run_index})"
        )

    def page_ok(self, view: dict) -> None:
        progress = view.get("progress") or {}
        where = f"{progress.get('current', '?')}/{progress.get('total', '?')}"
        title = (view.get("page") or {}).get("title") or view.get("id")
        self.console.print(
            f"  [green]✓[/] Page {where}: {title} ({len(view.get('questions', []))} questions)"
        )

    def answers(self, questions: list[dict], values: dict[str, Any]) -> None:
        """Print Q&A pairs (verbosity >= 1)."""
        if self.verbosity < 1:
            return
        for question in questions:
            self.console.print(f"    [dim]Q:[/] {question.get('title')} [{question.get('type')}]")
            self.console.print(f"    [dim]A:[/] {values.get(str(question['id']))}")

    def json_payload(self, label: str, data: Any) -> None:
        """Print full JSON payload (verbosity >= 2)."""
        if self.verbosity < 2:
            return
        formatted = json.dumps(data, ensure_ascii=False, indent=2)
        self.console.print(f"    [dim]{label}:[/]")
        self.console.print(f"    {formatted}")

    def result_line(self, result: SessionResult) -> None:
        if result.status == "success":
            status_str = "[green]OK[/]"
        elif result.status == "failed":
            status_str = f"[red]FAILED[/]: {result.error}"
        else:
            status_str = f"[yellow]{result.status.upper()}[/]: {result.error}"
        self.console.print(f"  → {result.pages} pages, {status_str}")

    def error(self, msg: str) -> None:
        self.console.print(f"  [red]ERROR[/] {msg}")


# ---------------------------------------------------------------------------
# SessionRunner — drives one session start-to-finish
# ---------------------------------------------------------------------------

class SessionRunner:
    """Run one survey session through the API."""

    def __init__(
        self,
        client: APIClient,
        answer_gen: AnswerGenerator,
        printer: RichPrinter,
        max_pages: int = 100,
    ):
        self._client = client
        self._answer_gen = answer_gen
        self._printer = printer
        self._max_pages = max_pages

    async def run(self, survey: dict, result: SessionResult) -> SessionResult:
        """Execute a full session and fill in ``result``."""
        try:
            email = "respondent@example.com" if result.auth else None
            session = await self._client.start_session(survey["id"], result.auth, email)
            result.session_id = session["id"]
            self._printer.json_payload("Session", session)

            response_id = session.get("last_response")
            while response_id is not None:
                if result.pages >= self._max_pages:
                    result.status = "incomplete"
                    result.error = f"Exceeded {self._max_pages} pages"
                    return result

                view = await self._client.get_response(response_id)
                self._printer.json_payload("Response", view)
                self._printer.page_ok(view)
                progress = view.get("progress") or {}
                result.progress.append(f"{progress.get('current')}/{progress.get('total')}")

                values = self._answer_gen.page(view["questions"], view.get("values") or {})
                self._printer.answers(view["questions"], values)

                outcome = await self._client.respond(response_id, values)
                self._printer.json_payload("Outcome", outcome)
                result.pages += 1

                if outcome.get("errors"):
                    result.status = "failed"
                    result.error = f"validation errors: {outcome['errors']}"
                    self._printer.error(result.error)
                    return result
                if outcome.get("finished"):
                    break
                response_id = outcome.get("next_response")

            info = await self._client.get_session(result.session_id)
            if info.get("status") != "finished":
                result.status = "incomplete"
                result.error = f"session ended in status {info.get('status')!r}"
                return result

            result.status = "success"
            return result

        except httpx.HTTPStatusError as exc:
            result.status = "failed"
            result.error = f"HTTP {exc.response.status_code}: {exc.response.text}"
            self._printer.error(result.error)
            return result

        except httpx.TimeoutException:
            result.status = "failed"
            result.error = "Request timed out (after retry)"
            self._printer.error(result.error)
            return result


# ---------------------------------------------------------------------------
# ResultCollector — aggregates results across all sessions
# ---------------------------------------------------------------------------

class ResultCollector:
    """Collect and aggregate session results for the final summary."""

    def __init__(self) -> None:
        self.results: list[SessionResult] = []

    def add(self, result: SessionResult) -> None:
        self.results.append(result)

    @property
    def total(self) -> int:
        return len(self.results)

    def count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)

    def print_summary(self, console: Console) -> None:
        """Print a rich summary table of all results."""
        console.print("\n")
        console.rule("[bold]Session Summary")
        console.print()

        console.print(f"  Total:       {self.total}")
        console.print(f"  [green]Passed:[/]      {self.count('success')}")
        console.print(f"  [red]Failed:[/]      {self.count('failed')}")
        console.print(f"  [yellow]Incomplete:[/]  {self.count('incomplete')}")
        console.print()

        table = Table(title="Results by Survey", show_lines=True)
        table.add_column("#", style="dim", width=4)
        table.add_column("Survey", min_width=30)
        table.add_column("Run", width=4)
        table.add_column("Status", width=8)
        table.add_column("Pages", width=6)
        table.add_column("Progress", min_width=20)

        for i, r in enumerate(self.results, 1):
            status_str = {
                "success": "[green]OK[/]",
                "failed": "[red]FAIL[/]",
                "incomplete": "[yellow]INC[/]",
            }.get(r.status, r.status)
            table.add_row(
                str(i), r.label, str(r.run_index), status_str, str(r.pages),
                " ".join(r.progress) or "-",
            )

        console.print(table)

        failed = [r for r in self.results if r.status != "success"]
        if failed:
            console.print()
            console.rule("[red]Failed Sessions")
            for r in failed:
                console.print(f"  {r.label} (run {r.run_index}, session {r.session_id}): {r.error}")

        console.print()


# ---------------------------------------------------------------------------
# CLI + async main
# ---------------------------------------------------------------------------

def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="API client integration test for the survey server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--base-url",
        default="http://localhost:8080",
        help="Server base URL (default: http://localhost:8080)",
    )
    parser.add_argument(
        "-n", "--runs",
        type=int, default=3,
        help="Number of random runs per survey (default: 3)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count", default=0,
        help="Increase verbosity (-v for Q&A pairs, -vv for full JSON)",
    )
    parser.add_argument(
        "--seed",
        type=int, default=None,
        help="RNG seed for reproducibility (default: current timestamp)",
    )
    parser.add_argument(
        "-t", "--title",
        type=str, default=None,
        help="Only run surveys with these titles (comma-separated)",
    )
    parser.add_argument(
        "--auth",
        choices=sorted(AUTH_MODES),
        default="anonymous",
        help="Session identity mode (default: anonymous)",
    )
    parser.add_argument(
        "--max-pages",
        type=int, default=100,
        help="Safety limit: max pages per session (default: 100)",
    )
    parser.add_argument(
        "--timeout",
        type=float, default=30.0,
        help="HTTP request timeout in seconds (default: 30)",
    )
    return parser.parse_args()


async def main() -> None:
    args = parse_args()
    console = Console()

    seed = args.seed if args.seed is not None else int(time.time())
    rng = random.Random(seed)
    console.print(f"[dim]RNG seed: {seed}[/]")

    printer = RichPrinter(verbosity=args.verbose)
    collector = ResultCollector()

    async with APIClient(args.base_url, timeout=args.timeout) as client:
        if not await client.health_check():
            console.print(
                f"[red]Server at {args.base_url} is not reachable. "
                f"Is the server running?[/]"
            )
            sys.exit(1)
        console.print(f"[green]Server health check passed[/] ({args.base_url})")

        surveys = await client.list_surveys()
        if args.title:
            wanted = {t.strip() for t in args.title.split(",")}
            surveys = [s for s in surveys if s["title"] in wanted]
        if not surveys:
            console.print("[red]No surveys match the given filters.[/]")
            sys.exit(1)

        plan = [
            (survey, auth, run)
            for survey in surveys
            for auth in AUTH_MODES[args.auth]
            # anonymous sessions cannot start surveys that require a login
            if auth or survey.get("auth_type") != "REQUIRED"
            for run in range(1, args.runs + 1)
        ]
        console.print(f"[bold]Running {len(plan)} sessions over {len(surveys)} surveys[/]")

        runner = SessionRunner(client, AnswerGenerator(rng), printer, max_pages=args.max_pages)
        for index, (survey, auth, run) in enumerate(plan, 1):
            result = SessionResult(survey=survey["title"], auth=auth, run_index=run)
            printer.session_header(index, len(plan), result)
            await runner.run(survey, result)
            printer.result_line(result)
            collector.add(result)

    collector.print_summary(console)

    if collector.count("success") != collector.total:
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
