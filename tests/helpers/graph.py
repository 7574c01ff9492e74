"""Shorthands for building survey graphs in tests.

Two styles:
  - ``q`` / ``opt`` / ``put_page`` write hand-numbered questions straight
    into an :class:`InMemoryStorage` (for traversal-level tests where the
    exact ids matter);
  - ``build`` runs a template dict through the real :class:`GraphBuilder`
    (for engine-level tests), with ``qid`` / ``oid`` to look ids up by title.
"""

from typing import Any

from survey_engine.builder import GraphBuilder
from survey_engine.memory import InMemoryStorage
from survey_engine.models.graph import Option, Question, QuestionType
from survey_engine.models.template import SurveyTemplate


def q(
    qid: int,
    page: int,
    *,
    type: QuestionType = QuestionType.INPUT,
    next: int | None = None,
    options: list[Option] | None = None,
    condition: Any = None,
    priority: int = 0,
    auth: str | None = None,
    required: bool = False,
    dynamic_fields: list[dict] | None = None,
) -> Question:
    """Shorthand to build a Question."""
    return Question(
        id=qid,
        page=page,
        type=type,
        title=f"Q{qid}",
        next_question=next,
        options=options or [],
        condition=condition,
        priority=priority,
        auth_relation=auth,
        required=required,
        dynamic_fields=dynamic_fields or [],
    )


def opt(oid: int, question: int, next: int | None = None, priority: int = 0) -> Option:
    """Shorthand to build an Option."""
    return Option(id=oid, question=question, title=f"O{oid}", priority=priority, next_question=next)


def put_page(repo: InMemoryStorage, page_id: int, questions: list[Question], **page: Any) -> None:
    """Store a page and its questions (with options) under their given ids."""
    repo.pages[page_id] = {
        "id": page_id,
        "title": page.get("title", f"P{page_id}"),
        "description": page.get("description"),
        "dynamic_fields": page.get("dynamic_fields", []),
    }
    for question in questions:
        repo.questions[question.id] = question.model_dump(exclude={"options", "removed"})
        for option in question.options:
            repo.options[option.id] = option.model_dump()


async def build(repo: InMemoryStorage, template: dict) -> int:
    """Build ``template`` into ``repo`` and return the survey id."""
    return await GraphBuilder(repo).build(None, SurveyTemplate.model_validate(template))


def qid(repo: InMemoryStorage, title: str) -> int:
    """Id of the question titled ``title``."""
    for question_id, raw in repo.questions.items():
        if raw["title"] == title:
            return question_id
    raise KeyError(title)


def oid(repo: InMemoryStorage, question_title: str, option_title: str) -> int:
    """Id of option ``option_title`` of the question titled ``question_title``."""
    owner = qid(repo, question_title)
    for option_id, raw in repo.options.items():
        if raw["question"] == owner and raw["title"] == option_title:
            return option_id
    raise KeyError(f"{question_title}/{option_title}")


def page_of(repo: InMemoryStorage, question_title: str) -> int:
    return repo.questions[qid(repo, question_title)]["page"]
