"""Abstract interfaces for the engine's external collaborators.

These ABCs define the contract that storage backends and finish
listeners must fulfil.  The SDK ships two storage implementations:

  - ``survey_db.repository.SurveyRepository`` (PostgreSQL, production)
  - ``survey_engine.memory.InMemoryStorage`` (tooling and tests)

Every method takes the caller's ``db`` handle first so the caller controls
transaction boundaries; backends flush but never commit.

Graph reads return immutable :mod:`survey_engine.models.graph` models.
Session and response reads return mutable row objects exposing:

    session:  id, survey_id, auth, email, phone, status,
              last_response_id, created_at, finished_at
    response: id, session_id, page_id, previous_response_id,
              questions, values, progress, version

Typical integration flow::

    engine = SurveyEngine(SurveyRepository(), listeners=[ReportBuilder(repo)])
    info = await engine.start_session(db, survey_id=1)
    view = await engine.get_response(db, info.last_response)
    result = await engine.respond(db, response_id=view.id, values={...})
"""

from abc import ABC, abstractmethod
from typing import Any

from survey_engine.models.graph import Page, Question, Survey


class SurveyStorage(ABC):
    """Persistence contract consumed by the engine, builder and seeder."""

    # ------------------------------------------------------------------
    # Graph reads
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_survey(self, db: Any, survey_id: int) -> Survey | None: ...

    @abstractmethod
    async def list_surveys(self, db: Any) -> list[Survey]:
        """All surveys, highest priority first."""
        ...

    @abstractmethod
    async def count_surveys(self, db: Any) -> int: ...

    @abstractmethod
    async def get_page(self, db: Any, page_id: int) -> Page | None:
        """A page with its questions, each with options (highest priority first)."""
        ...

    @abstractmethod
    async def get_question(self, db: Any, question_id: int) -> Question | None: ...

    # ------------------------------------------------------------------
    # Graph writes (graph builder / seeder only)
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_page(
        self, db: Any, *, title: str | None, description: str | None
    ) -> int: ...

    @abstractmethod
    async def update_page(
        self, db: Any, page_id: int, *, dynamic_fields: list[dict[str, Any]]
    ) -> None: ...

    @abstractmethod
    async def create_question(
        self, db: Any, *, page_id: int, priority: int, fields: dict[str, Any]
    ) -> int:
        """Create a question without pointer fields.

        ``fields`` holds the scalar attributes: type, title, description,
        hint, required, risk_evaluation, auth_relation, export_field.
        """
        ...

    @abstractmethod
    async def update_question(
        self,
        db: Any,
        question_id: int,
        *,
        survey_id: int,
        next_question: int | None,
        condition: list[dict[str, Any]],
        dynamic_fields: list[dict[str, Any]],
    ) -> None: ...

    @abstractmethod
    async def create_option(
        self,
        db: Any,
        *,
        question_id: int,
        title: str,
        priority: int,
        next_question: int | None,
    ) -> int: ...

    @abstractmethod
    async def create_survey(
        self,
        db: Any,
        *,
        title: str,
        description: str | None,
        icon: str | None,
        priority: int,
        auth_type: str,
        export_list: str | None,
        first_page: int,
    ) -> int: ...

    @abstractmethod
    async def clear_surveys(self, db: Any) -> None:
        """Remove every survey, page, question and option."""
        ...

    @abstractmethod
    async def get_seed_hash(self, db: Any, key: str) -> str | None: ...

    @abstractmethod
    async def store_seed_hash(self, db: Any, key: str, value: str, version: str) -> None: ...

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_session(
        self,
        db: Any,
        *,
        survey_id: int,
        auth: bool,
        email: str | None,
        phone: str | None,
    ) -> Any: ...

    @abstractmethod
    async def get_session(self, db: Any, session_id: int) -> Any | None: ...

    @abstractmethod
    async def set_last_response(self, db: Any, session: Any, response_id: int) -> Any: ...

    @abstractmethod
    async def finish_session(self, db: Any, session: Any) -> bool:
        """Mark the session finished.  Returns False if it already was."""
        ...

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_response(self, db: Any, response_id: int) -> Any | None: ...

    @abstractmethod
    async def find_response(self, db: Any, *, session_id: int, page_id: int) -> Any | None: ...

    @abstractmethod
    async def create_response(
        self,
        db: Any,
        *,
        session_id: int,
        page_id: int,
        questions: list[int],
        previous_response_id: int | None,
        values: dict[int, Any],
        progress: dict[str, Any] | None,
    ) -> Any:
        """Insert a response.

        Raises:
            ResponseConflictError: a response for (session_id, page_id)
                already exists.
        """
        ...

    @abstractmethod
    async def update_response(
        self,
        db: Any,
        response: Any,
        *,
        expected_version: int,
        values: dict[int, Any] | None = None,
        questions: list[int] | None = None,
        previous_response_id: int | None = None,
        progress: dict[str, Any] | None = None,
    ) -> Any:
        """Update the given fields (None leaves a field unchanged).

        ``values`` keys outside the response's ``questions`` are dropped.

        Raises:
            ResponseConflictError: the stored version differs from
                ``expected_version``.
        """
        ...

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    @abstractmethod
    async def save_report(
        self,
        db: Any,
        session: Any,
        *,
        answers: list[dict[str, Any]],
        export_list: str | None = None,
    ) -> None: ...


class FinishListener(ABC):
    """Notified once when a session transitions to finished."""

    @abstractmethod
    async def session_finished(self, db: Any, session: Any) -> None: ...
