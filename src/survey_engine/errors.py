"""Exceptions raised by the survey engine.

Caller mistakes are ``ValueError`` subclasses so the HTTP layer can map
them by message keyword like any other ``ValueError``.  Defects in the
survey graph itself (dangling template references, runaway traversal)
are operator-facing and never shown to respondents.

Answer validation failures are *not* exceptions: they are returned as a
per-question error map in ``RespondResult.errors``.
"""


class TemplateReferenceError(ValueError):
    """A symbolic id in a survey template cannot be resolved.

    Raised by the graph builder; the whole build is abandoned.
    """


class ResponseConflictError(ValueError):
    """A response was modified concurrently (stale version or duplicate successor)."""

    def __init__(self, response_id: int | None, detail: str = "") -> None:
        self.response_id = response_id
        msg = f"Response conflict: response_id={response_id}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)


class TraversalLimitError(RuntimeError):
    """Cross-page traversal exceeded its hop bound (cyclic or pathological graph)."""


class ResponseChainError(RuntimeError):
    """Linking a successor would make the response chain cyclic."""
