"""ProgressEstimator — "page N of M" for a response.

``current`` is 1 on the first page and the predecessor's ``current + 1``
afterwards.  ``total`` comes from a structural forward simulation: starting
at the response's questions, cross-page traversal is repeated along the
frontier, counting one page per step, until nothing is left.

Structural mode follows every option, so ``total`` is the length of the
longest branch reachable page by page, which is an upper estimate.  A
cyclic graph never empties its frontier; the count stops at
``PROGRESS_ITERATION_CAP`` and the result is flagged ``truncated``.
"""

from __future__ import annotations

import logging
from typing import Any

from survey_engine.constants import PROGRESS_ITERATION_CAP
from survey_engine.models.session import Progress
from survey_engine.traversal import GraphTraverser

logger = logging.getLogger(__name__)


class ProgressEstimator:
    def __init__(self, traverser: GraphTraverser, cap: int | None = None) -> None:
        self._traverser = traverser
        self._cap = cap or PROGRESS_ITERATION_CAP

    async def estimate(
        self,
        db: Any,
        questions: list[int],
        *,
        previous: Progress | None = None,
        skip_auth_questions: bool = False,
    ) -> Progress:
        """Estimate progress for a response showing ``questions``.

        Args:
            questions: the response's visible question ids
            previous: progress stored on the preceding response, if any
            skip_auth_questions: mirror of the session's ``not auth``
        """
        current = previous.current + 1 if previous is not None else 1
        total = current - 1
        starting = list(questions)

        while starting and total < self._cap:
            total += 1
            result = await self._traverser.advance(
                db, starting, skip_auth_questions=skip_auth_questions,
            )
            starting = result.next_page_questions

        truncated = bool(starting)
        if truncated:
            logger.warning(
                "Progress estimate truncated at %d pages (starting questions %s); "
                "the survey graph is probably cyclic",
                total, questions,
            )
        return Progress(current=current, total=max(total, current), truncated=truncated)
