"""OverlayResolver — applies answer-dependent patches to questions and pages.

Each question and page carries an ordered ``dynamic_fields`` list.  Every
patch whose condition holds against the prior answers is applied in list
order as a shallow merge of its ``values`` (later patches win on the same
key).  Resolution is functional: the stored entity is never modified, a
patched copy is returned.

Two patch keys are special for questions:

  - ``condition: false`` does not replace the visibility guard; it marks
    the resolved copy ``removed`` ("drop this question from its page").
    Any other ``condition`` value replaces the guard.
  - ``options`` is a list of option ids (translated from option indexes
    when the graph was built).  The resolved question keeps only those
    options, in the patch's order.
"""

from __future__ import annotations

import logging
from typing import Any

from survey_engine.evaluator import ConditionEvaluator
from survey_engine.models.graph import (
    DynamicField,
    Option,
    Page,
    Question,
    as_condition_list,
)

logger = logging.getLogger(__name__)

# Fields a patch may never touch: identity and the patch list itself.
_QUESTION_FIXED = {"id", "page", "survey", "dynamic_fields", "removed"}
_PAGE_FIXED = {"id", "dynamic_fields", "questions"}


class OverlayResolver:
    """Resolves the effective shape of questions and pages."""

    def __init__(self, evaluator: ConditionEvaluator | None = None) -> None:
        self._evaluator = evaluator or ConditionEvaluator()

    def resolve_question(self, question: Question, answers: dict[int, Any]) -> Question:
        """Return ``question`` with every satisfied patch applied."""
        update: dict[str, Any] = {}
        for patch in self._active(question.dynamic_fields, answers):
            for key, value in patch.values.items():
                if key == "condition":
                    if value is False:
                        update["removed"] = True
                    else:
                        update["removed"] = False
                        update["condition"] = as_condition_list(value)
                elif key == "options":
                    update["options"] = self._pick_options(question, value)
                elif key in _QUESTION_FIXED or key not in Question.model_fields:
                    logger.warning(
                        "question %s: ignoring overlay key %r", question.id, key,
                    )
                else:
                    update[key] = value

        if not update:
            return question
        return Question.model_validate({**question.model_dump(), **update})

    def resolve_questions(
        self, questions: list[Question], answers: dict[int, Any]
    ) -> list[Question]:
        return [self.resolve_question(q, answers) for q in questions]

    def resolve_page(self, page: Page, answers: dict[int, Any]) -> Page:
        """Return ``page`` with its own patches applied (questions untouched)."""
        update: dict[str, Any] = {}
        for patch in self._active(page.dynamic_fields, answers):
            for key, value in patch.values.items():
                if key in _PAGE_FIXED or key not in Page.model_fields:
                    logger.warning("page %s: ignoring overlay key %r", page.id, key)
                    continue
                update[key] = value

        if not update:
            return page
        return page.model_copy(update=update)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _active(self, patches: list[DynamicField], answers: dict[int, Any]):
        for patch in patches:
            if self._evaluator.satisfied(patch.condition, answers):
                yield patch

    @staticmethod
    def _pick_options(question: Question, option_ids: Any) -> list[Option]:
        if not isinstance(option_ids, list):
            logger.warning(
                "question %s: overlay options must be a list, got %r",
                question.id, option_ids,
            )
            return list(question.options)

        by_id = {o.id: o for o in question.options}
        picked = []
        for oid in option_ids:
            opt = by_id.get(oid)
            if opt is None:
                logger.warning(
                    "question %s: overlay references unknown option %s", question.id, oid,
                )
                continue
            picked.append(opt)
        return picked
