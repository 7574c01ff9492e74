"""ConditionEvaluator — decides whether a guarded item is visible.

A guard is a list of ``{question, value}`` pairs that are AND-ed together.
Each pair holds when the referenced question's answer:

  - equals ``value``, or
  - is a collection (multi-select answer) that contains ``value``

An empty or absent guard always holds.  Evaluation is pure: no I/O, no
mutation of the answers.
"""

from __future__ import annotations

from typing import Any

from survey_engine.models.graph import Condition, as_condition_list


class ConditionEvaluator:
    """Evaluates visibility guards against an answer map."""

    def satisfied(
        self,
        conditions: Condition | list[Condition] | None,
        answers: dict[int, Any],
    ) -> bool:
        """Return True if every condition holds against ``answers``.

        Args:
            conditions: a single Condition, a list of them, or None
            answers: answers keyed by question id

        Returns:
            True when the list is empty or all pairs match.
        """
        for cond in as_condition_list(conditions):
            if not self._matches(answers.get(cond.question), cond.value):
                return False
        return True

    @staticmethod
    def _matches(answer: Any, expected: Any) -> bool:
        if answer is None:
            return False
        if _same(answer, expected):
            return True
        # Multi-select answers are lists of option ids
        if isinstance(answer, (list, tuple, set, frozenset)):
            return any(_same(item, expected) for item in answer)
        return False


def _same(answer: Any, expected: Any) -> bool:
    """Equality that keeps booleans apart from the integers 0 and 1."""
    if isinstance(answer, bool) or isinstance(expected, bool):
        return type(answer) is type(expected) and answer == expected
    return answer == expected
