"""ConditionEvaluator unit tests.

A guard holds when every {question, value} pair matches: the answer
equals the value, or the answer is a collection containing it.
"""

import pytest

from survey_engine.evaluator import ConditionEvaluator
from survey_engine.models.graph import Condition


@pytest.fixture
def ev():
    return ConditionEvaluator()


def _c(question, value):
    return Condition(question=question, value=value)


def test_empty_and_absent_guards_hold(ev):
    assert ev.satisfied(None, {})
    assert ev.satisfied([], {1: "x"})


def test_single_condition_is_a_one_element_list(ev):
    assert ev.satisfied(_c(1, "X"), {1: "X"})
    assert not ev.satisfied(_c(1, "X"), {1: "Y"})


def test_all_pairs_must_hold(ev):
    guard = [_c(1, 10), _c(2, "yes")]
    assert ev.satisfied(guard, {1: 10, 2: "yes"})
    assert not ev.satisfied(guard, {1: 10, 2: "no"}), "second pair fails"
    assert not ev.satisfied(guard, {2: "yes"}), "first answer missing"


def test_collection_answer_contains_value(ev):
    assert ev.satisfied(_c(1, 11), {1: [10, 11]})
    assert not ev.satisfied(_c(1, 12), {1: [10, 11]})


def test_string_answer_is_not_a_collection(ev):
    """Substrings never count: only list-like answers use containment."""
    assert not ev.satisfied(_c(1, "a"), {1: "abc"})


def test_missing_answer_fails_even_for_none_value(ev):
    assert not ev.satisfied(_c(1, None), {})


def test_zero_is_a_real_answer(ev):
    assert ev.satisfied(_c(1, 0), {1: 0})


def test_booleans_do_not_match_integers(ev):
    assert not ev.satisfied(_c(1, False), {1: 0})
    assert not ev.satisfied(_c(1, 1), {1: True})
    assert not ev.satisfied(_c(1, 1), {1: [True]})
    assert ev.satisfied(_c(1, True), {1: True})
    assert ev.satisfied(_c(1, 1), {1: [0, 1]})


def test_answers_not_mutated(ev):
    answers = {1: [10]}
    ev.satisfied([_c(1, 10)], answers)
    assert answers == {1: [10]}
