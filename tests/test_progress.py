"""ProgressEstimator tests."""

import pytest

from survey_engine.models.graph import QuestionType
from survey_engine.models.session import Progress
from survey_engine.progress import ProgressEstimator
from survey_engine.traversal import GraphTraverser

from helpers.graph import opt, put_page, q


def _linear(repo):
    put_page(repo, 100, [q(1, 100, next=2)])
    put_page(repo, 200, [q(2, 200, next=3)])
    put_page(repo, 300, [q(3, 300)])


@pytest.mark.asyncio
async def test_linear_survey_counts_every_page(repo, db):
    _linear(repo)
    estimator = ProgressEstimator(GraphTraverser(repo))

    first = await estimator.estimate(db, [1])
    assert first == Progress(current=1, total=3)

    second = await estimator.estimate(db, [2], previous=first)
    assert second == Progress(current=2, total=3)

    third = await estimator.estimate(db, [3], previous=second)
    assert third == Progress(current=3, total=3)


@pytest.mark.asyncio
async def test_longest_branch_is_counted(repo, db):
    put_page(repo, 100, [q(1, 100, type=QuestionType.SELECT,
                           options=[opt(10, 1, next=2), opt(11, 1, next=3)])])
    put_page(repo, 200, [q(2, 200, next=4)])
    put_page(repo, 300, [q(3, 300)])
    put_page(repo, 400, [q(4, 400)])

    progress = await ProgressEstimator(GraphTraverser(repo)).estimate(db, [1])
    # structural mode merges both branches: page 200 (+300 frontier), then 400
    assert progress.total >= 3
    assert not progress.truncated


@pytest.mark.asyncio
async def test_auth_pages_not_counted_for_anonymous(repo, db):
    put_page(repo, 100, [q(1, 100, next=2)])
    put_page(repo, 200, [q(2, 200, next=3, auth="EMAIL")])
    put_page(repo, 300, [q(3, 300)])

    estimator = ProgressEstimator(GraphTraverser(repo))
    assert (await estimator.estimate(db, [1], skip_auth_questions=True)).total == 2
    assert (await estimator.estimate(db, [1])).total == 3


@pytest.mark.asyncio
async def test_cyclic_graph_is_truncated_at_cap(repo, db):
    put_page(repo, 100, [q(1, 100, next=2)])
    put_page(repo, 200, [q(2, 200, next=1)])

    progress = await ProgressEstimator(GraphTraverser(repo), cap=5).estimate(db, [1])
    assert progress.truncated
    assert progress.total == 5


@pytest.mark.asyncio
async def test_total_never_below_current(repo, db):
    put_page(repo, 100, [q(1, 100)])
    previous = Progress(current=4, total=4)
    progress = await ProgressEstimator(GraphTraverser(repo)).estimate(db, [1], previous=previous)
    assert progress == Progress(current=5, total=5)
