"""Report tests: display values and the finished-session answer list."""

import pytest

from survey_engine.engine import SurveyEngine
from survey_engine.models.graph import QuestionType
from survey_engine.report import (
    ANONYMOUS_EXPORT_FIELD,
    ANONYMOUS_TITLE,
    DISPLAY,
    ReportBuilder,
    display_value,
)

from helpers.graph import build, oid, opt, q, qid

T = QuestionType


def test_every_question_type_has_a_display():
    assert set(DISPLAY) == set(QuestionType)


@pytest.mark.parametrize("question,value,expected", [
    (q(1, 100, type=T.SELECT, options=[opt(10, 1), opt(11, 1)]), 11, "O11"),
    (q(1, 100, type=T.RADIO, options=[opt(10, 1)]), 99, 99),
    (q(1, 100, type=T.MULTISELECT, options=[opt(10, 1), opt(11, 1)]), [11, 10], ["O11", "O10"]),
    (q(1, 100, type=T.FILES), [{"url": "u1"}, {"url": "u2", "name": "x"}], ["u1", "u2"]),
    (q(1, 100, type=T.LOCATION),
     {"features": [{"geometry": {"coordinates": [1.5, 2.5]}}]}, [1.5, 2.5]),
    (q(1, 100, type=T.LOCATION), {"features": []}, []),
    (q(1, 100, type=T.NUMBER), 0, 0),
    (q(1, 100, type=T.ADDRESS), 42, 42),
    (q(1, 100, type=T.SELECT, options=[opt(10, 1)]), None, None),
])
def test_display_value(question, value, expected):
    assert display_value(question, value) == expected


SURVEY = {
    "title": "Feedback",
    "pages": [
        {"title": "Rate", "questions": [
            {"id": 1, "type": "RADIO", "title": "Rating", "options": [
                {"title": "Good", "next_question": 3},
                {"title": "Bad", "next_question": 2},
            ]},
            {"id": 2, "title": "What went wrong?", "condition": {"question": 1}, "next_question": 3},
        ]},
        {"title": "Done", "questions": [
            {"id": 3, "type": "CHECKBOX", "title": "Subscribe", "required": False},
        ]},
    ],
}


@pytest.mark.asyncio
async def test_report_skips_unsatisfied_questions(repo, db):
    survey_id = await build(repo, SURVEY)
    engine = SurveyEngine(repo, listeners=[ReportBuilder(repo)])
    session = await engine.start_session(db, survey_id=survey_id)

    view = await engine.get_response(db, session.last_response)
    assert {q.title for q in view.questions} == {"Rating", "What went wrong?"}

    rating = qid(repo, "Rating")
    result = await engine.respond(db, response_id=view.id, values={rating: oid(repo, "Rating", "Good")})
    result = await engine.respond(db, response_id=result.next_response, values={})
    assert result.finished

    report = repo.reports[session.id]
    assert [line["title"] for line in report] == ["Rating", "Subscribe"], \
        "no anonymous line for surveys without optional auth, guarded question left out"
    assert report[0]["answer"] == "Good"
    assert report[0]["type"] == "RADIO"
    assert report[1]["answer"] is None


@pytest.mark.asyncio
async def test_build_without_storing(repo, db):
    survey_id = await build(repo, SURVEY)
    engine = SurveyEngine(repo)
    session = await engine.start_session(db, survey_id=survey_id)
    await engine.respond(db, response_id=session.last_response, values={
        qid(repo, "Rating"): oid(repo, "Rating", "Bad"),
        qid(repo, "What went wrong?"): "cold soup",
    })

    row = await repo.get_session(db, session.id)
    lines = await ReportBuilder(repo).build(db, row)
    assert [(line.title, line.answer) for line in lines] == [
        ("Rating", "Bad"),
        ("What went wrong?", "cold soup"),
        ("Subscribe", None),
    ]
    assert repo.reports == {}, "no listener registered, nothing stored"


@pytest.mark.asyncio
async def test_export_names_carried_into_report(repo, db):
    survey_id = await build(repo, {
        "title": "Exported",
        "auth_type": "OPTIONAL",
        "export_list": "incidents",
        "pages": [{"title": "Only", "questions": [
            {"id": 1, "title": "Where?", "export_field": "place"},
            {"id": 2, "title": "Note", "required": False},
        ]}],
    })
    engine = SurveyEngine(repo, listeners=[ReportBuilder(repo)])
    session = await engine.start_session(db, survey_id=survey_id)
    await engine.respond(db, response_id=session.last_response, values={
        qid(repo, "Where?"): "Kitchen",
    })

    report = repo.reports[session.id]
    assert [(line["title"], line["export_field"]) for line in report] == [
        (ANONYMOUS_TITLE, ANONYMOUS_EXPORT_FIELD),
        ("Where?", "place"),
        ("Note", None),
    ]
    assert repo.report_export_lists[session.id] == "incidents"
