"""GraphBuilder and TemplateSeeder tests.

Templates are written inline as dicts; ids are looked up by title after
building since storage ids depend on creation order.
"""

import pytest

from survey_engine.builder import GraphBuilder, TemplateSeeder, template_hash
from survey_engine.constants import SEED_HASH_KEY, TEMPLATE_VERSION
from survey_engine.errors import TemplateReferenceError
from survey_engine.models.template import SurveyTemplate

from helpers.graph import build, oid, page_of, qid


def _template(**overrides):
    base = {
        "title": "Pets",
        "pages": [
            {
                "title": "Start",
                "questions": [
                    {
                        "id": 1,
                        "type": "SELECT",
                        "title": "Pet?",
                        "options": [
                            {"title": "Cat", "next_question": "1.1"},
                            {"title": "Dog", "next_question": 2},
                        ],
                    },
                    {
                        "id": "1.1",
                        "title": "Cat name",
                        "condition": {"question": 1},
                        "next_question": 2,
                    },
                ],
            },
            {
                "title": "End",
                "dynamic_fields": [
                    {"condition": {"question": 1, "value_index": 1}, "values": {"title": "Dog end"}},
                ],
                "questions": [
                    {
                        "id": 2,
                        "type": "RADIO",
                        "title": "Happy?",
                        "options": [{"title": "Yes"}, {"title": "No"}, {"title": "Maybe"}],
                        "dynamic_fields": [
                            {"condition": {"question": 1, "value_index": 0},
                             "values": {"options": [2, 0], "hint": "cats"}},
                        ],
                    },
                ],
            },
        ],
    }
    base.update(overrides)
    return base


# ===================================================================
# GraphBuilder
# ===================================================================


class TestGraphBuilder:

    @pytest.mark.asyncio
    async def test_pages_and_pointers(self, repo):
        survey_id = await build(repo, _template())
        survey = await repo.get_survey(None, survey_id)

        assert survey.first_page == page_of(repo, "Pet?")
        assert page_of(repo, "Happy?") != survey.first_page
        assert repo.questions[qid(repo, "Cat name")]["next_question"] == qid(repo, "Happy?")
        assert repo.options[oid(repo, "Pet?", "Dog")]["next_question"] == qid(repo, "Happy?")
        assert repo.questions[qid(repo, "Pet?")]["survey"] == survey_id

    @pytest.mark.asyncio
    async def test_reverse_lookup_condition(self, repo):
        await build(repo, _template())
        condition = repo.questions[qid(repo, "Cat name")]["condition"]
        assert condition == [{"question": qid(repo, "Pet?"), "value": oid(repo, "Pet?", "Cat")}]

    @pytest.mark.asyncio
    async def test_value_index_condition_on_page_overlay(self, repo):
        await build(repo, _template())
        patches = repo.pages[page_of(repo, "Happy?")]["dynamic_fields"]
        assert patches == [{
            "condition": [{"question": qid(repo, "Pet?"), "value": oid(repo, "Pet?", "Dog")}],
            "values": {"title": "Dog end"},
        }]

    @pytest.mark.asyncio
    async def test_overlay_option_indexes_become_ids(self, repo):
        await build(repo, _template())
        patch = repo.questions[qid(repo, "Happy?")]["dynamic_fields"][0]
        assert patch["values"]["options"] == [
            oid(repo, "Happy?", "Maybe"), oid(repo, "Happy?", "Yes"),
        ]
        assert patch["values"]["hint"] == "cats"

    @pytest.mark.asyncio
    async def test_priorities_follow_template_order(self, repo):
        await build(repo, _template())
        assert repo.questions[qid(repo, "Pet?")]["priority"] == 2
        assert repo.questions[qid(repo, "Cat name")]["priority"] == 1

        question = await repo.get_question(None, qid(repo, "Happy?"))
        assert [o.title for o in question.options] == ["Yes", "No", "Maybe"]

    @pytest.mark.asyncio
    async def test_template_defaults_carried(self, repo):
        await build(repo, _template())
        question = await repo.get_question(None, qid(repo, "Cat name"))
        assert question.required is True
        assert question.risk_evaluation is True

    @pytest.mark.asyncio
    async def test_overlay_replacement_guard_resolved(self, repo):
        template = _template()
        template["pages"][1]["questions"][0]["dynamic_fields"].append({
            "condition": {"question": 1, "value_index": 1},
            "values": {"condition": {"question": "1.1", "value": "Tom"}},
        })
        template["pages"][1]["questions"][0]["dynamic_fields"].append({
            "condition": {"question": 1, "value_index": 0},
            "values": {"condition": False},
        })
        await build(repo, template)

        patches = repo.questions[qid(repo, "Happy?")]["dynamic_fields"]
        assert patches[1]["values"]["condition"] == [
            {"question": qid(repo, "Cat name"), "value": "Tom"},
        ]
        assert patches[2]["values"]["condition"] is False

    @pytest.mark.asyncio
    async def test_forward_value_index_reference(self, repo):
        template = _template()
        template["pages"][0]["questions"][1]["condition"] = {"question": 2, "value_index": 2}
        await build(repo, template)
        condition = repo.questions[qid(repo, "Cat name")]["condition"]
        assert condition[0]["value"] == oid(repo, "Happy?", "Maybe")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mutate,fragment", [
        (lambda t: t["pages"][0]["questions"][1].update(next_question=99), "unknown question '99'"),
        (lambda t: t["pages"][0]["questions"][1].update(condition={"question": 2}), "leads to"),
        (lambda t: t["pages"][0]["questions"][1].update(
            condition={"question": 1, "value_index": 5}), "out of range"),
        (lambda t: t["pages"][1]["dynamic_fields"].append(
            {"condition": {"question": 1}, "values": {}}), "value or value_index"),
        (lambda t: t["pages"][1]["dynamic_fields"].append(
            {"condition": {"question": 1, "value": 1}, "values": {"options": [0]}}), "page overlays"),
        (lambda t: t["pages"][1]["questions"][0]["dynamic_fields"].append(
            {"condition": {"question": 1, "value": 1}, "values": {"options": [7]}}), "option indexes"),
        (lambda t: t["pages"][1]["questions"].append({"id": "1.1"}), "duplicate"),
        (lambda t: t["pages"][1]["questions"][0]["dynamic_fields"].append(
            {"condition": {"question": 1, "value": 1},
             "values": {"condition": {"question": "a", "value": "y"}}}), "unknown question 'a'"),
        (lambda t: t["pages"][1]["questions"][0]["dynamic_fields"].append(
            {"condition": {"question": 1, "value": 1},
             "values": {"condition": {"question": "4", "value": "y"}}}), "unknown question '4'"),
        (lambda t: t["pages"][1]["questions"][0]["dynamic_fields"].append(
            {"condition": {"question": 1, "value": 1},
             "values": {"condition": [{"question": 1}]}}), "value or value_index"),
        (lambda t: t["pages"][1]["questions"][0]["dynamic_fields"].append(
            {"condition": {"question": 1, "value": 1},
             "values": {"condition": {"value": "y"}}}), "malformed condition"),
        (lambda t: t["pages"][1]["questions"][0]["dynamic_fields"].append(
            {"condition": {"question": 1, "value": 1},
             "values": {"condition": True}}), "must be false"),
    ])
    async def test_reference_errors(self, repo, mutate, fragment):
        template = _template()
        mutate(template)
        with pytest.raises(TemplateReferenceError, match=fragment):
            await build(repo, template)

    @pytest.mark.asyncio
    async def test_empty_template_rejected(self, repo):
        with pytest.raises(ValueError, match="no pages"):
            await GraphBuilder(repo).build(None, SurveyTemplate(title="Empty", pages=[]))


# ===================================================================
# TemplateSeeder
# ===================================================================


class TestTemplateSeeder:

    @pytest.fixture
    def templates(self):
        return [
            SurveyTemplate.model_validate(_template()),
            SurveyTemplate.model_validate(_template(title="Pets again")),
        ]

    @pytest.mark.asyncio
    async def test_seeds_empty_store_once(self, repo, templates):
        seeder = TemplateSeeder(repo)
        assert await seeder.seed(None, templates) is True
        assert await seeder.seed(None, templates) is False
        assert len(repo.surveys) == 2

    @pytest.mark.asyncio
    async def test_survey_priority_follows_file_order(self, repo, templates):
        await TemplateSeeder(repo).seed(None, templates)
        surveys = await repo.list_surveys(None)
        assert [s.title for s in surveys] == ["Pets", "Pets again"]

    @pytest.mark.asyncio
    async def test_refresh_rebuilds_only_on_hash_change(self, repo, templates):
        seeder = TemplateSeeder(repo)
        assert await seeder.seed(None, templates, refresh=True) is True
        assert repo.seed_hashes[SEED_HASH_KEY] == {
            "hash": template_hash(templates), "version": TEMPLATE_VERSION,
        }
        first_ids = set(repo.surveys)

        assert await seeder.seed(None, templates, refresh=True) is False
        assert set(repo.surveys) == first_ids

        changed = templates[:1]
        assert await seeder.seed(None, changed, refresh=True) is True
        assert len(repo.surveys) == 1
        assert not set(repo.surveys) & first_ids, "graph rebuilt from scratch"

    def test_template_hash_is_deterministic(self, templates):
        again = [SurveyTemplate.model_validate(_template()),
                 SurveyTemplate.model_validate(_template(title="Pets again"))]
        assert template_hash(templates) == template_hash(again)
        assert template_hash(templates) != template_hash(templates[:1])
