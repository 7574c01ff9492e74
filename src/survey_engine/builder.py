"""GraphBuilder and TemplateSeeder — materialize symbolic templates.

Templates reference questions by symbolic ids, forward and backward, so the
graph cannot be written in one pass.  Building is two-phase:

  Phase 1  create every page, then every question without its pointer
           fields; record symbolic id -> question id.
  Phase 2  create the survey, then every option (its ``next_question``
           resolved through the table), then patch each question's
           ``next_question``, ``condition`` and ``dynamic_fields`` and each
           page's ``dynamic_fields``.

Options are all created before any condition is resolved, so a
``value_index`` or reverse lookup may target a question defined later in
the template.  Any dangling reference raises
:class:`~survey_engine.errors.TemplateReferenceError`; the caller is
expected to roll back.

:class:`TemplateSeeder` wraps the builder in an idempotent upsert keyed by
a content hash of the templates.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from survey_engine.constants import SEED_HASH_KEY, TEMPLATE_VERSION
from survey_engine.errors import TemplateReferenceError
from survey_engine.interfaces import SurveyStorage
from survey_engine.models.template import (
    ConditionRef,
    DynamicFieldTemplate,
    QuestionTemplate,
    SurveyTemplate,
)

logger = logging.getLogger(__name__)

# Scalar question attributes copied as-is in phase 1
_QUESTION_SCALARS = (
    "type", "title", "description", "hint", "required", "risk_evaluation", "auth_relation",
    "export_field",
)


@dataclass
class _BuiltQuestion:
    """Arena entry for one created question."""

    id: int
    page_id: int
    # option ids in template order
    options: list[int] = field(default_factory=list)
    # option id -> resolved next_question
    option_targets: dict[int, int | None] = field(default_factory=dict)


class GraphBuilder:
    """Two-phase template-to-graph builder.

    Args:
        repo: storage backend receiving the created rows
    """

    def __init__(self, repo: SurveyStorage) -> None:
        self._repo = repo

    async def build(self, db: Any, template: SurveyTemplate, *, priority: int = 0) -> int:
        """Create the survey described by ``template`` and return its id.

        Raises:
            TemplateReferenceError: a symbolic id, ``value_index`` or
                reverse lookup cannot be resolved.
            ValueError: the template has no pages.
        """
        if not template.pages:
            raise ValueError(f"Survey template {template.title!r} has no pages")

        arena: dict[str, _BuiltQuestion] = {}
        page_ids: list[int] = []

        # -- phase 1: pages and bare questions ----------------------------
        for page_tpl in template.pages:
            page_id = await self._repo.create_page(
                db, title=page_tpl.title, description=page_tpl.description,
            )
            page_ids.append(page_id)

            count = len(page_tpl.questions)
            for index, q_tpl in enumerate(page_tpl.questions):
                if q_tpl.id in arena:
                    raise TemplateReferenceError(
                        f"{template.title}: duplicate question id {q_tpl.id!r}"
                    )
                fields = {name: getattr(q_tpl, name) for name in _QUESTION_SCALARS}
                qid = await self._repo.create_question(
                    db, page_id=page_id, priority=count - index, fields=fields,
                )
                arena[q_tpl.id] = _BuiltQuestion(id=qid, page_id=page_id)

        # -- phase 2: survey, options, pointer fields ---------------------
        survey_id = await self._repo.create_survey(
            db,
            title=template.title,
            description=template.description,
            icon=template.icon,
            priority=priority,
            auth_type=template.auth_type.value,
            export_list=template.export_list,
            first_page=page_ids[0],
        )

        resolver = _References(template.title, arena)

        for page_tpl in template.pages:
            for q_tpl in page_tpl.questions:
                built = arena[q_tpl.id]
                count = len(q_tpl.options)
                for index, o_tpl in enumerate(q_tpl.options):
                    target = resolver.question_id(o_tpl.next_question, q_tpl.id)
                    oid = await self._repo.create_option(
                        db,
                        question_id=built.id,
                        title=o_tpl.title,
                        priority=count - index,
                        next_question=target,
                    )
                    built.options.append(oid)
                    built.option_targets[oid] = target

        for page_tpl, page_id in zip(template.pages, page_ids):
            if page_tpl.dynamic_fields:
                await self._repo.update_page(
                    db,
                    page_id,
                    dynamic_fields=[
                        resolver.patch(df, owner=None) for df in page_tpl.dynamic_fields
                    ],
                )

            for q_tpl in page_tpl.questions:
                await self._patch_question(db, q_tpl, survey_id, resolver)

        logger.info(
            "Built survey %r (id=%s): %d pages, %d questions",
            template.title, survey_id, len(page_ids), len(arena),
        )
        return survey_id

    async def _patch_question(
        self,
        db: Any,
        q_tpl: QuestionTemplate,
        survey_id: int,
        resolver: _References,
    ) -> None:
        built = resolver.arena[q_tpl.id]
        await self._repo.update_question(
            db,
            built.id,
            survey_id=survey_id,
            next_question=resolver.question_id(q_tpl.next_question, q_tpl.id),
            condition=[resolver.condition(c, guarded=q_tpl.id) for c in q_tpl.condition],
            dynamic_fields=[resolver.patch(df, owner=q_tpl.id) for df in q_tpl.dynamic_fields],
        )


class _References:
    """Symbolic reference resolution over the phase-1 arena."""

    def __init__(self, survey_title: str, arena: dict[str, _BuiltQuestion]) -> None:
        self.title = survey_title
        self.arena = arena

    def _lookup(self, symbolic: str, referrer: str | None) -> _BuiltQuestion:
        built = self.arena.get(symbolic)
        if built is None:
            where = f"question {referrer!r}" if referrer else "an overlay"
            raise TemplateReferenceError(
                f"{self.title}: {where} references unknown question {symbolic!r}"
            )
        return built

    def question_id(self, symbolic: str | None, referrer: str | None) -> int | None:
        if symbolic is None:
            return None
        return self._lookup(symbolic, referrer).id

    def condition(self, ref: ConditionRef, *, guarded: str | None) -> dict[str, Any]:
        """Resolve a condition; ``guarded`` enables reverse lookup."""
        target = self._lookup(ref.question, guarded)

        if ref.value is not None:
            value = ref.value
        elif ref.value_index is not None:
            if not 0 <= ref.value_index < len(target.options):
                raise TemplateReferenceError(
                    f"{self.title}: value_index {ref.value_index} out of range for "
                    f"question {ref.question!r} ({len(target.options)} options)"
                )
            value = target.options[ref.value_index]
        elif guarded is not None:
            guarded_id = self.arena[guarded].id
            matches = [oid for oid, nq in target.option_targets.items() if nq == guarded_id]
            if not matches:
                raise TemplateReferenceError(
                    f"{self.title}: no option of question {ref.question!r} "
                    f"leads to {guarded!r}"
                )
            value = matches[0]
        else:
            raise TemplateReferenceError(
                f"{self.title}: overlay condition on {ref.question!r} needs "
                "a value or value_index"
            )

        return {"question": target.id, "value": value}

    def patch(self, df: DynamicFieldTemplate, *, owner: str | None) -> dict[str, Any]:
        """Resolve an overlay patch; option indexes map to ``owner``'s options."""
        # overlay conditions never use reverse lookup
        condition = self.condition(df.condition, guarded=None)

        values = dict(df.values)
        if isinstance(values.get("options"), list):
            if owner is None:
                raise TemplateReferenceError(
                    f"{self.title}: page overlays cannot carry options"
                )
            owned = self.arena[owner].options
            try:
                values["options"] = [owned[i] for i in values["options"]]
            except (IndexError, TypeError) as exc:
                raise TemplateReferenceError(
                    f"{self.title}: question {owner!r} overlay has bad option "
                    f"indexes {df.values['options']!r}"
                ) from exc

        if "condition" in values and values["condition"] is not False:
            values["condition"] = self._replacement_guard(values["condition"], owner)

        return {"condition": [condition], "values": values}

    def _replacement_guard(self, raw: Any, owner: str | None) -> list[dict[str, Any]]:
        """Resolve a guard an overlay swaps in; only ``False`` passes unresolved."""
        refs = raw if isinstance(raw, list) else [raw]
        resolved = []
        for ref in refs:
            if not isinstance(ref, dict):
                raise TemplateReferenceError(
                    f"{self.title}: overlay condition must be false or a "
                    f"condition mapping, got {ref!r}"
                )
            try:
                parsed = ConditionRef.model_validate(ref)
            except ValidationError as exc:
                raise TemplateReferenceError(
                    f"{self.title}: overlay of {owner!r} has a malformed condition {ref!r}"
                ) from exc
            resolved.append(self.condition(parsed, guarded=None))
        return resolved


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------

def template_hash(templates: list[SurveyTemplate]) -> str:
    """MD5 of the canonical JSON dump of ``templates``."""
    payload = json.dumps(
        [t.model_dump(mode="json") for t in templates],
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.md5(payload.encode("utf-8")).hexdigest()


class TemplateSeeder:
    """Idempotent upsert of a template set.

    With ``refresh`` the graph is rebuilt whenever the content hash
    differs from the stored one; without it, templates are only built
    into an empty database.
    """

    def __init__(self, repo: SurveyStorage) -> None:
        self._repo = repo
        self._builder = GraphBuilder(repo)

    async def seed(
        self,
        db: Any,
        templates: list[SurveyTemplate],
        *,
        content_hash: str | None = None,
        refresh: bool = False,
    ) -> bool:
        """Seed ``templates``.  Returns True if anything was (re)built."""
        if refresh:
            content_hash = content_hash or template_hash(templates)
            stored = await self._repo.get_seed_hash(db, SEED_HASH_KEY)
            if stored == content_hash:
                logger.info("Survey templates unchanged (hash %s), no reseeding", content_hash)
                return False
            logger.info("Survey templates changed (%s -> %s), rebuilding", stored, content_hash)
            await self._repo.clear_surveys(db)
            await self._build_all(db, templates)
            await self._repo.store_seed_hash(db, SEED_HASH_KEY, content_hash, TEMPLATE_VERSION)
            return True

        if await self._repo.count_surveys(db):
            logger.info("Surveys already present, skipping seed")
            return False
        await self._build_all(db, templates)
        return True

    async def _build_all(self, db: Any, templates: list[SurveyTemplate]) -> None:
        count = len(templates)
        for index, template in enumerate(templates):
            await self._builder.build(db, template, priority=count - index)
