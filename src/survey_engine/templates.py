"""TemplateStore — loads survey templates from ``surveys/`` into typed models.

One YAML file holds one survey.  Files are read in name order, which is
also the seeding order (earlier files get higher survey priority), so a
numeric prefix (``01_incident.yaml``) controls how surveys are listed.

Usage::

    store = TemplateStore()        # defaults to surveys/ relative to repo root
    store.load()                   # parse all YAML files

    for template in store.templates:
        ...
    digest = store.content_hash()
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from survey_engine.builder import template_hash
from survey_engine.models.template import SurveyTemplate

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Utility helpers
# ---------------------------------------------------------------------------

def find_repo_root(start: Optional[Path] = None) -> Path:
    """Walk upwards from *start* to find the repo root (dir with pyproject.toml or .git).

    Falls back to cwd if no marker is found.
    """
    p = (start or Path(__file__).resolve()).parent
    for parent in [p, *p.parents]:
        if (parent / "pyproject.toml").exists() or (parent / ".git").exists():
            return parent
    return Path.cwd()


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


# ---------------------------------------------------------------------------
# TemplateStore
# ---------------------------------------------------------------------------

class TemplateStore:
    """Holds the parsed survey templates of one directory.

    Attributes populated after :meth:`load`:

        templates — list[SurveyTemplate], in file-name order
        sources   — dict[title, Path] of the file each survey came from
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = find_repo_root() / "surveys"
        self._base = Path(template_dir)

        # Populated by load()
        self.templates: list[SurveyTemplate] = []
        self.sources: dict[str, Path] = {}

    @property
    def base_dir(self) -> Path:
        return self._base

    def load(self) -> None:
        """Parse every ``*.yaml`` / ``*.yml`` file in the template directory.

        Raises:
            FileNotFoundError: the directory does not exist.
            ValueError: a file is not a valid survey template.
        """
        if not self._base.is_dir():
            raise FileNotFoundError(f"Missing template directory: {self._base}")

        self.templates = []
        self.sources = {}
        paths = sorted([*self._base.glob("*.yaml"), *self._base.glob("*.yml")])
        for path in paths:
            raw = load_yaml(path)
            try:
                template = SurveyTemplate.model_validate(raw)
            except ValidationError as exc:
                raise ValueError(f"Invalid survey template {path.name}: {exc}") from exc
            self.templates.append(template)
            self.sources[template.title] = path

        logger.info(
            "TemplateStore loaded %d survey template(s) from %s",
            len(self.templates), self._base,
        )

    def get(self, title: str) -> SurveyTemplate | None:
        for template in self.templates:
            if template.title == title:
                return template
        return None

    def content_hash(self) -> str:
        """Content hash of the loaded templates (see :func:`template_hash`)."""
        return template_hash(self.templates)
