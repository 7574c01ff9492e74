"""Survey engine constants shared across the SDK.

These values are referenced by the traversal, validator, progress
estimator and graph builder.

The traversal bounds can be overridden via environment variables so that
deployments with unusually long surveys can raise them without code
changes.
"""

import os

from survey_engine.models.graph import QuestionType

# Question types whose options may carry a ``next_question`` branch.
# Traversal follows option edges only for these types.
BRANCHING_TYPES: frozenset[QuestionType] = frozenset({
    QuestionType.SELECT,
    QuestionType.RADIO,
    QuestionType.INFOCARD,
    QuestionType.ADDRESS,
    QuestionType.MULTISELECT,
})

# Branching types whose answer is a list of option ids (all selected
# options are followed).  Every other branching type takes a single id.
MULTI_VALUE_TYPES: frozenset[QuestionType] = frozenset({QuestionType.MULTISELECT})

# Upper bound on page hops in one cross-page traversal.  A survey graph
# that keeps producing empty pages beyond this is treated as cyclic.
# Overridable via SURVEY_MAX_PAGE_HOPS env var.
MAX_PAGE_HOPS = int(os.getenv("SURVEY_MAX_PAGE_HOPS", "999"))

# Upper bound on pages counted by the progress estimator.
# Overridable via SURVEY_PROGRESS_CAP env var.
PROGRESS_ITERATION_CAP = int(os.getenv("SURVEY_PROGRESS_CAP", "999"))

# Key under which the seeder stores the template content hash.
SEED_HASH_KEY = "surveys.seedHash"

# Bumped when the template format changes incompatibly.
TEMPLATE_VERSION = "v1"
