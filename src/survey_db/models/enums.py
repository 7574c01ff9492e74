"""Database-level enumerations."""

import enum


class SessionStatus(str, enum.Enum):
    """Lifecycle states for a survey session.

    Transitions:
        active -> finished  (no page left to show; happens once)
    """

    ACTIVE = "active"
    FINISHED = "finished"
