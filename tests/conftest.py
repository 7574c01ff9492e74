from unittest.mock import AsyncMock

import pytest

from survey_engine.memory import InMemoryStorage


@pytest.fixture
def repo():
    """Fresh in-memory storage backend."""
    return InMemoryStorage()


@pytest.fixture
def db():
    """Stand-in for AsyncSession; the in-memory backend ignores it."""
    return AsyncMock()
