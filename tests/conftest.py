"""
Shared pytest configuration.

Settings are read at import time, so the required environment has to be in
place before anything under ``app`` is imported.
"""
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("POSTGRES_USER", "edulingua")
os.environ.setdefault("POSTGRES_PASSWORD", "edulingua")

import pytest  # noqa: E402

from app.services.auth.authorization.engine import AuthorizationEngine  # noqa: E402
from app.services.auth.authorization.hierarchy import ScopeIndex  # noqa: E402
from tests.fixtures.auth import *  # noqa: E402,F401,F403


@pytest.fixture
def engine() -> AuthorizationEngine:
    """Engine without containment data."""
    return AuthorizationEngine()


@pytest.fixture
def scope_index() -> ScopeIndex:
    """Two states, three districts, four schools."""
    return ScopeIndex.from_rows([
        ("KA", "BLR", "SCH001"),
        ("KA", "BLR", "SCH002"),
        ("KA", "MYS", "SCH003"),
        ("TN", "CHN", "SCH101"),
    ])


@pytest.fixture
def strict_engine(scope_index: ScopeIndex) -> AuthorizationEngine:
    """Engine backed by the containment index."""
    return AuthorizationEngine(scope_index=scope_index)
