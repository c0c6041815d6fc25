"""
Shared pytest fixtures for the taskchain test suite.

Every fixture builds its own engine and store; tests never touch the
global engine.

Usage in tests:
    def test_something(chain_factory):
        chain_factory.create_chain("T1", ["a", "b"])
        result = chain_factory.engine.start("T1", 2)

    def test_with_chain(chain_env):
        # TASK_001 exists: search (in progress), analyze, write
        result = chain_env.engine.complete("TASK_001", 1, "found X")
"""

import pytest

from taskchain.engine import reset_engine
from tests.factories import ChainTestFactory


@pytest.fixture
def chain_factory():
    """Empty factory: isolated engine, store, metrics and clock."""
    return ChainTestFactory()


@pytest.fixture
def chain_env(chain_factory):
    """
    Factory with one chain already initialized.

    TASK_001: 1 search (in_progress), 2 analyze (todo), 3 write (todo)
    """
    chain_factory.create_chain()
    return chain_factory


@pytest.fixture
def engine(chain_factory):
    """Engine with an empty store."""
    return chain_factory.engine


@pytest.fixture(autouse=True)
def reset_global_engine():
    """Reset global engine before and after each test."""
    reset_engine()
    yield
    reset_engine()
