"""Pytest configuration and fixtures."""

import pytest

from lattice.core.context import LatticeContext
from lattice.core.engine.fake import FakeVcsEngine
from lattice.core.filter_history import InMemoryFilterHistoryStore
from tests.fakes.terminal import FakeTerminal
from tests.test_utils.repos import linear_revisions


@pytest.fixture
def fake_terminal() -> FakeTerminal:
    """Create a fresh FakeTerminal."""
    return FakeTerminal()


@pytest.fixture
def fake_engine() -> FakeVcsEngine:
    """Three linear revisions with r0 as the working copy."""
    return FakeVcsEngine(revisions=linear_revisions(3), working_copy_id="r0")


@pytest.fixture
def filter_history() -> InMemoryFilterHistoryStore:
    return InMemoryFilterHistoryStore()


@pytest.fixture
def test_context(
    fake_engine: FakeVcsEngine,
    fake_terminal: FakeTerminal,
    filter_history: InMemoryFilterHistoryStore,
) -> LatticeContext:
    """Create a LatticeContext wired to the fakes above."""
    return LatticeContext.for_test(
        engine=fake_engine, terminal=fake_terminal, filter_history=filter_history
    )
