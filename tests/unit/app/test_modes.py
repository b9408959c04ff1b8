"""Tests for the interaction mode transition table."""

import pytest

from lattice.app.commands import Mutation, MutationKind, RunMutation
from lattice.app.modes import (
    ConfirmMode,
    InputKind,
    InputMode,
    Mode,
    NormalMode,
    SuspendedMode,
    can_transition,
    transition,
)
from lattice.core.engine.abc import InteractiveKind

NORMAL = NormalMode()
INPUT = InputMode(InputKind.DESCRIBE)
CONFIRM = ConfirmMode("Sure?", RunMutation(Mutation(MutationKind.UNDO)))
SUSPENDED = SuspendedMode(InteractiveKind.RESOLVE, "a.py")


@pytest.mark.parametrize(
    ("current", "target", "allowed"),
    [
        (NORMAL, INPUT, True),
        (NORMAL, CONFIRM, True),
        (NORMAL, SUSPENDED, True),
        (INPUT, NORMAL, True),
        (INPUT, CONFIRM, False),
        (INPUT, SUSPENDED, False),
        (CONFIRM, NORMAL, True),
        (CONFIRM, SUSPENDED, True),
        (CONFIRM, INPUT, False),
        (SUSPENDED, NORMAL, True),
        (SUSPENDED, INPUT, False),
    ],
)
def test_transition_table(current: Mode, target: Mode, allowed: bool) -> None:
    assert can_transition(current, target) is allowed


def test_disallowed_transition_keeps_current_mode() -> None:
    assert transition(SUSPENDED, INPUT) is SUSPENDED


def test_allowed_transition_returns_target() -> None:
    assert transition(NORMAL, INPUT) is INPUT
