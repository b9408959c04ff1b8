"""Interaction modes and the transitions allowed between them.

    Normal -> Input(kind) | Confirm | Suspended
    Input -> Normal
    Confirm -> Normal | Suspended
    Suspended -> Normal

Requests for any other transition are ignored.
"""

from dataclasses import dataclass
from enum import Enum

from lattice.app.commands import RunInteractive, RunMutation
from lattice.core.engine.abc import InteractiveKind


class InputKind(Enum):
    DESCRIBE = "describe"
    COMMIT = "commit"
    BOOKMARK = "bookmark"
    FILTER = "filter"


@dataclass(frozen=True)
class NormalMode:
    pass


@dataclass(frozen=True)
class InputMode:
    """Collecting text; `target_id` is the revision the text applies to."""

    kind: InputKind
    text: str = ""
    target_id: str | None = None


@dataclass(frozen=True)
class ConfirmMode:
    """Waiting for confirmation before running `on_confirm`."""

    prompt: str
    on_confirm: RunMutation | RunInteractive


@dataclass(frozen=True)
class SuspendedMode:
    """The terminal belongs to an external interactive program."""

    kind: InteractiveKind
    target: str


type Mode = NormalMode | InputMode | ConfirmMode | SuspendedMode

_ALLOWED: dict[type, frozenset[type]] = {
    NormalMode: frozenset({InputMode, ConfirmMode, SuspendedMode}),
    InputMode: frozenset({NormalMode}),
    ConfirmMode: frozenset({NormalMode, SuspendedMode}),
    SuspendedMode: frozenset({NormalMode}),
}


def can_transition(current: Mode, target: Mode) -> bool:
    return type(target) in _ALLOWED[type(current)]


def transition(current: Mode, target: Mode) -> Mode:
    """Return `target` if the move is allowed, otherwise stay in `current`."""
    if can_transition(current, target):
        return target
    return current
