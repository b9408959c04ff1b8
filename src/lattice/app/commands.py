"""Side effects requested by the reducer.

Sub-reducers return bare effects. The reducer core stamps each one into a
Command carrying a monotonic sequence number and its scheduling flags.
"""

from dataclasses import dataclass
from enum import Enum

from lattice.core.engine.abc import InteractiveKind


class MutationKind(Enum):
    """Mutating engine calls."""

    DESCRIBE = "describe"
    COMMIT = "commit"
    EDIT = "edit"
    NEW_CHILD = "new"
    ABANDON = "abandon"
    SQUASH = "squash"
    SET_BOOKMARK = "bookmark set"
    DELETE_BOOKMARK = "bookmark delete"
    UNDO = "undo"
    REDO = "redo"
    FETCH = "fetch"
    PUSH = "push"
    SNAPSHOT = "snapshot"


# Network calls can be abandoned by the user while they run
CANCELLABLE_MUTATIONS = frozenset({MutationKind.FETCH, MutationKind.PUSH})

# Mutations that rewrite the target revision itself
REWRITING_MUTATIONS = frozenset(
    {MutationKind.DESCRIBE, MutationKind.EDIT, MutationKind.ABANDON, MutationKind.SQUASH}
)


@dataclass(frozen=True)
class Mutation:
    """A mutating engine call with its arguments.

    `revision_id` is set for revision-targeted kinds, `text` carries the
    description, commit message or bookmark name.
    """

    kind: MutationKind
    revision_id: str | None = None
    text: str | None = None

    @property
    def label(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class LoadRepo:
    revset: str | None


@dataclass(frozen=True)
class LoadDiff:
    revision_id: str


@dataclass(frozen=True)
class RunMutation:
    mutation: Mutation


@dataclass(frozen=True)
class RunInteractive:
    kind: InteractiveKind
    target: str


@dataclass(frozen=True)
class CheckForChanges:
    """Compare the engine's latest operation id with the one last loaded."""

    operation_id: str


@dataclass(frozen=True)
class PersistFilterHistory:
    history: tuple[str, ...]


@dataclass(frozen=True)
class CancelCommand:
    target_seq: int


type Effect = (
    LoadRepo
    | LoadDiff
    | RunMutation
    | RunInteractive
    | CheckForChanges
    | PersistFilterHistory
    | CancelCommand
)


@dataclass(frozen=True)
class Command:
    """An effect scheduled for the orchestrator."""

    seq: int
    effect: Effect
    exclusive: bool
    cancellable: bool


def is_exclusive(effect: Effect) -> bool:
    return isinstance(effect, RunMutation | RunInteractive)


def is_cancellable(effect: Effect) -> bool:
    match effect:
        case LoadRepo():
            return True
        case RunMutation(mutation=mutation):
            return mutation.kind in CANCELLABLE_MUTATIONS
        case _:
            return False


def expects_completion(effect: Effect) -> bool:
    """True if the orchestrator reports back with OperationCompleted."""
    return isinstance(
        effect, LoadRepo | LoadDiff | RunMutation | RunInteractive | CheckForChanges
    )
