"""Every event the reducer understands.

Actions come from three places: input (mapped by the key layer), the tick
timer, and the orchestrator reporting on Commands. Some are only ever raised
as follow-ups by sub-reducers within a single transition.
"""

from dataclasses import dataclass

from lattice.app.commands import Mutation
from lattice.app.modes import InputKind
from lattice.app.recovery import ErrorKind, Severity
from lattice.core.engine.abc import InteractiveKind
from lattice.domain.graph_layout import GraphLayout
from lattice.domain.models import RepoStatus

# Navigation


@dataclass(frozen=True)
class MoveSelection:
    delta: int


@dataclass(frozen=True)
class SelectFirst:
    pass


@dataclass(frozen=True)
class SelectLast:
    pass


@dataclass(frozen=True)
class SelectRevision:
    revision_id: str


@dataclass(frozen=True)
class SelectWorkingCopy:
    pass


@dataclass(frozen=True)
class SyncDiff:
    """Bring the diff pane in line with the selection after a reload.

    `operation_changed` drops cached diffs, since jj rewrote something.
    """

    operation_changed: bool


@dataclass(frozen=True)
class DiffReceived:
    """A diff arrived. Only the newest request may replace what is shown."""

    diff: "DiffLoaded"
    latest: bool


# Modes


@dataclass(frozen=True)
class EnterInput:
    kind: InputKind
    text: str = ""
    target_id: str | None = None


@dataclass(frozen=True)
class SetInputText:
    text: str


@dataclass(frozen=True)
class SubmitInput:
    text: str


@dataclass(frozen=True)
class Confirm:
    pass


@dataclass(frozen=True)
class CancelMode:
    pass


# VCS intents. Revision-targeted intents act on the selected revision.


@dataclass(frozen=True)
class Commit:
    pass


@dataclass(frozen=True)
class Describe:
    pass


@dataclass(frozen=True)
class Edit:
    pass


@dataclass(frozen=True)
class NewChild:
    pass


@dataclass(frozen=True)
class Abandon:
    pass


@dataclass(frozen=True)
class Squash:
    pass


@dataclass(frozen=True)
class SetBookmark:
    pass


@dataclass(frozen=True)
class DeleteBookmark:
    name: str


@dataclass(frozen=True)
class Undo:
    pass


@dataclass(frozen=True)
class Redo:
    pass


@dataclass(frozen=True)
class Fetch:
    pass


@dataclass(frozen=True)
class Push:
    bookmark: str | None = None


@dataclass(frozen=True)
class ResolveConflicts:
    """Open the merge tool on `path`, or on the first conflicted path."""

    path: str | None = None


@dataclass(frozen=True)
class Split:
    pass


@dataclass(frozen=True)
class Snapshot:
    """Record working-copy file changes into the working-copy revision."""


# Filters


@dataclass(frozen=True)
class ApplyFilter:
    expression: str


@dataclass(frozen=True)
class ClearFilter:
    pass


@dataclass(frozen=True)
class SelectPreset:
    expression: str


@dataclass(frozen=True)
class StartFilterInput:
    pass


@dataclass(frozen=True)
class CycleFilter:
    """Step through history (or presets) while editing a filter."""

    step: int


@dataclass(frozen=True)
class ToggleFilterSource:
    pass


@dataclass(frozen=True)
class RevertFilter:
    pass


# Errors and status


@dataclass(frozen=True)
class ErrorOccurred:
    message: str
    kind: ErrorKind
    severity: Severity
    suggestion: str | None = None


@dataclass(frozen=True)
class DismissError:
    pass


@dataclass(frozen=True)
class ShowStatus:
    text: str


@dataclass(frozen=True)
class ExpireMessages:
    tick: int


# Orchestrator results


@dataclass(frozen=True)
class RepoLoaded:
    status: RepoStatus
    layout: GraphLayout | None = None


@dataclass(frozen=True)
class MutationSucceeded:
    mutation: Mutation


@dataclass(frozen=True)
class InteractiveFinished:
    kind: InteractiveKind
    target: str
    exit_code: int


@dataclass(frozen=True)
class DiffLoaded:
    """Diff text for one revision. A failed load carries the error as text."""

    revision_id: str
    text: str
    failed: bool = False


@dataclass(frozen=True)
class ChangeCheckFinished:
    changed: bool
    operation_id: str


@dataclass(frozen=True)
class OperationFailed:
    message: str
    kind: ErrorKind
    severity: Severity
    suggestion: str | None = None


@dataclass(frozen=True)
class OperationCancelled:
    pass


@dataclass(frozen=True)
class OperationSuperseded:
    """A load finished after a newer one was issued; its data was dropped."""


type OperationResult = (
    RepoLoaded
    | MutationSucceeded
    | InteractiveFinished
    | DiffLoaded
    | ChangeCheckFinished
    | OperationFailed
    | OperationCancelled
    | OperationSuperseded
)


@dataclass(frozen=True)
class OperationCompleted:
    seq: int
    result: OperationResult


# Lifecycle


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class Refresh:
    pass


@dataclass(frozen=True)
class ExternalChangeDetected:
    pass


@dataclass(frozen=True)
class Cancel:
    """Request best-effort cancellation of running cancellable commands."""


@dataclass(frozen=True)
class Quit:
    pass


type Action = (
    MoveSelection
    | SelectFirst
    | SelectLast
    | SelectRevision
    | SelectWorkingCopy
    | SyncDiff
    | DiffReceived
    | EnterInput
    | SetInputText
    | SubmitInput
    | Confirm
    | CancelMode
    | Commit
    | Describe
    | Edit
    | NewChild
    | Abandon
    | Squash
    | SetBookmark
    | DeleteBookmark
    | Undo
    | Redo
    | Fetch
    | Push
    | ResolveConflicts
    | Split
    | Snapshot
    | ApplyFilter
    | ClearFilter
    | SelectPreset
    | StartFilterInput
    | CycleFilter
    | ToggleFilterSource
    | RevertFilter
    | ErrorOccurred
    | DismissError
    | ShowStatus
    | ExpireMessages
    | OperationCompleted
    | Tick
    | Refresh
    | ExternalChangeDetected
    | Cancel
    | Quit
)
