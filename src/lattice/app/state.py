"""Application state.

AppState is a frozen value owned by the event loop. The reducer produces a
new one for every action; nothing else writes to it. Each feature
sub-reducer owns one group of fields:

    navigation  selection, diff
    vcs         ledger, repo, layout, mode, tick, should_quit
    revset      revset
    errors      error, status_message
"""

from dataclasses import dataclass, field, replace
from enum import Enum

from lattice.app.modes import Mode, NormalMode
from lattice.app.recovery import ErrorKind, Severity
from lattice.domain.graph_layout import GraphLayout
from lattice.domain.models import RepoStatus, Revision

PRESETS: tuple[str, ...] = (
    "mine()",
    "trunk()",
    "conflicts()",
    "all()",
    "heads(all())",
    "bookmarks()",
    "immutable()",
    "mutable()",
    "empty()",
    "divergent()",
    "merges()",
    "tags()",
    "remote_bookmarks()",
    "working_copies()",
)


@dataclass(frozen=True)
class Settings:
    """Reducer tunables, taken from LatticeConfig at startup."""

    log_limit: int = 500
    refresh_interval_ticks: int = 8
    warning_ttl_ticks: int = 20
    max_filter_history: int = 10


@dataclass(frozen=True)
class Ledger:
    """Bookkeeping of issued Commands.

    Fields:
        next_seq: Sequence number the next Command receives
        pending_exclusive: Seq of the outstanding exclusive Command, if any
        pending_label: Human-readable name of that Command
        latest_load: Seq of the newest LoadRepo issued
        latest_diff: Seq of the newest LoadDiff issued
        in_flight: Seqs that will report back with OperationCompleted
        cancellable: In-flight seqs the user may cancel
        cancelled: Seqs whose completion must be ignored
    """

    next_seq: int = 1
    pending_exclusive: int | None = None
    pending_label: str | None = None
    latest_load: int | None = None
    latest_diff: int | None = None
    in_flight: frozenset[int] = frozenset()
    cancellable: frozenset[int] = frozenset()
    cancelled: frozenset[int] = frozenset()

    @property
    def busy(self) -> bool:
        return self.pending_exclusive is not None

    @property
    def idle(self) -> bool:
        return self.pending_exclusive is None and not self.in_flight

    def release(self, seq: int) -> "Ledger":
        """Forget a completed Command."""
        pending = self.pending_exclusive
        label = self.pending_label
        if pending == seq:
            pending = None
            label = None
        return replace(
            self,
            pending_exclusive=pending,
            pending_label=label,
            in_flight=self.in_flight - {seq},
            cancellable=self.cancellable - {seq},
            cancelled=self.cancelled - {seq},
        )


class FilterSource(Enum):
    HISTORY = "history"
    PRESETS = "presets"


@dataclass(frozen=True)
class RevsetState:
    active: str | None = None
    history: tuple[str, ...] = ()
    presets: tuple[str, ...] = PRESETS
    max_history: int = 10
    browse_source: FilterSource = FilterSource.HISTORY
    browse_index: int | None = None


@dataclass(frozen=True)
class DiffState:
    """Diff of the selected revision.

    `text` is None while the diff for `revision_id` is loading. `cache` maps
    revision ids to diffs already fetched and is replaced, never mutated.
    """

    revision_id: str | None = None
    text: str | None = None
    cache: dict[str, str] = field(default_factory=dict)

    @property
    def loading(self) -> bool:
        return self.revision_id is not None and self.text is None


@dataclass(frozen=True)
class ErrorState:
    message: str
    severity: Severity
    kind: ErrorKind
    suggestion: str | None = None
    expires_at_tick: int | None = None


@dataclass(frozen=True)
class StatusMessage:
    text: str
    expires_at_tick: int


@dataclass(frozen=True)
class AppState:
    repo: RepoStatus | None = None
    layout: GraphLayout | None = None
    selection: int | None = None
    diff: DiffState = field(default_factory=DiffState)
    mode: Mode = field(default_factory=NormalMode)
    revset: RevsetState = field(default_factory=RevsetState)
    error: ErrorState | None = None
    status_message: StatusMessage | None = None
    ledger: Ledger = field(default_factory=Ledger)
    settings: Settings = field(default_factory=Settings)
    tick: int = 0
    should_quit: bool = False

    @staticmethod
    def initial(settings: Settings | None = None, history: tuple[str, ...] = ()) -> "AppState":
        resolved = settings if settings is not None else Settings()
        return AppState(
            settings=resolved,
            revset=RevsetState(
                history=history[: resolved.max_filter_history],
                max_history=resolved.max_filter_history,
            ),
        )

    @property
    def revisions(self) -> tuple[Revision, ...]:
        if self.repo is None:
            return ()
        return self.repo.revisions

    @property
    def selected_revision(self) -> Revision | None:
        if self.repo is None:
            return None
        return self.repo.get(self.selection)

    @property
    def has_conflicts(self) -> bool:
        return self.repo is not None and self.repo.has_conflicts

    def render_layout(self) -> GraphLayout | None:
        """Return the layout only if it was computed from the current RepoStatus."""
        if self.repo is None or self.layout is None:
            return None
        if self.layout.source_version != self.repo.version:
            return None
        if len(self.layout) != len(self.repo):
            return None
        return self.layout
