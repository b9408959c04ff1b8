"""VCS intents, interaction modes and Command completion.

Every mutating intent passes the same guards before an effect is emitted.
No exclusive Command may be pending. The working copy must be free of
conflicts, except for resolving and snapshotting. Revisions that jj will
not rewrite are refused up front.
A rejected intent raises ErrorOccurred and emits nothing; it is never
queued for later.
"""

from dataclasses import replace

from lattice.app.actions import (
    Abandon,
    Action,
    ApplyFilter,
    Cancel,
    CancelMode,
    ChangeCheckFinished,
    Commit,
    Confirm,
    DeleteBookmark,
    Describe,
    DiffLoaded,
    DiffReceived,
    Edit,
    EnterInput,
    ErrorOccurred,
    ExpireMessages,
    ExternalChangeDetected,
    Fetch,
    InteractiveFinished,
    MutationSucceeded,
    NewChild,
    OperationCancelled,
    OperationCompleted,
    OperationFailed,
    OperationSuperseded,
    Push,
    Quit,
    Redo,
    Refresh,
    RepoLoaded,
    ResolveConflicts,
    SetBookmark,
    SetInputText,
    ShowStatus,
    Snapshot,
    Split,
    Squash,
    SubmitInput,
    SyncDiff,
    Tick,
    Undo,
)
from lattice.app.commands import (
    REWRITING_MUTATIONS,
    CancelCommand,
    CheckForChanges,
    LoadRepo,
    Mutation,
    MutationKind,
    RunInteractive,
    RunMutation,
)
from lattice.app.features import Update
from lattice.app.features.navigation import clamp_selection
from lattice.app.modes import (
    ConfirmMode,
    InputKind,
    InputMode,
    Mode,
    NormalMode,
    SuspendedMode,
    transition,
)
from lattice.app.recovery import ErrorKind, Severity
from lattice.app.state import AppState
from lattice.core.engine.abc import InteractiveKind
from lattice.domain.graph_layout import GraphLayout, compute_layout
from lattice.domain.models import RepoStatus, Revision

HANDLES = (
    EnterInput,
    SetInputText,
    SubmitInput,
    Confirm,
    CancelMode,
    Commit,
    Describe,
    Edit,
    NewChild,
    Abandon,
    Squash,
    SetBookmark,
    DeleteBookmark,
    Undo,
    Redo,
    Fetch,
    Push,
    ResolveConflicts,
    Split,
    Snapshot,
    OperationCompleted,
    Tick,
    Refresh,
    ExternalChangeDetected,
    Cancel,
    Quit,
)

IMMUTABLE_SUGGESTION = "Try running: jj new (to create a child of the immutable revision)"


def reduce(state: AppState, action: Action) -> Update:
    match action:
        case OperationCompleted():
            return _complete(state, action)
        case Tick():
            return _tick(state)
        case Refresh() | ExternalChangeDetected():
            return Update(state, effects=(LoadRepo(state.revset.active),))
        case Cancel():
            return _cancel(state)
        case Quit():
            return Update(replace(state, should_quit=True))
        case EnterInput(kind=kind, text=text, target_id=target_id):
            return Update(_set_mode(state, InputMode(kind, text=text, target_id=target_id)))
        case SetInputText(text=text):
            if not isinstance(state.mode, InputMode):
                return Update(state)
            return Update(replace(state, mode=replace(state.mode, text=text)))
        case SubmitInput(text=text):
            return _submit(state, text)
        case Confirm():
            return _confirm(state)
        case CancelMode():
            return Update(_set_mode(state, NormalMode()))

    # Intents are only accepted from the normal mode
    if not isinstance(state.mode, NormalMode):
        return Update(state)
    return _intent(state, action)


def _set_mode(state: AppState, target: Mode) -> AppState:
    mode = transition(state.mode, target)
    if mode is state.mode:
        return state
    return replace(state, mode=mode)


def _warn(message: str, kind: ErrorKind = ErrorKind.GENERIC) -> ErrorOccurred:
    return ErrorOccurred(message=message, kind=kind, severity=Severity.WARNING)


def _guard(
    state: AppState,
    label: str,
    *,
    check_conflicts: bool = True,
    revision: Revision | None = None,
) -> ErrorOccurred | None:
    """Return the error rejecting a mutating intent, or None if it may run."""
    if check_conflicts and state.has_conflicts:
        suggestion = (
            "Resolve conflicts (jj resolve) before committing."
            if label == MutationKind.COMMIT.value
            else "Resolve conflicts (jj resolve) first."
        )
        return ErrorOccurred(
            message=f"Cannot {label}: there are unresolved merge conflicts.",
            kind=ErrorKind.CONFLICT,
            severity=Severity.ERROR,
            suggestion=suggestion,
        )
    if state.ledger.busy:
        return ErrorOccurred(
            message=f"Cannot {label}: '{state.ledger.pending_label}' is still running",
            kind=ErrorKind.BUSY,
            severity=Severity.WARNING,
            suggestion="Wait for the running operation to finish.",
        )
    if revision is not None and revision.is_immutable:
        return ErrorOccurred(
            message=f"Cannot {label}: revision {revision.short_id} is immutable",
            kind=ErrorKind.IMMUTABLE,
            severity=Severity.ERROR,
            suggestion=IMMUTABLE_SUGGESTION,
        )
    return None


def _run(state: AppState, mutation: Mutation, *, check_conflicts: bool = True) -> Update:
    revision = None
    if mutation.kind in REWRITING_MUTATIONS and mutation.revision_id is not None:
        revision = _lookup(state, mutation.revision_id)
    error = _guard(state, mutation.label, check_conflicts=check_conflicts, revision=revision)
    if error is not None:
        return Update(state, follow_ups=(error,))
    return Update(state, effects=(RunMutation(mutation),))


def _lookup(state: AppState, revision_id: str | None) -> Revision | None:
    if state.repo is None or revision_id is None:
        return None
    return state.repo.get(state.repo.index_of(revision_id))


def _intent(state: AppState, action: Action) -> Update:
    selected = state.selected_revision

    match action:
        case Commit():
            error = _guard(state, MutationKind.COMMIT.value)
            if error is not None:
                return Update(state, follow_ups=(error,))
            working_copy = state.repo.working_copy if state.repo is not None else None
            text = working_copy.description.strip() if working_copy is not None else ""
            return Update(_set_mode(state, InputMode(InputKind.COMMIT, text=text)))

        case Undo():
            return _run(state, Mutation(MutationKind.UNDO))
        case Redo():
            return _run(state, Mutation(MutationKind.REDO))
        case Fetch():
            return _run(state, Mutation(MutationKind.FETCH))
        case Push(bookmark=bookmark):
            return _run(state, Mutation(MutationKind.PUSH, text=bookmark))
        case DeleteBookmark(name=name):
            return _run(state, Mutation(MutationKind.DELETE_BOOKMARK, text=name))
        case ResolveConflicts(path=path):
            return _resolve(state, path)
        case Snapshot():
            # jj snapshots a conflicted working copy like any other
            return _run(state, Mutation(MutationKind.SNAPSHOT), check_conflicts=False)

    if selected is None:
        return Update(state, follow_ups=(_warn("No revision selected", ErrorKind.NOT_FOUND),))

    match action:
        case Describe():
            error = _guard(state, MutationKind.DESCRIBE.value, revision=selected)
            if error is not None:
                return Update(state, follow_ups=(error,))
            mode = InputMode(
                InputKind.DESCRIBE,
                text=selected.description.strip(),
                target_id=selected.revision_id,
            )
            return Update(_set_mode(state, mode))

        case SetBookmark():
            error = _guard(state, MutationKind.SET_BOOKMARK.value)
            if error is not None:
                return Update(state, follow_ups=(error,))
            existing = sorted(selected.bookmarks)
            mode = InputMode(
                InputKind.BOOKMARK,
                text=existing[0] if existing else "",
                target_id=selected.revision_id,
            )
            return Update(_set_mode(state, mode))

        case Abandon():
            mutation = Mutation(MutationKind.ABANDON, revision_id=selected.revision_id)
            error = _guard(state, mutation.label, revision=selected)
            if error is not None:
                return Update(state, follow_ups=(error,))
            prompt = f"Abandon revision {selected.short_id} ({selected.summary})?"
            return Update(_set_mode(state, ConfirmMode(prompt, RunMutation(mutation))))

        case Edit():
            return _run(state, Mutation(MutationKind.EDIT, revision_id=selected.revision_id))
        case NewChild():
            return _run(state, Mutation(MutationKind.NEW_CHILD, revision_id=selected.revision_id))
        case Squash():
            if selected.is_root:
                return Update(state, follow_ups=(_warn("Cannot squash the root revision"),))
            return _run(state, Mutation(MutationKind.SQUASH, revision_id=selected.revision_id))
        case Split():
            error = _guard(state, InteractiveKind.SPLIT.value, revision=selected)
            if error is not None:
                return Update(state, follow_ups=(error,))
            return _suspend(state, RunInteractive(InteractiveKind.SPLIT, selected.revision_id))

    return Update(state)


def _resolve(state: AppState, path: str | None) -> Update:
    # Resolving is the way out of a conflict, so only exclusivity applies
    error = _guard(state, InteractiveKind.RESOLVE.value, check_conflicts=False)
    if error is not None:
        return Update(state, follow_ups=(error,))

    target = path
    if target is None and state.repo is not None:
        conflicted = state.repo.conflicted_paths
        target = conflicted[0] if conflicted else None
    if target is None:
        error = _warn("No conflicted files to resolve", ErrorKind.NOT_FOUND)
        return Update(state, follow_ups=(error,))
    return _suspend(state, RunInteractive(InteractiveKind.RESOLVE, target))


def _suspend(state: AppState, effect: RunInteractive) -> Update:
    suspended = _set_mode(state, SuspendedMode(effect.kind, effect.target))
    if not isinstance(suspended.mode, SuspendedMode):
        return Update(state)
    return Update(suspended, effects=(effect,))


def _submit(state: AppState, text: str) -> Update:
    mode = state.mode
    if not isinstance(mode, InputMode):
        return Update(state)

    normal = _set_mode(state, NormalMode())
    match mode.kind:
        case InputKind.FILTER:
            return Update(normal, follow_ups=(ApplyFilter(text),))
        case InputKind.COMMIT:
            return _run(normal, Mutation(MutationKind.COMMIT, text=text))
        case InputKind.DESCRIBE:
            return _run(
                normal, Mutation(MutationKind.DESCRIBE, revision_id=mode.target_id, text=text)
            )
        case InputKind.BOOKMARK:
            name = text.strip()
            if not name:
                return Update(normal, follow_ups=(_warn("Bookmark name cannot be empty"),))
            if any(c.isspace() for c in name):
                return Update(normal, follow_ups=(_warn("Bookmark names cannot contain spaces"),))
            return _run(
                normal, Mutation(MutationKind.SET_BOOKMARK, revision_id=mode.target_id, text=name)
            )


def _confirm(state: AppState) -> Update:
    mode = state.mode
    if not isinstance(mode, ConfirmMode):
        return Update(state)

    match mode.on_confirm:
        case RunMutation(mutation=mutation):
            return _run(_set_mode(state, NormalMode()), mutation)
        case RunInteractive() as effect:
            error = _guard(state, effect.kind.value, check_conflicts=False)
            if error is not None:
                return Update(_set_mode(state, NormalMode()), follow_ups=(error,))
            return _suspend(state, effect)


def _complete(state: AppState, action: OperationCompleted) -> Update:
    ledger = state.ledger
    seq = action.seq
    if seq not in ledger.in_flight:
        return Update(state)

    was_exclusive = ledger.pending_exclusive == seq
    released = replace(state, ledger=ledger.release(seq))
    if seq in ledger.cancelled:
        return Update(_leave_suspended(released) if was_exclusive else released)

    active = state.revset.active
    match action.result:
        case OperationCancelled() | OperationSuperseded():
            return Update(_leave_suspended(released) if was_exclusive else released)

        case RepoLoaded(status=status, layout=layout):
            if seq != ledger.latest_load:
                return Update(released)
            previous = state.repo
            changed = previous is not None and previous.operation_id != status.operation_id
            return Update(
                _apply_load(released, status, layout),
                follow_ups=(SyncDiff(operation_changed=changed),),
            )

        case DiffLoaded() as loaded:
            latest = seq == ledger.latest_diff
            return Update(released, follow_ups=(DiffReceived(loaded, latest=latest),))

        case MutationSucceeded(mutation=mutation):
            return Update(
                released,
                effects=(LoadRepo(active),),
                follow_ups=(ShowStatus(f"jj {mutation.label} finished"),),
            )

        case InteractiveFinished(kind=kind, exit_code=exit_code):
            follow_up: Action
            if exit_code == 0:
                follow_up = ShowStatus(f"jj {kind.value} finished")
            else:
                follow_up = _warn(f"jj {kind.value} exited with status {exit_code}")
            return Update(
                _leave_suspended(released),
                effects=(LoadRepo(active),),
                follow_ups=(follow_up,),
            )

        case ChangeCheckFinished(changed=changed):
            return Update(released, follow_ups=(ExternalChangeDetected(),) if changed else ())

        case OperationFailed() as failure:
            latest = ledger.latest_load
            if not was_exclusive and latest is not None and seq < latest:
                return Update(released)
            error = ErrorOccurred(
                message=failure.message,
                kind=failure.kind,
                severity=failure.severity,
                suggestion=failure.suggestion,
            )
            return Update(_leave_suspended(released), follow_ups=(error,))

    return Update(released)


def _leave_suspended(state: AppState) -> AppState:
    if not isinstance(state.mode, SuspendedMode):
        return state
    return _set_mode(state, NormalMode())


def _apply_load(state: AppState, status: RepoStatus, layout: GraphLayout | None) -> AppState:
    if layout is None or layout.source_version != status.version or len(layout) != len(status):
        layout = compute_layout(status.revisions, source_version=status.version)

    previous = state.selected_revision
    selection: int | None = None
    if previous is not None:
        selection = status.index_of(previous.revision_id)
    if selection is None:
        if state.selection is None and status.working_copy_id is not None:
            selection = status.index_of(status.working_copy_id)
        if selection is None:
            selection = clamp_selection(state.selection, len(status))

    return replace(state, repo=status, layout=layout, selection=selection)


def _tick(state: AppState) -> Update:
    tick = state.tick + 1
    ticked = replace(state, tick=tick)

    effects: tuple[CheckForChanges, ...] = ()
    due = tick % state.settings.refresh_interval_ticks == 0
    if due and state.ledger.idle and state.repo is not None and isinstance(state.mode, NormalMode):
        effects = (CheckForChanges(state.repo.operation_id),)
    return Update(ticked, effects=effects, follow_ups=(ExpireMessages(tick),))


def _cancel(state: AppState) -> Update:
    ledger = state.ledger
    targets = sorted(ledger.cancellable - ledger.cancelled)
    if not targets:
        return Update(state)

    cancelled = replace(ledger, cancelled=ledger.cancelled | frozenset(targets))
    return Update(
        replace(state, ledger=cancelled),
        effects=tuple(CancelCommand(seq) for seq in targets),
        follow_ups=(ShowStatus("Cancelling running operations"),),
    )
