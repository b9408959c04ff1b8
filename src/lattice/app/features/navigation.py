"""Selection movement over the loaded revisions, and the diff that follows it.

Whenever the selected revision changes, its diff is taken from the cache
or requested with LoadDiff. A diff that arrives for a revision that is no
longer selected, or from a request that was overtaken by a newer one, is
only cached.
"""

from dataclasses import replace

from lattice.app.actions import (
    Action,
    DiffReceived,
    MoveSelection,
    SelectFirst,
    SelectLast,
    SelectRevision,
    SelectWorkingCopy,
    SyncDiff,
)
from lattice.app.commands import LoadDiff
from lattice.app.features import Update
from lattice.app.state import AppState, DiffState

HANDLES = (
    MoveSelection,
    SelectFirst,
    SelectLast,
    SelectRevision,
    SelectWorkingCopy,
    SyncDiff,
    DiffReceived,
)

MAX_CACHED_DIFFS = 64


def clamp_selection(index: int | None, count: int) -> int | None:
    """Clamp an index into [0, count); None when there is nothing to select."""
    if count == 0:
        return None
    if index is None:
        return 0
    return max(0, min(index, count - 1))


def reduce(state: AppState, action: Action) -> Update:
    match action:
        case SyncDiff(operation_changed=operation_changed):
            if operation_changed:
                state = replace(state, diff=DiffState(revision_id=state.diff.revision_id))
            return _follow_selection(state, force=operation_changed)
        case DiffReceived(diff=diff, latest=latest):
            return Update(_receive_diff(state, diff.revision_id, diff.text, diff.failed, latest))

    count = len(state.revisions)
    if count == 0:
        return Update(state)

    match action:
        case MoveSelection(delta=delta):
            current = state.selection if state.selection is not None else 0
            selection = clamp_selection(current + delta, count)
        case SelectFirst():
            selection = 0
        case SelectLast():
            selection = count - 1
        case SelectRevision(revision_id=revision_id):
            assert state.repo is not None
            index = state.repo.index_of(revision_id)
            selection = index if index is not None else state.selection
        case SelectWorkingCopy():
            assert state.repo is not None
            working_copy_id = state.repo.working_copy_id
            index = state.repo.index_of(working_copy_id) if working_copy_id else None
            selection = index if index is not None else state.selection
        case _:
            return Update(state)

    return _follow_selection(replace(state, selection=selection))


def _follow_selection(state: AppState, *, force: bool = False) -> Update:
    """Show the selected revision's diff, requesting it if it is not cached."""
    selected = state.selected_revision
    diff = state.diff
    if selected is None:
        return Update(replace(state, diff=DiffState(cache=diff.cache)))

    revision_id = selected.revision_id
    if revision_id == diff.revision_id and not force:
        return Update(state)

    cached = diff.cache.get(revision_id)
    if cached is not None:
        return Update(replace(state, diff=replace(diff, revision_id=revision_id, text=cached)))
    loading = replace(diff, revision_id=revision_id, text=None)
    return Update(replace(state, diff=loading), effects=(LoadDiff(revision_id),))


def _receive_diff(
    state: AppState, revision_id: str, text: str, failed: bool, latest: bool
) -> AppState:
    diff = state.diff
    cache = diff.cache
    if not failed:
        cache = {k: v for k, v in cache.items() if k != revision_id}
        cache[revision_id] = text
        while len(cache) > MAX_CACHED_DIFFS:
            del cache[next(iter(cache))]

    if latest and diff.revision_id == revision_id:
        return replace(state, diff=replace(diff, text=text, cache=cache))
    return replace(state, diff=replace(diff, cache=cache))
