"""Revset filter: active expression, recent history and presets."""

from dataclasses import replace

from lattice.app.actions import (
    Action,
    ApplyFilter,
    ClearFilter,
    CycleFilter,
    EnterInput,
    ErrorOccurred,
    RevertFilter,
    SelectPreset,
    SetInputText,
    StartFilterInput,
    ToggleFilterSource,
)
from lattice.app.commands import LoadRepo, PersistFilterHistory
from lattice.app.features import Update
from lattice.app.modes import InputKind, InputMode
from lattice.app.recovery import ErrorKind, Severity
from lattice.app.state import AppState, FilterSource, RevsetState

HANDLES = (
    ApplyFilter,
    ClearFilter,
    SelectPreset,
    StartFilterInput,
    CycleFilter,
    ToggleFilterSource,
    RevertFilter,
)


def push_history(history: tuple[str, ...], expression: str, limit: int) -> tuple[str, ...]:
    """Move `expression` to the front, dropping duplicates and the oldest overflow."""
    return (expression, *(entry for entry in history if entry != expression))[:limit]


def reduce(state: AppState, action: Action) -> Update:
    revset = state.revset
    match action:
        case ApplyFilter(expression=expression) | SelectPreset(expression=expression):
            return _apply(state, expression)

        case ClearFilter():
            if revset.active is None:
                return Update(state)
            return Update(_with_revset(state, active=None), effects=(LoadRepo(None),))

        case RevertFilter():
            if revset.active is None:
                return Update(state)
            return Update(_with_revset(state, active=None), effects=(LoadRepo(None),))

        case StartFilterInput():
            cleared = _with_revset(state, browse_index=None, browse_source=FilterSource.HISTORY)
            return Update(
                cleared, follow_ups=(EnterInput(InputKind.FILTER, text=revset.active or ""),)
            )

        case CycleFilter(step=step):
            return _cycle(state, step)

        case ToggleFilterSource():
            source = (
                FilterSource.PRESETS
                if revset.browse_source is FilterSource.HISTORY
                else FilterSource.HISTORY
            )
            return Update(_with_revset(state, browse_source=source, browse_index=None))

        case _:
            return Update(state)


def _apply(state: AppState, expression: str) -> Update:
    expression = expression.strip()
    if not expression:
        return Update(
            state,
            follow_ups=(
                ErrorOccurred(
                    message="Filter expression cannot be empty",
                    kind=ErrorKind.GENERIC,
                    severity=Severity.WARNING,
                ),
            ),
        )

    history = push_history(state.revset.history, expression, state.revset.max_history)
    return Update(
        _with_revset(state, active=expression, history=history, browse_index=None),
        effects=(LoadRepo(expression), PersistFilterHistory(history)),
    )


def _cycle(state: AppState, step: int) -> Update:
    mode = state.mode
    if not isinstance(mode, InputMode) or mode.kind is not InputKind.FILTER or step == 0:
        return Update(state)

    revset = state.revset
    entries = revset.history if revset.browse_source is FilterSource.HISTORY else revset.presets
    if not entries:
        return Update(state)

    if revset.browse_index is None:
        index = 0 if step > 0 else len(entries) - 1
    else:
        index = (revset.browse_index + step) % len(entries)

    return Update(
        _with_revset(state, browse_index=index), follow_ups=(SetInputText(entries[index]),)
    )


def _with_revset(state: AppState, **changes: object) -> AppState:
    revset: RevsetState = replace(state.revset, **changes)  # type: ignore[arg-type]
    return replace(state, revset=revset)
