"""Error and status-message presentation state."""

from dataclasses import replace

from lattice.app.actions import (
    Action,
    DismissError,
    ErrorOccurred,
    ExpireMessages,
    RevertFilter,
    ShowStatus,
)
from lattice.app.features import Update
from lattice.app.recovery import ErrorKind, Severity
from lattice.app.state import AppState, ErrorState, StatusMessage

HANDLES = (ErrorOccurred, DismissError, ShowStatus, ExpireMessages)


def reduce(state: AppState, action: Action) -> Update:
    match action:
        case ErrorOccurred():
            return _raise_error(state, action)
        case DismissError():
            return Update(replace(state, error=None))
        case ShowStatus(text=text):
            message = StatusMessage(
                text=text, expires_at_tick=state.tick + state.settings.warning_ttl_ticks
            )
            return Update(replace(state, status_message=message))
        case ExpireMessages(tick=tick):
            return Update(_expire(state, tick))
        case _:
            return Update(state)


def _raise_error(state: AppState, action: ErrorOccurred) -> Update:
    expires_at: int | None = None
    if action.severity is Severity.WARNING:
        expires_at = state.tick + state.settings.warning_ttl_ticks

    error = ErrorState(
        message=action.message,
        severity=action.severity,
        kind=action.kind,
        suggestion=action.suggestion,
        expires_at_tick=expires_at,
    )
    follow_ups = (RevertFilter(),) if action.kind is ErrorKind.FILTER_SYNTAX else ()
    return Update(replace(state, error=error), follow_ups=follow_ups)


def _expire(state: AppState, tick: int) -> AppState:
    error = state.error
    if error is not None and error.expires_at_tick is not None and error.expires_at_tick <= tick:
        error = None
    status = state.status_message
    if status is not None and status.expires_at_tick <= tick:
        status = None
    if error is state.error and status is state.status_message:
        return state
    return replace(state, error=error, status_message=status)
