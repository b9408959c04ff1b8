"""Feature sub-reducers.

Each module exposes HANDLES, the action types it owns, and reduce(), which
returns an Update for one of those actions.
"""

from dataclasses import dataclass

from lattice.app.actions import Action
from lattice.app.commands import Effect
from lattice.app.state import AppState


@dataclass(frozen=True)
class Update:
    """Result of a sub-reducer: new state, effects to stamp, actions to dispatch next."""

    state: AppState
    effects: tuple[Effect, ...] = ()
    follow_ups: tuple[Action, ...] = ()
