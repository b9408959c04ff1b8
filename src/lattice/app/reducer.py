"""The pure state transition.

reduce(state, action) routes the action to the one sub-reducer that owns
it, stamps the effects it returns into Commands, then processes follow-up
actions raised along the way, in order, within the same transition.

Nothing in here reads clocks, draws random numbers, logs or performs I/O:
the same (state, action) always yields the same Transition.
"""

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, replace

from lattice.app.actions import Action
from lattice.app.commands import (
    Command,
    Effect,
    LoadDiff,
    LoadRepo,
    RunInteractive,
    RunMutation,
    expects_completion,
    is_cancellable,
    is_exclusive,
)
from lattice.app.features import Update, errors, navigation, revset, vcs
from lattice.app.state import AppState, Ledger

type SubReducer = Callable[[AppState, Action], Update]

# Upper bound on follow-ups within one transition; exceeding it is a bug
MAX_DISPATCH = 32


def _build_routes() -> dict[type, SubReducer]:
    routes: dict[type, SubReducer] = {}
    for handles, handler in (
        (navigation.HANDLES, navigation.reduce),
        (vcs.HANDLES, vcs.reduce),
        (revset.HANDLES, revset.reduce),
        (errors.HANDLES, errors.reduce),
    ):
        for action_type in handles:
            if action_type in routes:
                raise RuntimeError(f"{action_type.__name__} is routed to two sub-reducers")
            routes[action_type] = handler
    return routes


ROUTES = _build_routes()


@dataclass(frozen=True)
class Transition:
    """Output of one reduce() call.

    Fields:
        state: The new state
        commands: Commands to hand to the orchestrator, in order
        dispatched: The input action followed by every follow-up processed
    """

    state: AppState
    commands: tuple[Command, ...]
    dispatched: tuple[Action, ...]


def reduce(state: AppState, action: Action) -> Transition:
    pending: deque[Action] = deque([action])
    dispatched: list[Action] = []
    commands: list[Command] = []

    while pending:
        if len(dispatched) >= MAX_DISPATCH:
            raise RuntimeError(f"Follow-up chain exceeded {MAX_DISPATCH} actions")
        current = pending.popleft()
        dispatched.append(current)

        handler = ROUTES.get(type(current))
        if handler is None:
            raise TypeError(f"No sub-reducer handles {type(current).__name__}")

        update = handler(state, current)
        state = update.state
        for effect in update.effects:
            state, command = _stamp(state, effect)
            commands.append(command)
        pending.extend(update.follow_ups)

    return Transition(state=state, commands=tuple(commands), dispatched=tuple(dispatched))


def _stamp(state: AppState, effect: Effect) -> tuple[AppState, Command]:
    ledger = state.ledger
    seq = ledger.next_seq
    command = Command(
        seq=seq,
        effect=effect,
        exclusive=is_exclusive(effect),
        cancellable=is_cancellable(effect),
    )

    changes: dict[str, object] = {"next_seq": seq + 1}
    if command.exclusive:
        changes["pending_exclusive"] = seq
        changes["pending_label"] = _label(effect)
    if isinstance(effect, LoadRepo):
        changes["latest_load"] = seq
    if isinstance(effect, LoadDiff):
        changes["latest_diff"] = seq
    if expects_completion(effect):
        changes["in_flight"] = ledger.in_flight | {seq}
    if command.cancellable:
        changes["cancellable"] = ledger.cancellable | {seq}

    stamped: Ledger = replace(ledger, **changes)  # type: ignore[arg-type]
    return replace(state, ledger=stamped), command


def _label(effect: Effect) -> str | None:
    match effect:
        case RunMutation(mutation=mutation):
            return mutation.label
        case RunInteractive(kind=kind):
            return kind.value
        case _:
            return None
