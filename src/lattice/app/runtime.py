"""The event loop that owns AppState.

Runtime is the only holder of the current state. Actions arrive on an
asyncio.Queue (from input, the tick timer and the orchestrator), each one is
reduced, the presenter is called with the new state, and the resulting
Commands are handed to the orchestrator.
"""

import asyncio
import logging
from collections.abc import Callable

from lattice.app.actions import Action, Tick
from lattice.app.orchestrator import Orchestrator
from lattice.app.reducer import Transition, reduce
from lattice.app.state import AppState
from lattice.core.context import LatticeContext

logger = logging.getLogger(__name__)

type Presenter = Callable[[AppState], None]


class Runtime:
    """Owns AppState and drives reduce() and the orchestrator."""

    def __init__(
        self,
        ctx: LatticeContext,
        state: AppState,
        presenter: Presenter | None = None,
    ) -> None:
        self._ctx = ctx
        self._state = state
        self._presenter = presenter
        self._queue: asyncio.Queue[Action] = asyncio.Queue()
        self._orchestrator = Orchestrator(
            ctx.engine,
            ctx.terminal,
            ctx.filter_history,
            self.post,
            log_limit=ctx.config.log_limit,
        )
        self._history: list[Transition] = []

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def transitions(self) -> list[Transition]:
        """Every transition applied so far, oldest first."""
        return list(self._history)

    def post(self, action: Action) -> None:
        """Queue an action. Must be called on the loop thread."""
        self._queue.put_nowait(action)

    def dispatch(self, action: Action) -> Transition:
        """Reduce one action, present the result and submit its commands."""
        transition = reduce(self._state, action)
        self._state = transition.state
        self._history.append(transition)
        logger.debug(
            "Reduced %s: %d follow-ups, %d commands",
            type(action).__name__,
            len(transition.dispatched) - 1,
            len(transition.commands),
        )
        if self._presenter is not None:
            self._presenter(self._state)
        for command in transition.commands:
            self._orchestrator.submit(command)
        return transition

    async def run_until_idle(self) -> AppState:
        """Process actions until the queue is empty and no command is running."""
        while True:
            while not self._queue.empty():
                self.dispatch(self._queue.get_nowait())
            if not self._orchestrator.busy:
                if self._queue.empty():
                    return self._state
                continue
            await self._orchestrator.wait_next()

    async def run(self) -> AppState:
        """Process actions and ticks until a Quit action is reduced."""
        ticker = asyncio.get_running_loop().create_task(self._tick_forever())
        try:
            while not self._state.should_quit:
                self.dispatch(await self._queue.get())
        finally:
            ticker.cancel()
            await self._orchestrator.drain()
            self._orchestrator.shutdown()
        return self._state

    async def _tick_forever(self) -> None:
        interval = self._ctx.config.tick_interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            self.post(Tick())

    async def close(self) -> None:
        await self._orchestrator.drain()
        self._orchestrator.shutdown()
