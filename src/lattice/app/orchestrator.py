"""Execution of Commands emitted by the reducer.

Background commands run engine calls on a thread pool and report back by
posting OperationCompleted. Exclusive commands additionally hold an
asyncio.Lock for their whole run, so at most one is ever executing.

Interactive commands do not run in the background: they block the event
loop inside Terminal.suspended(), since the UI and the external program
cannot share the terminal.

Every Command that expects a completion gets exactly one, whatever the
engine raises, so the reducer's ledger is always released.
"""

import asyncio
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from lattice.app.actions import (
    Action,
    ChangeCheckFinished,
    DiffLoaded,
    InteractiveFinished,
    MutationSucceeded,
    OperationCancelled,
    OperationCompleted,
    OperationFailed,
    OperationResult,
    OperationSuperseded,
    RepoLoaded,
)
from lattice.app.commands import (
    CancelCommand,
    CheckForChanges,
    Command,
    LoadDiff,
    LoadRepo,
    Mutation,
    MutationKind,
    PersistFilterHistory,
    RunInteractive,
    RunMutation,
)
from lattice.app.recovery import classify_exception
from lattice.core.engine.abc import EngineError, VcsEngine
from lattice.core.engine.safety import UnsafeTargetError, validate_interactive_target
from lattice.core.filter_history import FilterHistoryStore
from lattice.core.terminal import Terminal, TerminalError
from lattice.domain.graph_layout import compute_layout
from lattice.domain.models import RepoStatus

logger = logging.getLogger(__name__)

type Post = Callable[[Action], None]


def load_status(engine: VcsEngine, revset: str | None, limit: int, version: int) -> RepoLoaded:
    """Query the engine and lay out the result. Runs on a worker thread.

    Raises:
        EngineError: If either query fails
        ValueError: If the engine reported duplicate revisions
    """
    working_copy = engine.query_status()
    revisions = engine.query_log(revset, limit)
    status = RepoStatus(
        revisions=tuple(revisions),
        working_copy_id=working_copy.working_copy_id,
        file_statuses=working_copy.file_statuses,
        version=version,
        operation_id=working_copy.operation_id,
        repo_name=working_copy.repo_name,
        revset=revset,
    )
    return RepoLoaded(status=status, layout=compute_layout(revisions, source_version=version))


def apply_mutation(engine: VcsEngine, mutation: Mutation) -> None:
    """Run one mutating engine call. Runs on a worker thread."""
    revision_id = mutation.revision_id or ""
    text = mutation.text or ""
    match mutation.kind:
        case MutationKind.DESCRIBE:
            engine.describe(revision_id, text)
        case MutationKind.COMMIT:
            engine.commit(text)
        case MutationKind.EDIT:
            engine.edit(revision_id)
        case MutationKind.NEW_CHILD:
            engine.new_child(revision_id)
        case MutationKind.ABANDON:
            engine.abandon(revision_id)
        case MutationKind.SQUASH:
            engine.squash(revision_id)
        case MutationKind.SET_BOOKMARK:
            engine.set_bookmark(revision_id, text)
        case MutationKind.DELETE_BOOKMARK:
            engine.delete_bookmark(text)
        case MutationKind.UNDO:
            engine.undo()
        case MutationKind.REDO:
            engine.redo()
        case MutationKind.FETCH:
            engine.fetch()
        case MutationKind.PUSH:
            engine.push(mutation.text)
        case MutationKind.SNAPSHOT:
            engine.snapshot()


def failure(error: Exception) -> OperationFailed:
    message, classification = classify_exception(error)
    return OperationFailed(
        message=message,
        kind=classification.kind,
        severity=classification.severity,
        suggestion=classification.suggestion,
    )


class Orchestrator:
    """Runs Commands and posts their outcomes as actions.

    Must be used from within a running event loop. `post` is called on the
    loop thread only.
    """

    def __init__(
        self,
        engine: VcsEngine,
        terminal: Terminal,
        filter_history: FilterHistoryStore,
        post: Post,
        *,
        log_limit: int = 500,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self._engine = engine
        self._terminal = terminal
        self._filter_history = filter_history
        self._post = post
        self._log_limit = log_limit
        self._executor = executor if executor is not None else ThreadPoolExecutor(max_workers=4)
        self._exclusive_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[None]] = set()
        self._latest_load = 0
        self._cancel_requested: set[int] = set()
        self._started: set[int] = set()

    @property
    def busy(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def submit(self, command: Command) -> None:
        """Schedule a Command. Interactive commands run to completion before returning."""
        logger.debug("Submitting command %d: %s", command.seq, command.effect)
        match command.effect:
            case CancelCommand(target_seq=target_seq):
                self._cancel(target_seq)
            case RunInteractive() as effect:
                self._run_interactive(command.seq, effect)
            case LoadRepo(revset=revset):
                self._latest_load = max(self._latest_load, command.seq)
                self._spawn(self._load(command.seq, revset))
            case LoadDiff(revision_id=revision_id):
                self._spawn(self._diff(command.seq, revision_id))
            case RunMutation(mutation=mutation):
                self._spawn(self._mutate(command.seq, mutation))
            case CheckForChanges(operation_id=operation_id):
                self._spawn(self._check(command.seq, operation_id))
            case PersistFilterHistory(history=history):
                self._spawn(self._persist(history))

    def _spawn(self, coro: Any) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _cancel(self, seq: int) -> None:
        if seq in self._started:
            logger.info("Command %d already running; its result will be ignored", seq)
            return
        self._cancel_requested.add(seq)

    def _claim(self, seq: int) -> bool:
        """Mark a command as started unless it was cancelled while queued."""
        if seq in self._cancel_requested:
            self._cancel_requested.discard(seq)
            self._complete(seq, OperationCancelled())
            return False
        self._started.add(seq)
        return True

    def _complete(self, seq: int, result: OperationResult) -> None:
        self._started.discard(seq)
        self._post(OperationCompleted(seq=seq, result=result))

    async def _in_worker[T](self, func: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    async def _load(self, seq: int, revset: str | None) -> None:
        # Yield once so a cancel submitted in the same transition can win
        await asyncio.sleep(0)
        if seq < self._latest_load:
            self._complete(seq, OperationSuperseded())
            return
        if not self._claim(seq):
            return

        try:
            loaded = await self._in_worker(load_status, self._engine, revset, self._log_limit, seq)
        except (EngineError, ValueError) as e:
            logger.warning("Loading revisions failed: %s", e)
            self._complete(seq, failure(e))
            return
        except Exception as e:
            logger.exception("Unexpected error while loading revisions")
            self._complete(seq, failure(e))
            return

        if seq < self._latest_load:
            logger.debug("Dropping stale load %d (latest is %d)", seq, self._latest_load)
            self._complete(seq, OperationSuperseded())
            return
        self._complete(seq, loaded)

    async def _diff(self, seq: int, revision_id: str) -> None:
        if not self._claim(seq):
            return
        try:
            text = await self._in_worker(self._engine.query_diff, revision_id)
        except Exception as e:
            if not isinstance(e, EngineError):
                logger.exception("Unexpected error while loading diff of %s", revision_id)
            message, _ = classify_exception(e)
            self._complete(seq, DiffLoaded(revision_id, f"Error: {message}", failed=True))
            return
        self._complete(seq, DiffLoaded(revision_id, text))

    async def _mutate(self, seq: int, mutation: Mutation) -> None:
        await asyncio.sleep(0)
        async with self._exclusive_lock:
            if not self._claim(seq):
                return
            logger.info("Running jj %s", mutation.label)
            try:
                await self._in_worker(apply_mutation, self._engine, mutation)
            except EngineError as e:
                logger.warning("jj %s failed: %s", mutation.label, e)
                self._complete(seq, failure(e))
                return
            except Exception as e:
                logger.exception("Unexpected error while running jj %s", mutation.label)
                self._complete(seq, failure(e))
                return
        self._complete(seq, MutationSucceeded(mutation))

    async def _check(self, seq: int, known_operation_id: str) -> None:
        if not self._claim(seq):
            return
        try:
            current = await self._in_worker(self._engine.current_operation_id)
        except Exception as e:
            if not isinstance(e, EngineError):
                logger.exception("Unexpected error while checking for changes")
            self._complete(seq, failure(e))
            return
        self._complete(
            seq, ChangeCheckFinished(changed=current != known_operation_id, operation_id=current)
        )

    async def _persist(self, history: tuple[str, ...]) -> None:
        try:
            await self._in_worker(self._filter_history.save, list(history))
        except OSError as e:
            path = self._filter_history.path()
            logger.warning("Could not save filter history to %s: %s", path, e)

    def _run_interactive(self, seq: int, effect: RunInteractive) -> None:
        if self._exclusive_lock.locked():
            # The reducer never emits this while an exclusive command is pending
            logger.error("Interactive command %d submitted while another is running", seq)

        try:
            target = validate_interactive_target(effect.kind, effect.target)
        except UnsafeTargetError as e:
            logger.warning("Refusing interactive target %r: %s", effect.target, e)
            self._complete(seq, failure(e))
            return

        self._started.add(seq)
        try:
            with self._terminal.suspended():
                exit_code = self._engine.run_interactive(effect.kind, target)
        except (EngineError, TerminalError) as e:
            logger.warning("Interactive jj %s failed: %s", effect.kind.value, e)
            self._complete(seq, failure(e))
            return
        except Exception as e:
            logger.exception("Unexpected error while running jj %s", effect.kind.value)
            self._complete(seq, failure(e))
            return
        self._complete(seq, InteractiveFinished(effect.kind, target, exit_code))

    async def drain(self) -> None:
        """Wait until every scheduled command has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def wait_next(self) -> None:
        """Wait until at least one running command finishes."""
        pending = [task for task in self._tasks if not task.done()]
        if pending:
            await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
