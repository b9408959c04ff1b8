"""Tests for Command execution."""

import asyncio
import logging
from collections.abc import Iterator

import pytest

from lattice.app.actions import (
    Action,
    ChangeCheckFinished,
    DiffLoaded,
    InteractiveFinished,
    MutationSucceeded,
    OperationCancelled,
    OperationCompleted,
    OperationFailed,
    OperationSuperseded,
    RepoLoaded,
)
from lattice.app.commands import (
    CancelCommand,
    CheckForChanges,
    Command,
    Effect,
    LoadDiff,
    LoadRepo,
    Mutation,
    MutationKind,
    PersistFilterHistory,
    RunInteractive,
    RunMutation,
    is_cancellable,
    is_exclusive,
)
from lattice.app.orchestrator import Orchestrator, apply_mutation, load_status
from lattice.app.recovery import ErrorKind
from lattice.core.engine.abc import EngineError, InteractiveKind
from lattice.core.engine.fake import FakeVcsEngine
from lattice.core.filter_history import InMemoryFilterHistoryStore
from lattice.core.terminal import TerminalError
from lattice.domain.models import FileStatus
from tests.fakes.terminal import FakeTerminal
from tests.test_utils.repos import linear_revisions


def _command(seq: int, effect: Effect) -> Command:
    return Command(
        seq=seq, effect=effect, exclusive=is_exclusive(effect), cancellable=is_cancellable(effect)
    )


class Harness:
    """Orchestrator wired to fakes, recording everything it posts."""

    def __init__(
        self,
        engine: FakeVcsEngine,
        terminal: FakeTerminal | None = None,
        history: InMemoryFilterHistoryStore | None = None,
    ) -> None:
        self.engine = engine
        self.terminal = terminal if terminal is not None else FakeTerminal()
        self.history = history if history is not None else InMemoryFilterHistoryStore()
        self.posted: list[Action] = []
        self.orchestrator = Orchestrator(
            engine, self.terminal, self.history, self.posted.append, log_limit=100
        )

    def results(self) -> dict[int, object]:
        return {
            action.seq: action.result
            for action in self.posted
            if isinstance(action, OperationCompleted)
        }


@pytest.fixture
def harness() -> Iterator[Harness]:
    h = Harness(FakeVcsEngine(revisions=linear_revisions(3), working_copy_id="r0"))
    yield h
    h.orchestrator.shutdown()


def test_load_status_stamps_version_and_layout() -> None:
    engine = FakeVcsEngine(revisions=linear_revisions(2), working_copy_id="r0", repo_name="demo")

    loaded = load_status(engine, None, 10, version=5)

    assert loaded.status.version == 5
    assert loaded.status.repo_name == "demo"
    assert loaded.layout is not None
    assert loaded.layout.source_version == 5


def test_apply_mutation_dispatches_by_kind() -> None:
    engine = FakeVcsEngine(revisions=linear_revisions(2))

    apply_mutation(engine, Mutation(MutationKind.SET_BOOKMARK, revision_id="r1", text="main"))
    apply_mutation(engine, Mutation(MutationKind.PUSH))

    assert engine.mutations == [("set_bookmark", "r1", "main"), ("push",)]


async def test_load_reports_repo_loaded(harness: Harness) -> None:
    harness.orchestrator.submit(_command(1, LoadRepo(None)))
    await harness.orchestrator.drain()

    result = harness.results()[1]
    assert isinstance(result, RepoLoaded)
    assert [r.revision_id for r in result.status.revisions] == ["r0", "r1", "r2"]


async def test_superseded_load_is_dropped(harness: Harness) -> None:
    harness.orchestrator.submit(_command(1, LoadRepo("mine()")))
    harness.orchestrator.submit(_command(2, LoadRepo("trunk()")))
    await harness.orchestrator.drain()

    results = harness.results()
    assert isinstance(results[1], OperationSuperseded)
    assert isinstance(results[2], RepoLoaded)
    assert harness.engine.log_calls == ["trunk()"]


async def test_load_cancelled_before_start(harness: Harness) -> None:
    harness.orchestrator.submit(_command(1, LoadRepo(None)))
    harness.orchestrator.submit(_command(2, CancelCommand(1)))
    await harness.orchestrator.drain()

    assert isinstance(harness.results()[1], OperationCancelled)
    assert harness.engine.log_calls == []


async def test_load_failure_is_classified() -> None:
    engine = FakeVcsEngine(
        failures={"query_status": EngineError("Failed", stderr="Error: There is no jj repo")}
    )
    h = Harness(engine)

    h.orchestrator.submit(_command(1, LoadRepo(None)))
    await h.orchestrator.drain()
    h.orchestrator.shutdown()

    result = h.results()[1]
    assert isinstance(result, OperationFailed)
    assert result.kind is ErrorKind.NO_REPO


async def test_exclusive_commands_never_overlap() -> None:
    engine = FakeVcsEngine(revisions=linear_revisions(3), latency=0.02)
    h = Harness(engine)

    h.orchestrator.submit(_command(1, RunMutation(Mutation(MutationKind.UNDO))))
    h.orchestrator.submit(_command(2, RunMutation(Mutation(MutationKind.FETCH))))
    h.orchestrator.submit(_command(3, RunMutation(Mutation(MutationKind.REDO))))
    await h.orchestrator.drain()
    h.orchestrator.shutdown()

    assert engine.max_concurrent_mutations == 1
    assert [m[0] for m in engine.mutations] == ["undo", "fetch", "redo"]
    assert all(isinstance(result, MutationSucceeded) for result in h.results().values())


async def test_mutation_failure_is_reported() -> None:
    engine = FakeVcsEngine(
        failures={"push": EngineError("Failed to push", stderr="Error: connection refused")}
    )
    h = Harness(engine)

    h.orchestrator.submit(_command(1, RunMutation(Mutation(MutationKind.PUSH))))
    await h.orchestrator.drain()
    h.orchestrator.shutdown()

    result = h.results()[1]
    assert isinstance(result, OperationFailed)
    assert result.kind is ErrorKind.NETWORK_REMOTE


async def test_check_for_changes_compares_operation_ids(harness: Harness) -> None:
    current = harness.engine.current_operation_id()

    harness.orchestrator.submit(_command(1, CheckForChanges(current)))
    harness.orchestrator.submit(_command(2, CheckForChanges("stale-op")))
    await harness.orchestrator.drain()

    results = harness.results()
    assert results[1] == ChangeCheckFinished(changed=False, operation_id=current)
    assert results[2] == ChangeCheckFinished(changed=True, operation_id=current)


async def test_persist_failure_is_logged_not_posted(caplog: pytest.LogCaptureFixture) -> None:
    history = InMemoryFilterHistoryStore(save_error=PermissionError("read-only"))
    h = Harness(FakeVcsEngine(), history=history)

    with caplog.at_level(logging.WARNING, logger="lattice.app.orchestrator"):
        h.orchestrator.submit(_command(1, PersistFilterHistory(("mine()",))))
        await h.orchestrator.drain()
    h.orchestrator.shutdown()

    assert h.posted == []
    assert "Could not save filter history" in caplog.text


async def test_persist_saves_history(harness: Harness) -> None:
    harness.orchestrator.submit(_command(1, PersistFilterHistory(("mine()", "trunk()"))))
    await harness.orchestrator.drain()

    assert harness.history.filters == ["mine()", "trunk()"]


def test_interactive_runs_inside_suspended_terminal() -> None:
    engine = FakeVcsEngine(file_statuses={"a.py": FileStatus.CONFLICTED})
    h = Harness(engine)

    h.orchestrator.submit(_command(1, RunInteractive(InteractiveKind.RESOLVE, "a.py")))
    h.orchestrator.shutdown()

    assert h.terminal.events == ["release", "restore"]
    assert engine.interactive_calls == [(InteractiveKind.RESOLVE, "a.py")]
    assert h.results()[1] == InteractiveFinished(InteractiveKind.RESOLVE, "a.py", 0)


def test_interactive_rejects_path_traversal() -> None:
    engine = FakeVcsEngine()
    h = Harness(engine)

    effect = RunInteractive(InteractiveKind.RESOLVE, "../../etc/passwd")
    h.orchestrator.submit(_command(1, effect))
    h.orchestrator.shutdown()

    result = h.results()[1]
    assert isinstance(result, OperationFailed)
    assert "Path traversal" in result.message
    assert engine.interactive_calls == []
    assert h.terminal.events == []


def test_interactive_terminal_failure_still_restores() -> None:
    terminal = FakeTerminal(release_error=TerminalError("tcsetattr failed"))
    engine = FakeVcsEngine()
    h = Harness(engine, terminal=terminal)

    h.orchestrator.submit(_command(1, RunInteractive(InteractiveKind.SPLIT, "abc123")))
    h.orchestrator.shutdown()

    result = h.results()[1]
    assert isinstance(result, OperationFailed)
    assert result.kind is ErrorKind.TERMINAL
    assert terminal.restore_count == 1
    assert engine.interactive_calls == []


def test_interactive_tool_missing_is_reported() -> None:
    missing = EngineError("Failed to start jj", stderr="jj: command not found")
    engine = FakeVcsEngine(failures={"run_interactive": missing})
    h = Harness(engine)

    h.orchestrator.submit(_command(1, RunInteractive(InteractiveKind.RESOLVE, "a.py")))
    h.orchestrator.shutdown()

    result = h.results()[1]
    assert isinstance(result, OperationFailed)
    assert result.kind is ErrorKind.NO_REPO
    assert h.terminal.events == ["release", "restore"]


async def test_running_load_overtaken_by_newer_load_is_superseded() -> None:
    """A load already in the worker is dropped once it finishes behind a newer one."""
    engine = FakeVcsEngine(revisions=linear_revisions(3), working_copy_id="r0", latency=0.05)
    h = Harness(engine)

    h.orchestrator.submit(_command(1, LoadRepo("mine()")))
    await asyncio.sleep(0.01)
    h.orchestrator.submit(_command(2, LoadRepo("trunk()")))
    await h.orchestrator.drain()
    h.orchestrator.shutdown()

    results = h.results()
    assert isinstance(results[1], OperationSuperseded)
    assert isinstance(results[2], RepoLoaded)
    assert results[2].status.revset == "trunk()"
    assert engine.log_calls == ["mine()", "trunk()"]


async def test_unexpected_mutation_error_still_completes() -> None:
    engine = FakeVcsEngine(failures={"undo": PermissionError("Permission denied: '.jj/repo'")})
    h = Harness(engine)

    h.orchestrator.submit(_command(1, RunMutation(Mutation(MutationKind.UNDO))))
    h.orchestrator.submit(_command(2, RunMutation(Mutation(MutationKind.FETCH))))
    await h.orchestrator.drain()
    h.orchestrator.shutdown()

    results = h.results()
    assert isinstance(results[1], OperationFailed)
    assert "Permission denied" in results[1].message
    # The exclusive lock was released for the next mutation
    assert isinstance(results[2], MutationSucceeded)
    assert not h.orchestrator.busy


async def test_unexpected_load_error_still_completes(caplog: pytest.LogCaptureFixture) -> None:
    engine = FakeVcsEngine(failures={"query_log": PermissionError("Permission denied")})
    h = Harness(engine)

    with caplog.at_level(logging.ERROR, logger="lattice.app.orchestrator"):
        h.orchestrator.submit(_command(1, LoadRepo(None)))
        h.orchestrator.submit(_command(2, CheckForChanges("op0000")))
        await h.orchestrator.drain()
    h.orchestrator.shutdown()

    results = h.results()
    assert isinstance(results[1], OperationFailed)
    assert isinstance(results[2], ChangeCheckFinished)
    assert "Unexpected error while loading revisions" in caplog.text


async def test_load_diff_reports_text(harness: Harness) -> None:
    harness.orchestrator.submit(_command(1, LoadDiff("r1")))
    await harness.orchestrator.drain()

    result = harness.results()[1]
    assert isinstance(result, DiffLoaded)
    assert result.revision_id == "r1"
    assert "Commit ID: r1" in result.text
    assert not result.failed
    assert harness.engine.diff_calls == ["r1"]


async def test_load_diff_failure_becomes_error_text() -> None:
    engine = FakeVcsEngine(failures={"query_diff": OSError("No space left on device")})
    h = Harness(engine)

    h.orchestrator.submit(_command(1, LoadDiff("r0")))
    await h.orchestrator.drain()
    h.orchestrator.shutdown()

    result = h.results()[1]
    assert result == DiffLoaded("r0", "Error: No space left on device", failed=True)


def test_load_diff_is_neither_exclusive_nor_cancellable() -> None:
    assert not is_exclusive(LoadDiff("r0"))
    assert not is_cancellable(LoadDiff("r0"))


def test_apply_mutation_snapshot() -> None:
    engine = FakeVcsEngine()

    apply_mutation(engine, Mutation(MutationKind.SNAPSHOT))

    assert engine.mutations == [("snapshot",)]
