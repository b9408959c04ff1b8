"""Application context with dependency injection."""

from dataclasses import dataclass
from pathlib import Path

import click

from lattice.cli.output import user_output
from lattice.core.config import ConfigStore, FilesystemConfigStore, LatticeConfig
from lattice.core.engine.abc import VcsEngine
from lattice.core.engine.fake import FakeVcsEngine
from lattice.core.engine.real import RealJjEngine
from lattice.core.filter_history import FilesystemFilterHistoryStore, FilterHistoryStore
from lattice.core.terminal import RealTerminal, Terminal
from lattice.domain.models import FileStatus, Revision


@dataclass(frozen=True)
class LatticeContext:
    """Immutable context holding all dependencies for lattice operations.

    Created at CLI entry point and threaded through the application.
    Frozen to prevent accidental modification at runtime.
    """

    engine: VcsEngine
    terminal: Terminal
    filter_history: FilterHistoryStore
    config_store: ConfigStore
    config: LatticeConfig
    cwd: Path

    @staticmethod
    def for_test(
        engine: VcsEngine | None = None,
        terminal: Terminal | None = None,
        filter_history: FilterHistoryStore | None = None,
        config: LatticeConfig | None = None,
        cwd: Path | None = None,
    ) -> "LatticeContext":
        """Create test context with optional pre-configured implementations.

        Args:
            engine: Engine implementation (default: empty FakeVcsEngine)
            terminal: Terminal implementation (default: FakeTerminal)
            filter_history: History store (default: InMemoryFilterHistoryStore)
            config: Configuration (default: LatticeConfig defaults)
            cwd: Working directory (default: /test/repo)

        Example:
            >>> engine = FakeVcsEngine(revisions=[Revision("a", ())])
            >>> ctx = LatticeContext.for_test(engine=engine)
        """
        from tests.fakes.terminal import FakeTerminal

        from lattice.core.config import InMemoryConfigStore
        from lattice.core.filter_history import InMemoryFilterHistoryStore

        resolved_config = config if config is not None else LatticeConfig()
        return LatticeContext(
            engine=engine if engine is not None else FakeVcsEngine(),
            terminal=terminal if terminal is not None else FakeTerminal(),
            filter_history=(
                filter_history if filter_history is not None else InMemoryFilterHistoryStore()
            ),
            config_store=InMemoryConfigStore(resolved_config),
            config=resolved_config,
            cwd=cwd if cwd is not None else Path("/test/repo"),
        )


def safe_cwd() -> tuple[Path | None, str | None]:
    """Get current working directory, detecting if it no longer exists.

    Returns:
        (path, None) on success, (None, error_message) if the directory is gone
    """
    try:
        return (Path.cwd(), None)
    except (FileNotFoundError, OSError):
        return (None, "Current working directory no longer exists")


def demo_engine() -> FakeVcsEngine:
    """In-memory repository used by `--demo`: two branches merged into trunk."""
    revisions = [
        Revision(
            "f0c1a2b3d4e5",
            ("e9d8c7b6a5f4",),
            description="wip: lane packing tweaks",
            author="dev@example.com",
        ),
        Revision(
            "e9d8c7b6a5f4",
            ("d1e2f3a4b5c6", "c6b5a4f3e2d1"),
            description="Merge feature into trunk",
            author="dev@example.com",
            bookmarks=frozenset({"main"}),
        ),
        Revision(
            "c6b5a4f3e2d1",
            ("b1a2c3d4e5f6",),
            description="Add revset presets",
            author="alice@example.com",
            bookmarks=frozenset({"feature"}),
        ),
        Revision(
            "d1e2f3a4b5c6",
            ("b1a2c3d4e5f6",),
            description="Fix elided edge styling",
            author="bob@example.com",
        ),
        Revision(
            "b1a2c3d4e5f6",
            ("a0a0a0a0a0a0",),
            description="Initial layout engine",
            author="dev@example.com",
            is_immutable=True,
        ),
        Revision("a0a0a0a0a0a0", (), is_immutable=True),
    ]
    return FakeVcsEngine(
        revisions=revisions,
        working_copy_id="f0c1a2b3d4e5",
        file_statuses={"src/layout.py": FileStatus.MODIFIED},
        repo_name="demo",
        revset_results={
            "mine()": ["f0c1a2b3d4e5", "e9d8c7b6a5f4", "b1a2c3d4e5f6"],
            "bookmarks()": ["e9d8c7b6a5f4", "c6b5a4f3e2d1"],
        },
    )


def create_context(*, demo: bool, config_store: ConfigStore | None = None) -> LatticeContext:
    """Create production context with real implementations.

    Called at CLI entry point to create the context for the entire
    command execution.

    Args:
        demo: If True, use an in-memory demo repository instead of jj
        config_store: Config source (default: FilesystemConfigStore)

    Returns:
        LatticeContext with real implementations
    """
    cwd, error_msg = safe_cwd()
    if cwd is None:
        user_output(click.style("Error: ", fg="red") + str(error_msg))
        user_output("Please change to a valid directory and try again.")
        raise SystemExit(1)

    store = config_store if config_store is not None else FilesystemConfigStore()
    try:
        config = store.load()
    except ValueError as e:
        user_output(click.style("Error: ", fg="red") + str(e))
        raise SystemExit(1) from e

    engine: VcsEngine
    if demo:
        engine = demo_engine()
    else:
        engine = RealJjEngine(cwd, jj_binary=config.jj_binary)

    return LatticeContext(
        engine=engine,
        terminal=RealTerminal(),
        filter_history=FilesystemFilterHistoryStore(max_entries=config.max_filter_history),
        config_store=store,
        config=config,
        cwd=cwd,
    )
