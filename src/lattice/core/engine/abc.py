"""Abstract version-control engine interface.

The application core never talks to jj directly. Everything goes through
this interface so the orchestrator can be exercised against the in-memory
fake.

Architecture:
- VcsEngine: Abstract base class defining the interface
- RealJjEngine: Production implementation shelling out to `jj`
- FakeVcsEngine: In-memory implementation for tests and demos
"""

from abc import ABC, abstractmethod
from enum import Enum

from lattice.domain.models import RepoStatus, Revision


class EngineError(RuntimeError):
    """A version-control call failed.

    Attributes:
        stderr: Raw error output of the engine, used for classification
    """

    def __init__(self, message: str, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr


class FilterSyntaxError(EngineError):
    """The engine rejected a revset expression."""


class InteractiveKind(Enum):
    """External tools that need the terminal."""

    RESOLVE = "resolve"
    SPLIT = "split"


class VcsEngine(ABC):
    """Abstract interface for version-control operations.

    All implementations (real and fake) must implement this interface.
    Methods are blocking; the orchestrator runs them on worker threads.
    """

    # Queries

    @abstractmethod
    def query_log(self, revset: str | None, limit: int) -> list[Revision]:
        """Return revisions matching `revset`, newest first.

        Args:
            revset: Revset expression, or None for the default log
            limit: Maximum number of revisions to return

        Raises:
            FilterSyntaxError: If the revset is invalid
            EngineError: If the log cannot be read
        """
        ...

    @abstractmethod
    def query_status(self) -> RepoStatus:
        """Return working-copy state.

        The returned snapshot carries the working-copy id, the file status
        map and the current operation id. Its revisions may be empty; the
        orchestrator combines it with query_log().
        """
        ...

    @abstractmethod
    def current_operation_id(self) -> str:
        """Return the id of the latest operation in the operation log."""
        ...

    @abstractmethod
    def query_diff(self, revision_id: str) -> str:
        """Return the change header and diff of one revision as plain text.

        Raises:
            EngineError: If the revision cannot be shown
        """
        ...

    # Mutations

    @abstractmethod
    def describe(self, revision_id: str, message: str) -> None:
        """Set the description of a revision."""
        ...

    @abstractmethod
    def commit(self, message: str) -> None:
        """Describe the working-copy revision and start a new one on top."""
        ...

    @abstractmethod
    def edit(self, revision_id: str) -> None:
        """Make `revision_id` the working-copy revision."""
        ...

    @abstractmethod
    def new_child(self, revision_id: str) -> None:
        """Create an empty child of `revision_id` and check it out."""
        ...

    @abstractmethod
    def abandon(self, revision_id: str) -> None:
        """Abandon a revision, rebasing its descendants onto its parents."""
        ...

    @abstractmethod
    def squash(self, revision_id: str) -> None:
        """Squash a revision into its parent."""
        ...

    @abstractmethod
    def set_bookmark(self, revision_id: str, name: str) -> None:
        """Create or move bookmark `name` to `revision_id`."""
        ...

    @abstractmethod
    def delete_bookmark(self, name: str) -> None:
        """Delete bookmark `name`."""
        ...

    @abstractmethod
    def undo(self) -> None:
        """Undo the last operation."""
        ...

    @abstractmethod
    def redo(self) -> None:
        """Redo the last undone operation."""
        ...

    @abstractmethod
    def fetch(self) -> None:
        """Fetch from the default remote."""
        ...

    @abstractmethod
    def push(self, bookmark: str | None) -> None:
        """Push one bookmark, or all tracked bookmarks when None."""
        ...

    @abstractmethod
    def snapshot(self) -> None:
        """Record working-copy file changes into the working-copy revision."""
        ...

    # Interactive

    @abstractmethod
    def run_interactive(self, kind: InteractiveKind, target: str) -> int:
        """Run an interactive tool attached to the current terminal.

        The caller is responsible for releasing the terminal first.

        Args:
            kind: Tool to run
            target: Path (RESOLVE) or revision id (SPLIT), already validated

        Returns:
            Exit status of the external program

        Raises:
            EngineError: If the program cannot be started
        """
        ...
