"""Immutable snapshot of repository state.

A RepoStatus is produced by the orchestrator after each load and is replaced
wholesale on every reload. Nothing in the application mutates one in place.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum


class FileStatus(Enum):
    """Working-copy status of a single path."""

    CLEAN = "clean"
    MODIFIED = "modified"
    ADDED = "added"
    DELETED = "deleted"
    CONFLICTED = "conflicted"


@dataclass(frozen=True)
class Revision:
    """A single revision in the history graph.

    Fields:
        revision_id: Commit id, unique within a RepoStatus
        parent_ids: Direct parents in order (empty for a root, >= 2 for a merge)
        description: Full description text
        author: Author name or email
        bookmarks: Bookmark names pointing at this revision
        has_conflict: True if the revision itself records a conflict
        change_id: jj change id (stable across rewrites)
        is_immutable: True for revisions jj refuses to rewrite
        timestamp: Committer timestamp as reported by the engine
        elided_parent_ids: Visible ancestors reached through revisions hidden
            by the active revset
        truncated: History continues past the loaded window
    """

    revision_id: str
    parent_ids: tuple[str, ...]
    description: str = ""
    author: str = ""
    bookmarks: frozenset[str] = frozenset()
    has_conflict: bool = False
    change_id: str = ""
    is_immutable: bool = False
    timestamp: str = ""
    elided_parent_ids: tuple[str, ...] = ()
    truncated: bool = False

    @property
    def is_root(self) -> bool:
        return not self.parent_ids

    @property
    def is_merge(self) -> bool:
        return len(self.parent_ids) >= 2

    @property
    def short_id(self) -> str:
        return self.revision_id[:8]

    @property
    def summary(self) -> str:
        """First line of the description, or a placeholder for empty ones."""
        first_line = self.description.strip().splitlines()[0] if self.description.strip() else ""
        return first_line or "(no description set)"


@dataclass(frozen=True)
class RepoStatus:
    """Consistent snapshot of the repository.

    Revisions are topologically ordered, newest first. `version` is stamped
    by the orchestrator with the sequence number of the load that produced
    the snapshot; layouts are keyed on it.
    """

    revisions: tuple[Revision, ...]
    working_copy_id: str | None
    file_statuses: Mapping[str, FileStatus] = field(default_factory=dict)
    version: int = 0
    operation_id: str = ""
    repo_name: str = ""
    revset: str | None = None

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for revision in self.revisions:
            if revision.revision_id in seen:
                msg = f"Duplicate revision id in snapshot: {revision.revision_id}"
                raise ValueError(msg)
            seen.add(revision.revision_id)

    def __len__(self) -> int:
        return len(self.revisions)

    @property
    def has_conflicts(self) -> bool:
        """True if any working-copy path is conflicted."""
        return any(status is FileStatus.CONFLICTED for status in self.file_statuses.values())

    @property
    def conflicted_paths(self) -> list[str]:
        return sorted(
            path for path, status in self.file_statuses.items() if status is FileStatus.CONFLICTED
        )

    @property
    def working_copy(self) -> Revision | None:
        if self.working_copy_id is None:
            return None
        for revision in self.revisions:
            if revision.revision_id == self.working_copy_id:
                return revision
        return None

    def index_of(self, revision_id: str) -> int | None:
        """Return the row index of a revision, or None if it is not loaded."""
        for index, revision in enumerate(self.revisions):
            if revision.revision_id == revision_id:
                return index
        return None

    def get(self, index: int | None) -> Revision | None:
        if index is None or index < 0 or index >= len(self.revisions):
            return None
        return self.revisions[index]
