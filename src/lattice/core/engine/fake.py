"""Fake engine for testing and demos.

FakeVcsEngine is an in-memory implementation that accepts pre-configured state
in its constructor. Construct instances directly with keyword arguments.
"""

import threading
import time
from collections.abc import Mapping, Sequence
from dataclasses import replace

from lattice.core.engine.abc import (
    EngineError,
    FilterSyntaxError,
    InteractiveKind,
    VcsEngine,
)
from lattice.domain.models import FileStatus, RepoStatus, Revision


class FakeVcsEngine(VcsEngine):
    """In-memory fake implementation of the engine.

    This class has NO public setup methods. All state is provided via constructor
    using keyword arguments with sensible defaults (empty collections).

    Methods are safe to call from several worker threads at once.
    """

    def __init__(
        self,
        *,
        revisions: Sequence[Revision] | None = None,
        working_copy_id: str | None = None,
        file_statuses: Mapping[str, FileStatus] | None = None,
        repo_name: str = "fake-repo",
        revset_results: Mapping[str, Sequence[str]] | None = None,
        invalid_revsets: Sequence[str] | None = None,
        failures: Mapping[str, Exception] | None = None,
        diffs: Mapping[str, str] | None = None,
        interactive_exit_code: int = 0,
        latency: float = 0.0,
    ) -> None:
        """Create FakeVcsEngine with pre-configured state.

        Args:
            revisions: Revisions newest first
            working_copy_id: Id of the working-copy revision
            file_statuses: Working-copy path -> status
            repo_name: Name reported in query_status()
            revset_results: Revset expression -> revision ids it selects.
                Unknown expressions select every revision.
            invalid_revsets: Expressions that raise FilterSyntaxError
            failures: Method name -> error raised when that method is called
            diffs: Revision id -> text returned by query_diff(). Other revisions
                get a header built from their description.
            interactive_exit_code: Exit status returned by run_interactive()
            latency: Seconds each call sleeps before returning
        """
        self._revisions = list(revisions or [])
        self._working_copy_id = working_copy_id
        self._file_statuses = dict(file_statuses or {})
        self._repo_name = repo_name
        self._revset_results = {k: list(v) for k, v in (revset_results or {}).items()}
        self._invalid_revsets = set(invalid_revsets or [])
        self._failures = dict(failures or {})
        self._diffs = dict(diffs or {})
        self._interactive_exit_code = interactive_exit_code
        self._latency = latency

        self._lock = threading.Lock()
        self._operation_counter = 0
        self._active_mutations = 0
        self._max_concurrent_mutations = 0
        self._mutations: list[tuple[str, ...]] = []
        self._log_calls: list[str | None] = []
        self._diff_calls: list[str] = []
        self._interactive_calls: list[tuple[InteractiveKind, str]] = []

    @property
    def mutations(self) -> list[tuple[str, ...]]:
        """Mutating calls in order, as (method name, *arguments) tuples."""
        return list(self._mutations)

    @property
    def log_calls(self) -> list[str | None]:
        """Revsets passed to query_log(), in call order."""
        return list(self._log_calls)

    @property
    def diff_calls(self) -> list[str]:
        """Revision ids passed to query_diff(), in call order."""
        return list(self._diff_calls)

    @property
    def interactive_calls(self) -> list[tuple[InteractiveKind, str]]:
        return list(self._interactive_calls)

    @property
    def max_concurrent_mutations(self) -> int:
        """Highest number of mutations observed running at the same time."""
        return self._max_concurrent_mutations

    @property
    def revisions(self) -> list[Revision]:
        return list(self._revisions)

    def _check_failure(self, name: str) -> None:
        error = self._failures.get(name)
        if error is not None:
            raise error

    # Queries

    def query_log(self, revset: str | None, limit: int) -> list[Revision]:
        with self._lock:
            self._log_calls.append(revset)
        if self._latency:
            time.sleep(self._latency)
        self._check_failure("query_log")

        if revset is not None and revset in self._invalid_revsets:
            msg = f"Failed to parse revset: {revset}"
            raise FilterSyntaxError(msg, stderr=f"Error: Failed to parse revset: {revset}")

        with self._lock:
            revisions = list(self._revisions)
        if revset is not None and revset in self._revset_results:
            selected = set(self._revset_results[revset])
            revisions = _restrict(revisions, selected)
        return _truncate(revisions, limit)

    def query_status(self) -> RepoStatus:
        self._check_failure("query_status")
        with self._lock:
            return RepoStatus(
                revisions=(),
                working_copy_id=self._working_copy_id,
                file_statuses=dict(self._file_statuses),
                operation_id=self._operation_id(),
                repo_name=self._repo_name,
            )

    def current_operation_id(self) -> str:
        self._check_failure("current_operation_id")
        with self._lock:
            return self._operation_id()

    def query_diff(self, revision_id: str) -> str:
        with self._lock:
            self._diff_calls.append(revision_id)
        if self._latency:
            time.sleep(self._latency)
        self._check_failure("query_diff")

        if revision_id in self._diffs:
            return self._diffs[revision_id]
        with self._lock:
            revision = next((r for r in self._revisions if r.revision_id == revision_id), None)
        if revision is None:
            raise EngineError(
                f"Failed to show {revision_id}",
                stderr=f"Error: Revision `{revision_id}` doesn't exist",
            )
        return f"Commit ID: {revision_id}\n\n    {revision.summary}\n"

    def _operation_id(self) -> str:
        return f"op{self._operation_counter:04d}"

    # Mutations

    def _mutate(self, name: str, *args: str) -> None:
        with self._lock:
            self._active_mutations += 1
            self._max_concurrent_mutations = max(
                self._max_concurrent_mutations, self._active_mutations
            )
        try:
            if self._latency:
                time.sleep(self._latency)
            self._check_failure(name)
            with self._lock:
                self._mutations.append((name, *args))
                self._operation_counter += 1
        finally:
            with self._lock:
                self._active_mutations -= 1

    def _set_description(self, revision_id: str, message: str) -> None:
        with self._lock:
            self._revisions = [
                replace(r, description=message) if r.revision_id == revision_id else r
                for r in self._revisions
            ]

    def describe(self, revision_id: str, message: str) -> None:
        self._mutate("describe", revision_id, message)
        self._set_description(revision_id, message)

    def commit(self, message: str) -> None:
        self._mutate("commit", message)
        if self._working_copy_id is not None:
            self._set_description(self._working_copy_id, message)
            self._add_child(self._working_copy_id)

    def edit(self, revision_id: str) -> None:
        self._mutate("edit", revision_id)
        with self._lock:
            self._working_copy_id = revision_id

    def new_child(self, revision_id: str) -> None:
        self._mutate("new_child", revision_id)
        self._add_child(revision_id)

    def _add_child(self, parent_id: str) -> None:
        with self._lock:
            child_id = f"{parent_id[:6]}c{self._operation_counter:04d}"
            self._revisions.insert(0, Revision(revision_id=child_id, parent_ids=(parent_id,)))
            self._working_copy_id = child_id

    def abandon(self, revision_id: str) -> None:
        self._mutate("abandon", revision_id)
        with self._lock:
            target = next((r for r in self._revisions if r.revision_id == revision_id), None)
            if target is None:
                return
            remaining: list[Revision] = []
            for revision in self._revisions:
                if revision.revision_id == revision_id:
                    continue
                if revision_id in revision.parent_ids:
                    parents: list[str] = []
                    for parent_id in revision.parent_ids:
                        if parent_id == revision_id:
                            replacements = target.parent_ids
                        else:
                            replacements = (parent_id,)
                        parents.extend(p for p in replacements if p not in parents)
                    revision = replace(revision, parent_ids=tuple(parents))
                remaining.append(revision)
            self._revisions = remaining

    def squash(self, revision_id: str) -> None:
        self._mutate("squash", revision_id)

    def set_bookmark(self, revision_id: str, name: str) -> None:
        self._mutate("set_bookmark", revision_id, name)
        with self._lock:
            self._revisions = [
                replace(r, bookmarks=r.bookmarks | {name})
                if r.revision_id == revision_id
                else replace(r, bookmarks=r.bookmarks - {name})
                for r in self._revisions
            ]

    def delete_bookmark(self, name: str) -> None:
        self._mutate("delete_bookmark", name)
        with self._lock:
            self._revisions = [replace(r, bookmarks=r.bookmarks - {name}) for r in self._revisions]

    def undo(self) -> None:
        self._mutate("undo")

    def redo(self) -> None:
        self._mutate("redo")

    def fetch(self) -> None:
        self._mutate("fetch")

    def push(self, bookmark: str | None) -> None:
        if bookmark is None:
            self._mutate("push")
        else:
            self._mutate("push", bookmark)

    def snapshot(self) -> None:
        self._mutate("snapshot")

    # Interactive

    def run_interactive(self, kind: InteractiveKind, target: str) -> int:
        with self._lock:
            self._interactive_calls.append((kind, target))
        self._check_failure("run_interactive")
        with self._lock:
            self._operation_counter += 1
            if kind is InteractiveKind.RESOLVE and target in self._file_statuses:
                self._file_statuses[target] = FileStatus.MODIFIED
        return self._interactive_exit_code


def _truncate(revisions: list[Revision], limit: int) -> list[Revision]:
    """Cut the list at `limit`, flagging revisions whose parents fell outside."""
    kept = revisions[:limit]
    loaded = {r.revision_id for r in kept}
    result: list[Revision] = []
    for revision in kept:
        if all(p in loaded for p in (*revision.parent_ids, *revision.elided_parent_ids)):
            result.append(revision)
            continue
        result.append(
            replace(
                revision,
                parent_ids=tuple(p for p in revision.parent_ids if p in loaded),
                elided_parent_ids=tuple(p for p in revision.elided_parent_ids if p in loaded),
                truncated=True,
            )
        )
    return result


def _restrict(revisions: list[Revision], selected: set[str]) -> list[Revision]:
    """Keep `selected` revisions, connecting each to its nearest kept ancestors."""
    by_id = {r.revision_id: r for r in revisions}

    def visible_ancestors(parent_id: str, seen: set[str]) -> list[str]:
        if parent_id in seen:
            return []
        seen.add(parent_id)
        if parent_id in selected:
            return [parent_id]
        parent = by_id.get(parent_id)
        if parent is None:
            return []
        found: list[str] = []
        for grandparent in parent.parent_ids:
            found.extend(a for a in visible_ancestors(grandparent, seen) if a not in found)
        return found

    restricted: list[Revision] = []
    for revision in revisions:
        if revision.revision_id not in selected:
            continue
        direct = tuple(p for p in revision.parent_ids if p in selected)
        elided: list[str] = []
        seen: set[str] = set(direct)
        for parent_id in revision.parent_ids:
            if parent_id in selected:
                continue
            elided.extend(a for a in visible_ancestors(parent_id, seen) if a not in elided)
        restricted.append(replace(revision, parent_ids=direct, elided_parent_ids=tuple(elided)))
    return restricted
