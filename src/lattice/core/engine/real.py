"""Production engine implementation shelling out to the `jj` binary."""

import logging
import subprocess
from pathlib import Path

from lattice.core.engine.abc import (
    EngineError,
    FilterSyntaxError,
    InteractiveKind,
    VcsEngine,
)
from lattice.core.engine.parsing import (
    ID_TEMPLATE,
    LOG_TEMPLATE,
    LogEntry,
    ParseError,
    is_revset_error,
    parse_diff_summary,
    parse_id_lines,
    parse_log_output,
    parse_resolve_list,
)
from lattice.core.subprocess import run_subprocess_with_context
from lattice.domain.models import FileStatus, RepoStatus, Revision

logger = logging.getLogger(__name__)

DEFAULT_REVSET = "all()"


class RealJjEngine(VcsEngine):
    """Production implementation using subprocess.

    All operations execute actual jj commands in `repo_root`.
    """

    def __init__(self, repo_root: Path, jj_binary: str = "jj") -> None:
        self._repo_root = repo_root
        self._jj = jj_binary

    def _run(self, args: list[str], operation_context: str) -> str:
        cmd = [self._jj, "--color", "never", "--no-pager", *args]
        logger.debug("Running %s", " ".join(cmd))
        result = run_subprocess_with_context(cmd, operation_context, cwd=self._repo_root)
        return result.stdout

    # Queries

    def query_log(self, revset: str | None, limit: int) -> list[Revision]:
        expression = revset if revset is not None else DEFAULT_REVSET
        try:
            output = self._run(
                ["log", "--no-graph", "-r", expression, "-n", str(limit), "-T", LOG_TEMPLATE],
                f"load log for revset '{expression}'",
            )
        except EngineError as e:
            if revset is not None and is_revset_error(e.stderr):
                raise FilterSyntaxError(str(e), stderr=e.stderr) from e
            raise

        try:
            entries = parse_log_output(output)
        except ParseError as e:
            raise EngineError(f"Unexpected jj log output: {e}") from e

        return self._connect_missing_parents(entries, expression)

    def _connect_missing_parents(self, entries: list[LogEntry], revset: str) -> list[Revision]:
        """Replace parents outside the loaded set with elided ancestors.

        A parent hidden by the revset is replaced by the nearest visible
        ancestors in the set. A parent cut off by the limit has no such
        ancestor, and the revision is flagged as truncated instead.
        """
        loaded = {entry.revision.revision_id for entry in entries}
        revisions: list[Revision] = []
        for entry in entries:
            revision = entry.revision
            missing = [p for p in revision.parent_ids if p not in loaded]
            if not missing:
                revisions.append(revision)
                continue

            elided: list[str] = []
            truncated = False
            for parent_id in missing:
                ancestors = parse_id_lines(
                    self._run(
                        [
                            "log",
                            "--no-graph",
                            "-r",
                            f"heads(::{parent_id} & ({revset}))",
                            "-T",
                            ID_TEMPLATE,
                        ],
                        f"find visible ancestors of {parent_id[:8]}",
                    )
                )
                visible = [a for a in ancestors if a in loaded and a != revision.revision_id]
                if not visible:
                    truncated = True
                for ancestor in visible:
                    if ancestor not in elided and ancestor not in revision.parent_ids:
                        elided.append(ancestor)

            revisions.append(
                Revision(
                    revision_id=revision.revision_id,
                    parent_ids=tuple(p for p in revision.parent_ids if p in loaded),
                    description=revision.description,
                    author=revision.author,
                    bookmarks=revision.bookmarks,
                    has_conflict=revision.has_conflict,
                    change_id=revision.change_id,
                    is_immutable=revision.is_immutable,
                    timestamp=revision.timestamp,
                    elided_parent_ids=tuple(elided),
                    truncated=truncated,
                )
            )
        return revisions

    def query_status(self) -> RepoStatus:
        working_copy = parse_id_lines(
            self._run(["log", "--no-graph", "-r", "@", "-T", ID_TEMPLATE], "read working copy")
        )
        file_statuses: dict[str, FileStatus] = parse_diff_summary(
            self._run(["diff", "--summary", "-r", "@"], "read working-copy changes")
        )
        for path in self._conflicted_paths():
            file_statuses[path] = FileStatus.CONFLICTED

        root = self._run(["root"], "locate repository root").strip()
        return RepoStatus(
            revisions=(),
            working_copy_id=working_copy[0] if working_copy else None,
            file_statuses=file_statuses,
            operation_id=self.current_operation_id(),
            repo_name=Path(root).name if root else "",
        )

    def _conflicted_paths(self) -> list[str]:
        # `jj resolve --list` exits non-zero when there is nothing to resolve
        cmd = [self._jj, "--color", "never", "--no-pager", "resolve", "--list", "-r", "@"]
        result = run_subprocess_with_context(
            cmd, "list conflicted paths", cwd=self._repo_root, check=False
        )
        if result.returncode != 0:
            if "no conflicts" in result.stderr.lower():
                return []
            raise EngineError(
                f"Failed to list conflicted paths\nstderr: {result.stderr.strip()}",
                stderr=result.stderr.strip(),
            )
        return parse_resolve_list(result.stdout)

    def current_operation_id(self) -> str:
        return self._run(
            ["op", "log", "--no-graph", "-n", "1", "-T", 'id ++ "\\n"'],
            "read operation log",
        ).strip()

    def query_diff(self, revision_id: str) -> str:
        return self._run(["show", "--git", revision_id], f"show {revision_id[:8]}")

    # Mutations

    def describe(self, revision_id: str, message: str) -> None:
        self._run(["describe", revision_id, "-m", message], f"describe {revision_id[:8]}")

    def commit(self, message: str) -> None:
        self._run(["commit", "-m", message], "commit working copy")

    def edit(self, revision_id: str) -> None:
        self._run(["edit", revision_id], f"edit {revision_id[:8]}")

    def new_child(self, revision_id: str) -> None:
        self._run(["new", revision_id], f"create child of {revision_id[:8]}")

    def abandon(self, revision_id: str) -> None:
        self._run(["abandon", revision_id], f"abandon {revision_id[:8]}")

    def squash(self, revision_id: str) -> None:
        self._run(["squash", "-r", revision_id], f"squash {revision_id[:8]}")

    def set_bookmark(self, revision_id: str, name: str) -> None:
        self._run(
            ["bookmark", "set", name, "-r", revision_id, "--allow-backwards"],
            f"set bookmark '{name}'",
        )

    def delete_bookmark(self, name: str) -> None:
        self._run(["bookmark", "delete", name], f"delete bookmark '{name}'")

    def undo(self) -> None:
        self._run(["undo"], "undo last operation")

    def redo(self) -> None:
        self._run(["redo"], "redo last operation")

    def fetch(self) -> None:
        self._run(["git", "fetch"], "fetch from remote")

    def push(self, bookmark: str | None) -> None:
        args = ["git", "push"]
        if bookmark is not None:
            args.extend(["-b", bookmark])
        self._run(args, "push to remote")

    def snapshot(self) -> None:
        # Any jj command snapshots the working copy; status is the cheapest
        self._run(["status"], "snapshot working copy")

    # Interactive

    def run_interactive(self, kind: InteractiveKind, target: str) -> int:
        match kind:
            case InteractiveKind.RESOLVE:
                cmd = [self._jj, "resolve", "--", target]
            case InteractiveKind.SPLIT:
                cmd = [self._jj, "split", "-r", target]

        logger.info("Handing terminal to %s", " ".join(cmd))
        try:
            result = subprocess.run(cmd, cwd=self._repo_root, check=False)
        except OSError as e:
            raise EngineError(
                f"Failed to start {cmd[0]} {kind.value}: {e}", stderr=str(e)
            ) from e
        return result.returncode
