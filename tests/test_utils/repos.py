"""Builders for revision graphs and loaded application state."""

from lattice.app.state import AppState
from lattice.domain.graph_layout import compute_layout
from lattice.domain.models import FileStatus, RepoStatus, Revision


def linear_revisions(count: int) -> list[Revision]:
    """`count` revisions r0 (newest) .. r{count-1} (root), each the parent of the previous."""
    return [
        Revision(
            revision_id=f"r{index}",
            parent_ids=(f"r{index + 1}",) if index < count - 1 else (),
            description=f"change {index}",
        )
        for index in range(count)
    ]


def merge_revisions() -> list[Revision]:
    """c merges a and b, which both descend from the immutable root o."""
    return [
        Revision("c", ("a", "b"), description="merge a and b"),
        Revision("a", ("o",), description="left"),
        Revision("b", ("o",), description="right"),
        Revision("o", (), description="root", is_immutable=True),
    ]


def loaded_state(
    revisions: list[Revision],
    *,
    working_copy_id: str | None = None,
    file_statuses: dict[str, FileStatus] | None = None,
    selection: int | None = 0,
    version: int = 0,
    state: AppState | None = None,
) -> AppState:
    """An AppState with a repository already loaded and laid out."""
    status = RepoStatus(
        revisions=tuple(revisions),
        working_copy_id=working_copy_id,
        file_statuses=file_statuses or {},
        version=version,
        operation_id="op0000",
    )
    base = state if state is not None else AppState()
    return AppState(
        repo=status,
        layout=compute_layout(status.revisions, source_version=version),
        selection=selection,
        mode=base.mode,
        revset=base.revset,
        ledger=base.ledger,
        settings=base.settings,
        tick=base.tick,
    )
