"""Lane assignment for the revision graph.

This module contains the pure layout algorithm that turns a topologically
ordered (newest first) sequence of revisions into lanes and edge segments.
The renderer only reads the result; it never re-derives lane positions.

Algorithm (single pass, top to bottom):
    1. A revision awaited by an open lane takes that lane; otherwise it takes
       the lowest free lane.
    2. Every edge parked in the matched lane ends at this row. Two or more
       incoming edges mark a convergence.
    3. The matched lane closes. Each parent either joins the lane that already
       awaits it, continues in this revision's lane (first parent), or opens
       the lowest free lane.
    4. Truncated revisions get a terminal segment that occupies no lane.

Malformed input never raises to the caller: compute_layout() returns a
single-lane fallback with the LayoutError attached.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from lattice.domain.models import Revision

logger = logging.getLogger(__name__)


class EdgeKind(Enum):
    """Styling class of an edge (and of the row that emits it)."""

    NORMAL = "normal"
    MERGE = "merge"
    ELIDED = "elided"


class LayoutError(ValueError):
    """Revision data cannot be laid out (duplicate ids, bad parent references)."""

    def __init__(self, message: str, revision_id: str | None = None) -> None:
        super().__init__(message)
        self.revision_id = revision_id


@dataclass(frozen=True)
class EdgeSegment:
    """A connection from a revision's row to one of its ancestors' rows.

    `via_lane` is the lane the edge occupies between the two rows. Terminal
    segments (history continues outside the loaded window) have no target.
    """

    from_row: int
    from_lane: int
    via_lane: int
    to_row: int | None
    to_lane: int | None
    kind: EdgeKind
    parent_id: str | None

    @property
    def is_terminal(self) -> bool:
        return self.to_row is None


@dataclass(frozen=True)
class RowLayout:
    """Placement of a single revision row."""

    row: int
    revision_id: str
    lane: int
    incoming: tuple[EdgeSegment, ...]
    outgoing: tuple[EdgeSegment, ...]
    passing_lanes: tuple[int, ...]
    kind: EdgeKind

    @property
    def active_lanes(self) -> tuple[int, ...]:
        """All lanes occupied on this row: the revision's own plus pass-throughs."""
        return tuple(sorted({self.lane, *self.passing_lanes}))

    @property
    def is_convergence(self) -> bool:
        return len(self.incoming) >= 2


@dataclass(frozen=True)
class GraphLayout:
    """Layout for one RepoStatus version."""

    rows: tuple[RowLayout, ...]
    edges: tuple[EdgeSegment, ...]
    lane_count: int
    source_version: int = 0
    error: LayoutError | None = None

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def degraded(self) -> bool:
        return self.error is not None

    def row_for(self, revision_id: str) -> RowLayout | None:
        for row in self.rows:
            if row.revision_id == revision_id:
                return row
        return None


@dataclass
class _PendingEdge:
    from_row: int
    from_lane: int
    via_lane: int
    kind: EdgeKind
    parent_id: str


@dataclass
class _Lane:
    awaiting: str
    edges: list[_PendingEdge] = field(default_factory=list)


def compute_layout(revisions: Sequence[Revision], *, source_version: int = 0) -> GraphLayout:
    """Lay out revisions into lanes, falling back to a single lane on bad input.

    Args:
        revisions: Revisions ordered newest first (children before parents)
        source_version: Version of the RepoStatus the revisions came from

    Returns:
        GraphLayout with one row per revision. On malformed input the layout
        is degraded (all rows in lane 0) and `error` holds the LayoutError.
    """
    try:
        return _assign_lanes(revisions, source_version)
    except LayoutError as e:
        logger.warning("Falling back to single-lane layout: %s", e)
        return _single_lane_layout(revisions, source_version, e)


def _check_references(revisions: Sequence[Revision]) -> dict[str, int]:
    positions: dict[str, int] = {}
    for row, revision in enumerate(revisions):
        if revision.revision_id in positions:
            raise LayoutError(
                f"Duplicate revision id '{revision.revision_id}'", revision.revision_id
            )
        positions[revision.revision_id] = row

    for row, revision in enumerate(revisions):
        for parent_id in (*revision.parent_ids, *revision.elided_parent_ids):
            if parent_id == revision.revision_id:
                raise LayoutError(
                    f"Revision '{parent_id}' lists itself as a parent", revision.revision_id
                )
            parent_row = positions.get(parent_id)
            if parent_row is None:
                raise LayoutError(
                    f"Parent '{parent_id}' of '{revision.revision_id}' is not in the revision set",
                    revision.revision_id,
                )
            if parent_row <= row:
                raise LayoutError(
                    f"Parent '{parent_id}' appears before its child '{revision.revision_id}'",
                    revision.revision_id,
                )
    return positions


def _lowest_free(lanes: list[_Lane | None]) -> int:
    for index, lane in enumerate(lanes):
        if lane is None:
            return index
    lanes.append(None)
    return len(lanes) - 1


def _assign_lanes(revisions: Sequence[Revision], source_version: int) -> GraphLayout:
    _check_references(revisions)

    lanes: list[_Lane | None] = []
    awaiting: dict[str, int] = {}
    incoming: list[list[EdgeSegment]] = [[] for _ in revisions]
    outgoing: list[list[EdgeSegment]] = [[] for _ in revisions]
    placements: list[tuple[int, tuple[int, ...]]] = []
    edges: list[EdgeSegment] = []
    lane_count = 0

    for row, revision in enumerate(revisions):
        matched = awaiting.pop(revision.revision_id, None)
        lane_index = matched if matched is not None else _lowest_free(lanes)

        if matched is not None:
            claimed = lanes[matched]
            lanes[matched] = None
            if claimed is not None:
                for pending in claimed.edges:
                    segment = EdgeSegment(
                        from_row=pending.from_row,
                        from_lane=pending.from_lane,
                        via_lane=pending.via_lane,
                        to_row=row,
                        to_lane=lane_index,
                        kind=pending.kind,
                        parent_id=pending.parent_id,
                    )
                    incoming[row].append(segment)
                    outgoing[pending.from_row].append(segment)
                    edges.append(segment)

        passing = tuple(index for index, lane in enumerate(lanes) if lane is not None)
        placements.append((lane_index, passing))
        lane_count = max(lane_count, lane_index + 1, *(index + 1 for index in passing))

        direct_kind = EdgeKind.MERGE if revision.is_merge else EdgeKind.NORMAL
        targets = [(parent_id, direct_kind) for parent_id in revision.parent_ids]
        targets.extend(
            (parent_id, EdgeKind.ELIDED)
            for parent_id in revision.elided_parent_ids
            if parent_id not in revision.parent_ids
        )

        for position, (parent_id, kind) in enumerate(targets):
            existing = awaiting.get(parent_id)
            if existing is not None:
                via = existing
            elif position == 0 and _is_free(lanes, lane_index):
                via = lane_index
            else:
                via = _lowest_free(lanes)

            if existing is None:
                while via >= len(lanes):
                    lanes.append(None)
                lanes[via] = _Lane(awaiting=parent_id)
                awaiting[parent_id] = via
            lane = lanes[via]
            if lane is not None:
                lane.edges.append(
                    _PendingEdge(
                        from_row=row,
                        from_lane=lane_index,
                        via_lane=via,
                        kind=kind,
                        parent_id=parent_id,
                    )
                )
            lane_count = max(lane_count, via + 1)

        if revision.truncated:
            terminal = EdgeSegment(
                from_row=row,
                from_lane=lane_index,
                via_lane=lane_index,
                to_row=None,
                to_lane=None,
                kind=EdgeKind.NORMAL,
                parent_id=None,
            )
            outgoing[row].append(terminal)
            edges.append(terminal)

    rows: list[RowLayout] = []
    for row, revision in enumerate(revisions):
        lane_index, passing = placements[row]
        rows.append(
            RowLayout(
                row=row,
                revision_id=revision.revision_id,
                lane=lane_index,
                incoming=tuple(incoming[row]),
                outgoing=tuple(outgoing[row]),
                passing_lanes=passing,
                kind=_row_kind(revision),
            )
        )

    return GraphLayout(
        rows=tuple(rows),
        edges=tuple(sorted(edges, key=_edge_order)),
        lane_count=lane_count,
        source_version=source_version,
    )


def _is_free(lanes: list[_Lane | None], index: int) -> bool:
    """True if `index` is past the end of `lanes` or holds no open lane."""
    return index >= len(lanes) or lanes[index] is None


def _row_kind(revision: Revision) -> EdgeKind:
    if revision.elided_parent_ids:
        return EdgeKind.ELIDED
    if revision.is_merge:
        return EdgeKind.MERGE
    return EdgeKind.NORMAL


def _edge_order(edge: EdgeSegment) -> tuple[int, int, int]:
    to_row = edge.to_row if edge.to_row is not None else -1
    return (edge.from_row, to_row, edge.via_lane)


def _single_lane_layout(
    revisions: Sequence[Revision], source_version: int, error: LayoutError
) -> GraphLayout:
    edges = [
        EdgeSegment(
            from_row=row,
            from_lane=0,
            via_lane=0,
            to_row=row + 1,
            to_lane=0,
            kind=EdgeKind.NORMAL,
            parent_id=revisions[row + 1].revision_id,
        )
        for row in range(len(revisions) - 1)
    ]
    rows = tuple(
        RowLayout(
            row=row,
            revision_id=revision.revision_id,
            lane=0,
            incoming=(edges[row - 1],) if row > 0 else (),
            outgoing=(edges[row],) if row < len(edges) else (),
            passing_lanes=(),
            kind=EdgeKind.NORMAL,
        )
        for row, revision in enumerate(revisions)
    )
    return GraphLayout(
        rows=rows,
        edges=tuple(edges),
        lane_count=1 if revisions else 0,
        source_version=source_version,
        error=error,
    )


def validate_layout(layout: GraphLayout) -> list[str]:
    """Check structural properties of a layout.

    Returns:
        Human-readable problems; empty when the layout is collision-free,
        rows are numbered consecutively and every edge points downwards.
    """
    problems: list[str] = []
    for expected, row in enumerate(layout.rows):
        if row.row != expected:
            problems.append(f"Row {expected} is numbered {row.row}")
        if row.lane in row.passing_lanes:
            problems.append(
                f"Row {row.row} ({row.revision_id}) shares lane {row.lane} with a passing edge"
            )
        if row.lane >= layout.lane_count:
            problems.append(f"Row {row.row} uses lane {row.lane} beyond lane count")
    for edge in layout.edges:
        if edge.to_row is not None and edge.to_row <= edge.from_row:
            problems.append(f"Edge from row {edge.from_row} points upwards to {edge.to_row}")
    return problems
