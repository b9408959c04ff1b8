"""Text rendering of a laid-out revision graph with rich."""

from rich.text import Text

from lattice.app.state import AppState
from lattice.domain.graph_layout import EdgeKind, GraphLayout, RowLayout
from lattice.domain.models import Revision

NODE_GLYPHS = {
    "working_copy": ("@", "bold green"),
    "conflict": ("×", "bold red"),
    "immutable": ("◆", "cyan"),
    "normal": ("○", "white"),
}
EDGE_GLYPHS = {
    EdgeKind.NORMAL: ("│", "bright_black"),
    EdgeKind.MERGE: ("│", "magenta"),
    EdgeKind.ELIDED: ("╎", "yellow"),
}
TERMINAL_GLYPH = ("~", "bright_black")


def _node_glyph(revision: Revision, working_copy_id: str | None) -> tuple[str, str]:
    if revision.revision_id == working_copy_id:
        return NODE_GLYPHS["working_copy"]
    if revision.has_conflict:
        return NODE_GLYPHS["conflict"]
    if revision.is_immutable:
        return NODE_GLYPHS["immutable"]
    return NODE_GLYPHS["normal"]


def _gap_lanes(layout: GraphLayout, row: int) -> dict[int, tuple[str, str]]:
    """Lanes crossed by edges between `row` and `row + 1`."""
    lanes: dict[int, tuple[str, str]] = {}
    for edge in layout.edges:
        if edge.from_row > row:
            continue
        if edge.to_row is None:
            if edge.from_row == row:
                lanes[edge.via_lane] = TERMINAL_GLYPH
            continue
        if edge.to_row > row:
            lanes.setdefault(edge.via_lane, EDGE_GLYPHS[edge.kind])
    return lanes


def _node_line(
    row: RowLayout, revision: Revision, layout: GraphLayout, working_copy_id: str | None
) -> Text:
    line = Text()
    passing = set(row.passing_lanes)
    for lane in range(layout.lane_count):
        if lane == row.lane:
            line.append(*_node_glyph(revision, working_copy_id))
        elif lane in passing:
            line.append(*EDGE_GLYPHS[EdgeKind.NORMAL])
        else:
            line.append(" ")
        line.append(" ")

    line.append(revision.short_id, style="blue")
    if revision.bookmarks:
        line.append(" " + " ".join(sorted(revision.bookmarks)), style="magenta")
    if revision.author:
        line.append(f" {revision.author}", style="bright_black")
    line.append(f" {revision.summary}")
    if row.kind is EdgeKind.MERGE:
        line.append(" (merge)", style="magenta")
    return line


def _gap_line(layout: GraphLayout, row: int) -> Text | None:
    lanes = _gap_lanes(layout, row)
    if not lanes:
        return None
    line = Text()
    for lane in range(layout.lane_count):
        glyph = lanes.get(lane)
        if glyph is None:
            line.append(" ")
        else:
            line.append(*glyph)
        line.append(" ")
    line.rstrip()
    return line


def render_graph(state: AppState) -> list[Text]:
    """Render the graph for the current RepoStatus, one Text per screen line.

    Returns an empty list when nothing is loaded or the layout is stale.
    """
    layout = state.render_layout()
    if layout is None or state.repo is None:
        return []

    working_copy_id = state.repo.working_copy_id
    lines: list[Text] = []
    for row, revision in zip(layout.rows, state.repo.revisions, strict=True):
        line = _node_line(row, revision, layout, working_copy_id)
        if state.selection == row.row:
            line.stylize("reverse")
        lines.append(line)
        gap = _gap_line(layout, row.row)
        if gap is not None:
            lines.append(gap)
    return lines
