"""Tests for lane assignment."""

from lattice.domain.graph_layout import (
    EdgeKind,
    LayoutError,
    compute_layout,
    validate_layout,
)
from lattice.domain.models import Revision
from tests.test_utils.repos import linear_revisions, merge_revisions


def test_linear_history_uses_one_lane() -> None:
    """Five revisions in a line stay in lane 0 with one edge between neighbours."""
    layout = compute_layout(linear_revisions(5))

    assert layout.lane_count == 1
    assert [row.lane for row in layout.rows] == [0, 0, 0, 0, 0]
    assert [(edge.from_row, edge.to_row) for edge in layout.edges] == [
        (0, 1),
        (1, 2),
        (2, 3),
        (3, 4),
    ]
    assert all(edge.kind is EdgeKind.NORMAL for edge in layout.edges)
    assert not layout.degraded


def test_merge_opens_second_lane_and_converges() -> None:
    """A merge of two branches needs two lanes until the branches meet again."""
    layout = compute_layout(merge_revisions())

    assert layout.lane_count == 2
    c, a, b, o = layout.rows
    assert c.kind is EdgeKind.MERGE
    assert c.active_lanes == (0,)
    assert a.active_lanes == (0, 1)
    assert b.active_lanes == (0, 1)
    assert o.active_lanes == (0,)
    assert a.lane == 0
    assert b.lane == 1
    assert o.is_convergence
    assert len(layout.edges) == 4


def test_merge_edges_are_styled_as_merge() -> None:
    layout = compute_layout(merge_revisions())

    merge_edges = [edge for edge in layout.edges if edge.from_row == 0]
    assert {edge.parent_id for edge in merge_edges} == {"a", "b"}
    assert all(edge.kind is EdgeKind.MERGE for edge in merge_edges)


def test_layout_is_deterministic() -> None:
    """Identical input yields an identical layout."""
    assert compute_layout(merge_revisions()) == compute_layout(merge_revisions())


def test_layout_carries_source_version() -> None:
    layout = compute_layout(linear_revisions(2), source_version=7)

    assert layout.source_version == 7


def test_layouts_are_collision_free() -> None:
    """Each row's own lane is never also used by an edge passing through that row."""
    revisions = [
        Revision("m2", ("x", "m1")),
        Revision("x", ("m1",)),
        Revision("m1", ("p", "q")),
        Revision("p", ("base",)),
        Revision("q", ("side",)),
        Revision("side", ("base",)),
        Revision("base", ()),
    ]

    for candidate in (linear_revisions(6), merge_revisions(), revisions):
        assert validate_layout(compute_layout(candidate)) == []


def test_branch_passing_a_row_keeps_its_lane() -> None:
    """A long branch keeps lane 1 while the other branch occupies lane 0."""
    revisions = [
        Revision("tip", ("a1", "b1")),
        Revision("a1", ("a2",)),
        Revision("a2", ("base",)),
        Revision("b1", ("base",)),
        Revision("base", ()),
    ]

    layout = compute_layout(revisions)

    a2 = layout.rows[2]
    assert a2.lane == 0
    assert a2.passing_lanes == (1,)


def test_empty_history_has_no_lanes() -> None:
    layout = compute_layout([])

    assert len(layout) == 0
    assert layout.lane_count == 0
    assert layout.edges == ()


def test_unknown_parent_falls_back_to_single_lane() -> None:
    """A parent outside the revision set degrades to one lane instead of raising."""
    revisions = [Revision("a", ("missing",)), Revision("b", ())]

    layout = compute_layout(revisions)

    assert layout.degraded
    assert isinstance(layout.error, LayoutError)
    assert layout.error.revision_id == "a"
    assert layout.lane_count == 1
    assert [row.lane for row in layout.rows] == [0, 0]
    assert [(edge.from_row, edge.to_row) for edge in layout.edges] == [(0, 1)]


def test_duplicate_revision_falls_back_to_single_lane() -> None:
    revisions = [Revision("a", ()), Revision("a", ())]

    layout = compute_layout(revisions)

    assert layout.degraded
    assert "Duplicate" in str(layout.error)


def test_parent_listed_before_child_falls_back() -> None:
    revisions = [Revision("parent", ()), Revision("child", ("parent",))]

    layout = compute_layout(revisions)

    assert layout.degraded


def test_elided_parent_gets_elided_edge() -> None:
    """Ancestors reached through hidden revisions connect with an elided edge."""
    revisions = [
        Revision("top", (), elided_parent_ids=("bottom",)),
        Revision("bottom", ()),
    ]

    layout = compute_layout(revisions)

    assert not layout.degraded
    (edge,) = layout.edges
    assert edge.kind is EdgeKind.ELIDED
    assert edge.to_row == 1
    assert layout.rows[0].kind is EdgeKind.ELIDED


def test_truncated_revision_gets_terminal_segment() -> None:
    """History cut off by the limit ends in a terminal segment that occupies no row."""
    revisions = [Revision("a", ("b",)), Revision("b", (), truncated=True)]

    layout = compute_layout(revisions)

    terminal = [edge for edge in layout.edges if edge.is_terminal]
    assert len(terminal) == 1
    assert terminal[0].from_row == 1
    assert terminal[0].to_row is None
    assert validate_layout(layout) == []


def test_row_for_finds_revision() -> None:
    layout = compute_layout(merge_revisions())

    row = layout.row_for("b")

    assert row is not None
    assert row.row == 2
    assert layout.row_for("nope") is None
