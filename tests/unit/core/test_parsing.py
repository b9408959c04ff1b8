"""Tests for jj output parsers."""

import pytest

from lattice.core.engine.parsing import (
    FIELD_SEP,
    RECORD_SEP,
    ParseError,
    is_revset_error,
    parse_diff_summary,
    parse_id_lines,
    parse_log_output,
    parse_resolve_list,
)
from lattice.domain.models import FileStatus


def _record(*fields: str) -> str:
    return FIELD_SEP.join(fields) + RECORD_SEP


def test_parse_log_output_reads_all_fields() -> None:
    output = _record(
        "abc123",
        "p1,p2",
        "kxyz",
        "dev@example.com",
        "2024-05-01 10:00",
        "main,feature",
        "1",
        "0",
        "1",
        "Merge things\n\nWith a body\n",
    ) + "\n" + _record("p1", "", "kabc", "", "", "", "0", "1", "0", "")

    entries = parse_log_output(output)

    assert len(entries) == 2
    merge, root = entries
    assert merge.is_working_copy
    assert merge.revision.revision_id == "abc123"
    assert merge.revision.parent_ids == ("p1", "p2")
    assert merge.revision.change_id == "kxyz"
    assert merge.revision.bookmarks == frozenset({"main", "feature"})
    assert merge.revision.has_conflict
    assert not merge.revision.is_immutable
    assert merge.revision.summary == "Merge things"
    assert root.revision.is_root
    assert root.revision.is_immutable
    assert not root.is_working_copy


def test_description_may_contain_field_separator() -> None:
    output = _record("a", "", "k", "", "", "", "0", "0", "0", f"odd{FIELD_SEP}text")

    (entry,) = parse_log_output(output)

    assert entry.revision.description == f"odd{FIELD_SEP}text"


def test_parse_log_output_rejects_short_record() -> None:
    with pytest.raises(ParseError, match="Expected 10 fields"):
        parse_log_output(_record("a", "b"))


def test_parse_log_output_empty() -> None:
    assert parse_log_output("") == []


def test_parse_id_lines() -> None:
    assert parse_id_lines("abc\n\n def \n") == ["abc", "def"]


def test_parse_diff_summary() -> None:
    output = "M src/app.py\nA new.py\nD old.py\nR src/{a.py => b.py}\nnoise\n"

    assert parse_diff_summary(output) == {
        "src/app.py": FileStatus.MODIFIED,
        "new.py": FileStatus.ADDED,
        "old.py": FileStatus.DELETED,
        "src/b.py": FileStatus.MODIFIED,
    }


def test_parse_resolve_list() -> None:
    output = "src/app.py    2-sided conflict\nREADME.md    2-sided conflict including 1 deletion\n"

    assert parse_resolve_list(output) == ["src/app.py", "README.md"]


@pytest.mark.parametrize(
    ("stderr", "expected"),
    [
        ("Error: Failed to parse revset: bad(", True),
        ("Error: Function \"nope\" doesn't exist", True),
        ("Error: Invalid expression", True),
        ("Error: Revision \"xyz\" doesn't exist", False),
        ("Error: There is no jj repo", False),
        (
            "Error: Commit 3a1b2c4d is immutable\nHint: Configure the set of immutable commits "
            "via `revset-aliases.immutable_heads()`.",
            False,
        ),
    ],
)
def test_is_revset_error(stderr: str, expected: bool) -> None:
    assert is_revset_error(stderr) is expected
