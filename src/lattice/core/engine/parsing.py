"""Parsers for jj command output.

`jj log` is driven by LOG_TEMPLATE, which emits one record per revision with
fields separated by FIELD_SEP and records terminated by RECORD_SEP. Control
characters are used so descriptions can contain newlines and tabs.
"""

import re
from dataclasses import dataclass

from lattice.domain.models import FileStatus, Revision

FIELD_SEP = "\x1f"
RECORD_SEP = "\x1e"

LOG_TEMPLATE = (
    'commit_id ++ "\\x1f" '
    '++ parents.map(|c| c.commit_id()).join(",") ++ "\\x1f" '
    '++ change_id ++ "\\x1f" '
    '++ author.email() ++ "\\x1f" '
    '++ committer.timestamp().format("%Y-%m-%d %H:%M") ++ "\\x1f" '
    '++ local_bookmarks.map(|b| b.name()).join(",") ++ "\\x1f" '
    '++ if(conflict, "1", "0") ++ "\\x1f" '
    '++ if(immutable, "1", "0") ++ "\\x1f" '
    '++ if(current_working_copy, "1", "0") ++ "\\x1f" '
    '++ description ++ "\\x1e"'
)

ID_TEMPLATE = 'commit_id ++ "\\n"'

_FIELD_COUNT = 10

_REVSET_ERROR_MARKERS = ("failed to parse revset", "invalid revset", "parse error")

_SUMMARY_CODES = {
    "M": FileStatus.MODIFIED,
    "A": FileStatus.ADDED,
    "D": FileStatus.DELETED,
    "R": FileStatus.MODIFIED,
    "C": FileStatus.ADDED,
}

_RENAME_PATTERN = re.compile(r"^(?P<prefix>.*)\{(?P<old>.*) => (?P<new>.*)\}(?P<suffix>.*)$")
_RESOLVE_LINE_PATTERN = re.compile(r"^(?P<path>.+?)\s{2,}\S.*$")


class ParseError(ValueError):
    """jj output did not match the expected template."""


@dataclass(frozen=True)
class LogEntry:
    """One parsed `jj log` record."""

    revision: Revision
    is_working_copy: bool


def parse_log_output(output: str) -> list[LogEntry]:
    """Parse the output of `jj log -T LOG_TEMPLATE --no-graph`.

    Raises:
        ParseError: If a record does not have the expected number of fields
    """
    entries: list[LogEntry] = []
    for record in output.split(RECORD_SEP):
        record = record.lstrip("\n")
        if not record.strip():
            continue
        fields = record.split(FIELD_SEP, _FIELD_COUNT - 1)
        if len(fields) != _FIELD_COUNT:
            raise ParseError(f"Expected {_FIELD_COUNT} fields in log record, got {len(fields)}")

        (
            commit_id,
            parents,
            change_id,
            author,
            timestamp,
            bookmarks,
            conflict,
            immutable,
            working_copy,
            description,
        ) = fields

        revision = Revision(
            revision_id=commit_id.strip(),
            parent_ids=tuple(p for p in parents.split(",") if p),
            description=description,
            author=author,
            bookmarks=frozenset(b for b in bookmarks.split(",") if b),
            has_conflict=conflict == "1",
            change_id=change_id,
            is_immutable=immutable == "1",
            timestamp=timestamp,
        )
        entries.append(LogEntry(revision=revision, is_working_copy=working_copy == "1"))
    return entries


def parse_id_lines(output: str) -> list[str]:
    return [line.strip() for line in output.splitlines() if line.strip()]


def parse_diff_summary(output: str) -> dict[str, FileStatus]:
    """Parse `jj diff --summary` lines like `M src/app.py` or `R {a => b}`."""
    statuses: dict[str, FileStatus] = {}
    for line in output.splitlines():
        if len(line) < 3 or line[1] != " ":
            continue
        status = _SUMMARY_CODES.get(line[0])
        if status is None:
            continue
        path = line[2:].strip()
        match = _RENAME_PATTERN.match(path)
        if match is not None:
            path = f"{match['prefix']}{match['new']}{match['suffix']}"
        statuses[path] = status
    return statuses


def parse_resolve_list(output: str) -> list[str]:
    """Parse `jj resolve --list` lines (`path    2-sided conflict`) into paths."""
    paths: list[str] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        match = _RESOLVE_LINE_PATTERN.match(line)
        paths.append(match["path"] if match is not None else line.strip())
    return paths


def is_revset_error(stderr: str) -> bool:
    """Detect jj's complaints about an unparsable or unknown revset."""
    lowered = stderr.lower()
    if any(marker in lowered for marker in _REVSET_ERROR_MARKERS):
        return True
    if "error" in lowered and "function" in lowered:
        return True
    return "invalid" in lowered and "expression" in lowered
