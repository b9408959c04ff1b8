"""Classification of engine failures into kind, severity and a suggestion.

Rules are tried in order and the first match wins. Matching is
case-insensitive. Classification is advisory only; the one automatic
reaction (reverting a broken filter) lives in the revset feature.
"""

import re
from dataclasses import dataclass
from enum import Enum

from lattice.core.engine.abc import EngineError, FilterSyntaxError
from lattice.core.engine.safety import UnsafeTargetError
from lattice.core.terminal import TerminalError


class ErrorKind(Enum):
    FILTER_SYNTAX = "filter_syntax"
    CONFLICT = "conflict"
    NETWORK_REMOTE = "network_remote"
    BUSY = "busy"
    IMMUTABLE = "immutable"
    NOT_FOUND = "not_found"
    NO_REPO = "no_repo"
    TERMINAL = "terminal"
    GENERIC = "generic"


class Severity(Enum):
    """How an error is presented.

    WARNING dismisses itself after a few ticks, ERROR stays until dismissed,
    CRITICAL also suggests reloading.
    """

    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


RELOAD_SUGGESTION = "Reload the view once the problem is fixed."


@dataclass(frozen=True)
class Classification:
    kind: ErrorKind
    severity: Severity
    suggestion: str | None


@dataclass(frozen=True)
class ClassificationRule:
    kind: ErrorKind
    severity: Severity
    patterns: tuple[re.Pattern[str], ...]
    suggestion: str | None

    def matches(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self.patterns)


def _rule(
    kind: ErrorKind, severity: Severity, patterns: list[str], suggestion: str | None
) -> ClassificationRule:
    return ClassificationRule(
        kind=kind,
        severity=severity,
        patterns=tuple(re.compile(p, re.IGNORECASE) for p in patterns),
        suggestion=suggestion,
    )


RULES: tuple[ClassificationRule, ...] = (
    _rule(
        ErrorKind.NO_REPO,
        Severity.CRITICAL,
        [r"command not found"],
        "Ensure jj is installed and on your PATH.",
    ),
    _rule(
        ErrorKind.NO_REPO,
        Severity.CRITICAL,
        [r"there is no jj repo", r"not a jj repo", r"no jj repo", r"not a git repository"],
        "Ensure you are in a jj/git repository or try: jj git init",
    ),
    _rule(
        ErrorKind.IMMUTABLE,
        Severity.ERROR,
        [r"immutable"],
        "Try running: jj new (to create a child of the immutable revision)",
    ),
    _rule(
        ErrorKind.FILTER_SYNTAX,
        Severity.ERROR,
        [
            r"failed to parse revset",
            r"invalid revset",
            r"revset (parse|syntax) error",
            r"function \S+ doesn't exist",
            r"invalid.*expression",
        ],
        "Check the revset syntax. The filter has been cleared.",
    ),
    _rule(
        ErrorKind.CONFLICT,
        Severity.ERROR,
        [r"conflict", r"unresolved"],
        "Try running: jj resolve (to open the external merge tool)",
    ),
    _rule(
        ErrorKind.NETWORK_REMOTE,
        Severity.ERROR,
        [
            r"network",
            r"remote",
            r"connection",
            r"timed out",
            r"could not resolve host",
            r"authentication",
            r"permission denied \(publickey",
        ],
        "Check your network connection and remote configuration, then retry.",
    ),
    _rule(
        ErrorKind.NOT_FOUND,
        Severity.WARNING,
        [r"no such (bookmark|revision)", r"doesn't exist", r"does not exist", r"not found"],
        "Check the bookmark name or try: jj bookmark list",
    ),
    _rule(
        ErrorKind.GENERIC,
        Severity.WARNING,
        [r"working copy is stale", r"stale", r"concurrent"],
        "Try running: jj workspace update-stale (or jj status to snapshot)",
    ),
)

_UNMATCHED = Classification(kind=ErrorKind.GENERIC, severity=Severity.ERROR, suggestion=None)


def classify(text: str, rules: tuple[ClassificationRule, ...] = RULES) -> Classification:
    """Classify raw failure text.

    Returns:
        The first matching rule's classification, or GENERIC/ERROR. CRITICAL
        results carry the reload suggestion in addition to the rule's hint.
    """
    for rule in rules:
        if not rule.matches(text):
            continue
        suggestion = rule.suggestion
        if rule.severity is Severity.CRITICAL:
            suggestion = f"{suggestion} {RELOAD_SUGGESTION}" if suggestion else RELOAD_SUGGESTION
        return Classification(kind=rule.kind, severity=rule.severity, suggestion=suggestion)
    return _UNMATCHED


def classify_exception(error: Exception) -> tuple[str, Classification]:
    """Turn an exception raised while executing a command into (message, classification)."""
    match error:
        case FilterSyntaxError():
            return (
                _describe(error),
                Classification(
                    kind=ErrorKind.FILTER_SYNTAX,
                    severity=Severity.ERROR,
                    suggestion="Check the revset syntax. The filter has been cleared.",
                ),
            )
        case EngineError():
            # Without stderr only the command line is left, which echoes user input
            return (_describe(error), classify(error.stderr) if error.stderr else _UNMATCHED)
        case TerminalError():
            return (
                str(error),
                Classification(
                    kind=ErrorKind.TERMINAL,
                    severity=Severity.CRITICAL,
                    suggestion=f"Run 'reset' if the terminal looks wrong. {RELOAD_SUGGESTION}",
                ),
            )
        case UnsafeTargetError():
            return (
                str(error),
                Classification(kind=ErrorKind.GENERIC, severity=Severity.ERROR, suggestion=None),
            )
        case _:
            return (str(error), classify(str(error)))


def _describe(error: EngineError) -> str:
    detail = error.stderr.strip().splitlines()
    if not detail:
        return _first_line(error)
    return f"{_first_line(error)}: {detail[0].removeprefix('Error: ')}"


def _first_line(error: Exception) -> str:
    lines = str(error).splitlines()
    return lines[0] if lines else type(error).__name__
