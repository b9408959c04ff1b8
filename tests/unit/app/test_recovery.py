"""Tests for failure classification."""

import pytest

from lattice.app.recovery import (
    RELOAD_SUGGESTION,
    ErrorKind,
    Severity,
    classify,
    classify_exception,
)
from lattice.core.engine.abc import EngineError, FilterSyntaxError
from lattice.core.engine.safety import UnsafeTargetError
from lattice.core.terminal import TerminalError


@pytest.mark.parametrize(
    ("text", "kind", "severity"),
    [
        ("Error: There is no jj repo in \".\"", ErrorKind.NO_REPO, Severity.CRITICAL),
        ("jj: command not found", ErrorKind.NO_REPO, Severity.CRITICAL),
        ("Error: Failed to parse revset: bad(", ErrorKind.FILTER_SYNTAX, Severity.ERROR),
        ("Error: Function \"foo\" doesn't exist", ErrorKind.FILTER_SYNTAX, Severity.ERROR),
        ("Error: Commit abc has unresolved conflicts", ErrorKind.CONFLICT, Severity.ERROR),
        ("Error: could not resolve host: github.com", ErrorKind.NETWORK_REMOTE, Severity.ERROR),
        ("Permission denied (publickey).", ErrorKind.NETWORK_REMOTE, Severity.ERROR),
        ("Error: Commit 0a1b is immutable", ErrorKind.IMMUTABLE, Severity.ERROR),
        (
            "Error: Commit 3a1b2c4d is immutable\nHint: Could not modify commit: 3a1b2c4d\n"
            "Hint: Configure the set of immutable commits via "
            "`revset-aliases.immutable_heads()`.",
            ErrorKind.IMMUTABLE,
            Severity.ERROR,
        ),
        ("Error: No such bookmark: feature", ErrorKind.NOT_FOUND, Severity.WARNING),
        ("Error: The working copy is stale", ErrorKind.GENERIC, Severity.WARNING),
        ("Something unexpected happened", ErrorKind.GENERIC, Severity.ERROR),
    ],
)
def test_classify(text: str, kind: ErrorKind, severity: Severity) -> None:
    classification = classify(text)

    assert classification.kind is kind
    assert classification.severity is severity


def test_first_matching_rule_wins() -> None:
    """Missing binaries are reported as such, not as a generic "not found"."""
    assert classify("jj: command not found").kind is ErrorKind.NO_REPO
    assert classify("file not found").kind is ErrorKind.NOT_FOUND


def test_matching_is_case_insensitive() -> None:
    assert classify("IMMUTABLE COMMIT").kind is ErrorKind.IMMUTABLE


def test_critical_errors_suggest_reload() -> None:
    classification = classify("Error: There is no jj repo in \".\"")

    assert classification.suggestion is not None
    assert classification.suggestion.startswith("Ensure you are in a jj/git repository")
    assert classification.suggestion.endswith(RELOAD_SUGGESTION)


def test_unmatched_text_has_no_suggestion() -> None:
    assert classify("???").suggestion is None


def test_classify_engine_error_uses_stderr() -> None:
    error = EngineError(
        "Failed to push to remote\nCommand: jj git push\nExit code: 1",
        stderr="Error: failed to connect to remote origin",
    )

    message, classification = classify_exception(error)

    assert message == "Failed to push to remote: failed to connect to remote origin"
    assert classification.kind is ErrorKind.NETWORK_REMOTE


def test_classify_filter_syntax_error() -> None:
    error = FilterSyntaxError("Failed to load log", stderr="Error: Failed to parse revset: x(")

    message, classification = classify_exception(error)

    assert message == "Failed to load log: Failed to parse revset: x("
    assert classification.kind is ErrorKind.FILTER_SYNTAX


def test_classify_terminal_error_is_critical() -> None:
    _, classification = classify_exception(TerminalError("tcsetattr failed"))

    assert classification.kind is ErrorKind.TERMINAL
    assert classification.severity is Severity.CRITICAL


def test_classify_unsafe_target() -> None:
    message, classification = classify_exception(UnsafeTargetError("Path traversal"))

    assert message == "Path traversal"
    assert classification.kind is ErrorKind.GENERIC


def test_revset_alias_hint_is_not_a_filter_error() -> None:
    """Only parse failures clear the filter; a hint naming revset-aliases does not."""
    text = "Error: Config error: bad value\nHint: Check `revset-aliases` in your config"

    assert classify(text).kind is not ErrorKind.FILTER_SYNTAX


def test_engine_error_without_stderr_ignores_command_line() -> None:
    """The command line echoes the user's revset, which must not drive classification."""
    error = EngineError(
        "Failed to load log for revset 'conflicts()'\nCommand: jj log -r conflicts()"
    )

    message, classification = classify_exception(error)

    assert message == "Failed to load log for revset 'conflicts()'"
    assert classification.kind is ErrorKind.GENERIC
    assert classification.severity is Severity.ERROR
