"""Validation of targets handed to interactive external tools."""

from pathlib import PurePosixPath

from lattice.core.engine.abc import InteractiveKind


class UnsafeTargetError(ValueError):
    """Target would escape the repository or cannot be passed to a tool."""


def validate_target_path(target: str) -> str:
    """Reject repository paths that could escape the workspace.

    Args:
        target: Repository-relative path as reported by the engine

    Returns:
        The normalized path

    Raises:
        UnsafeTargetError: For empty, absolute, NUL-containing or `..` paths
    """
    if not target or not target.strip():
        raise UnsafeTargetError("Empty path")
    if "\x00" in target:
        raise UnsafeTargetError(f"Path contains a NUL byte: {target!r}")
    if target.startswith("-"):
        raise UnsafeTargetError(f"Path looks like an option: {target}")

    path = PurePosixPath(target.replace("\\", "/"))
    if path.is_absolute() or (len(target) > 1 and target[1] == ":"):
        raise UnsafeTargetError(f"Absolute paths are not allowed: {target}")
    if ".." in path.parts:
        raise UnsafeTargetError(f"Path traversal is not allowed: {target}")
    return str(path)


def validate_revision_id(target: str) -> str:
    """Accept only hexadecimal-ish revision ids (no revset syntax, no options)."""
    if not target or not target.isalnum():
        raise UnsafeTargetError(f"Invalid revision id: {target!r}")
    return target


def validate_interactive_target(kind: InteractiveKind, target: str) -> str:
    """Validate `target` according to what the tool expects."""
    if kind is InteractiveKind.RESOLVE:
        return validate_target_path(target)
    return validate_revision_id(target)
