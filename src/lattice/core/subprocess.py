"""Subprocess execution with rich error context for the engine layer."""

import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from lattice.core.engine.abc import EngineError


def run_subprocess_with_context(
    cmd: Sequence[str],
    operation_context: str,
    cwd: Path | None = None,
    check: bool = True,
    **kwargs: Any,
) -> subprocess.CompletedProcess[str]:
    """Execute subprocess with enriched error reporting for the engine layer.

    Wraps subprocess.run() to catch CalledProcessError and re-raise as
    EngineError with operation context, stderr output, and command details.

    Args:
        cmd: Command and arguments to execute
        operation_context: Human-readable description of operation
        cwd: Working directory for command execution
        check: Whether to raise on non-zero exit (default: True)
        **kwargs: Additional arguments passed to subprocess.run()

    Returns:
        CompletedProcess instance from subprocess.run()

    Raises:
        EngineError: If the command fails or cannot be started at all.
            `stderr` holds the raw error output for classification.
    """
    try:
        return subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            check=check,
            **kwargs,
        )

    except subprocess.CalledProcessError as e:
        cmd_str = " ".join(str(arg) for arg in cmd)
        error_msg = f"Failed to {operation_context}"
        error_msg += f"\nCommand: {cmd_str}"
        error_msg += f"\nExit code: {e.returncode}"

        stderr_text = ""
        if e.stderr:
            stderr_text = e.stderr if isinstance(e.stderr, str) else e.stderr.decode("utf-8")
            stderr_text = stderr_text.strip()
            if stderr_text:
                error_msg += f"\nstderr: {stderr_text}"

        raise EngineError(error_msg, stderr=stderr_text) from e

    except FileNotFoundError as e:
        cmd_str = " ".join(str(arg) for arg in cmd)
        error_msg = f"Command not found while trying to {operation_context}: {cmd[0]}"
        error_msg += f"\nFull command: {cmd_str}"
        raise EngineError(error_msg, stderr=f"{cmd[0]}: command not found") from e

    except OSError as e:
        cmd_str = " ".join(str(arg) for arg in cmd)
        error_msg = f"Could not run {cmd[0]} while trying to {operation_context}: {e}"
        error_msg += f"\nFull command: {cmd_str}"
        raise EngineError(error_msg, stderr=str(e)) from e
