"""Resolve command: hand the terminal to `jj resolve` for a conflicted path."""

import click

from lattice.app.actions import Refresh, ResolveConflicts
from lattice.cli.output import user_output
from lattice.cli.session import report_error, run_session
from lattice.core.context import LatticeContext


@click.command("resolve")
@click.argument("path", required=False)
@click.pass_obj
def resolve_cmd(ctx: LatticeContext, path: str | None) -> None:
    """Open the merge tool on PATH, or on the first conflicted file."""
    state = run_session(ctx, [Refresh(), ResolveConflicts(path)])
    report_error(state, fail_on_warning=True)

    remaining = state.repo.conflicted_paths if state.repo is not None else []
    if remaining:
        user_output(f"{len(remaining)} conflicted file(s) remain: {', '.join(remaining)}")
    else:
        user_output("No conflicts remain")
