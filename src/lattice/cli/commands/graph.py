"""Graph command: load the revision history and print it as lanes."""

import click
from rich.console import Console

from lattice.app.actions import Action, ApplyFilter, Refresh
from lattice.cli.ensure import Ensure
from lattice.cli.output import user_output
from lattice.cli.rendering import render_graph
from lattice.cli.session import report_error, run_session
from lattice.core.context import LatticeContext
from lattice.domain.graph_layout import validate_layout


@click.command("graph")
@click.option("-r", "--revset", default=None, help="Revset filter to apply.")
@click.option("--check", is_flag=True, help="Verify the layout is collision-free.")
@click.pass_obj
def graph_cmd(ctx: LatticeContext, revset: str | None, check: bool) -> None:
    """Print the revision graph of the current repository.

    Example:
        $ lattice graph -r 'mine()'
        @ 3f2a9c1e wip: lane packing tweaks
        │
        ○ 9b8e7d6c Merge feature into trunk (merge)
    """
    actions: list[Action] = [Refresh()] if revset is None else [ApplyFilter(revset)]
    state = run_session(ctx, actions)
    report_error(state, fail_on_warning=False)

    layout = Ensure.not_none(state.render_layout(), "No revisions could be loaded")
    if len(layout) == 0:
        user_output("No revisions match")
        return

    console = Console(highlight=False, soft_wrap=True)
    for line in render_graph(state):
        console.print(line)

    if layout.degraded:
        warning = click.style("Warning: ", fg="yellow")
        user_output(f"{warning}Graph shown in one lane: {layout.error}")

    if check:
        problems = validate_layout(layout)
        for problem in problems:
            user_output(f"  {problem}")
        Ensure.invariant(not problems, f"Layout check found {len(problems)} problem(s)")
        user_output(f"Layout OK: {len(layout)} rows in {layout.lane_count} lane(s)")
