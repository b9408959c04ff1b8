"""Filter history commands."""

import click

from lattice.app.state import PRESETS
from lattice.cli.output import machine_output, user_output
from lattice.core.context import LatticeContext


@click.group("filters")
def filters_group() -> None:
    """Manage recently used revset filters."""


@filters_group.command("list")
@click.pass_obj
def list_filters(ctx: LatticeContext) -> None:
    """List recent filters, most recent first."""
    history = ctx.filter_history.load()
    if not history:
        user_output("No recent filters")
        return
    for expression in history:
        machine_output(expression)


@filters_group.command("presets")
def list_presets() -> None:
    """List the built-in filter presets."""
    for expression in PRESETS:
        machine_output(expression)


@filters_group.command("clear")
@click.pass_obj
def clear_filters(ctx: LatticeContext) -> None:
    """Forget all recent filters."""
    ctx.filter_history.save([])
    user_output(f"Cleared filter history in {ctx.filter_history.path()}")
