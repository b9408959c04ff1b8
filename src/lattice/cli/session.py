"""Driving the runtime from one-shot CLI commands."""

import asyncio
from collections.abc import Sequence

import click

from lattice.app.actions import Action
from lattice.app.recovery import Severity
from lattice.app.runtime import Runtime
from lattice.app.state import AppState, Settings
from lattice.cli.ensure import Ensure
from lattice.cli.output import user_output
from lattice.core.context import LatticeContext


def initial_state(ctx: LatticeContext) -> AppState:
    config = ctx.config
    settings = Settings(
        log_limit=config.log_limit,
        refresh_interval_ticks=config.refresh_interval_ticks,
        warning_ttl_ticks=config.warning_ttl_ticks,
        max_filter_history=config.max_filter_history,
    )
    return AppState.initial(settings, tuple(ctx.filter_history.load()))


async def drive(ctx: LatticeContext, actions: Sequence[Action]) -> AppState:
    """Dispatch actions one at a time, letting each settle before the next."""
    runtime = Runtime(ctx, initial_state(ctx))
    try:
        for action in actions:
            runtime.post(action)
            await runtime.run_until_idle()
    finally:
        await runtime.close()
    return runtime.state


def run_session(ctx: LatticeContext, actions: Sequence[Action]) -> AppState:
    return asyncio.run(drive(ctx, actions))


def report_error(state: AppState, *, fail_on_warning: bool) -> None:
    """Exit with the state's error, or print it when it is only a warning."""
    error = state.error
    if error is None:
        return
    if error.severity is Severity.WARNING and not fail_on_warning:
        user_output(click.style("Warning: ", fg="yellow") + error.message)
        return
    Ensure.fail(error.message, error.suggestion)
