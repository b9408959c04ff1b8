import logging
import os
from pathlib import Path

import click

from lattice.cli.commands.filters import filters_group
from lattice.cli.commands.graph import graph_cmd
from lattice.cli.commands.resolve import resolve_cmd
from lattice.core.config import FilesystemConfigStore
from lattice.core.context import create_context

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])  # terse help flags

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(lineno)d] %(message)s"


def configure_logging(log_file: Path, *, debug: bool) -> None:
    """Send log records to `log_file`; the terminal belongs to the UI."""
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=log_file,
        level=logging.DEBUG if debug else logging.WARNING,
        format=LOG_FORMAT,
    )


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="lattice")
@click.option("--demo", is_flag=True, help="Use a built-in sample repository instead of jj.")
@click.option("--debug", is_flag=True, help="Write debug logging to the log file.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Read configuration from this TOML file.",
)
@click.pass_context
def cli(ctx: click.Context, demo: bool, debug: bool, config_path: Path | None) -> None:
    """Browse and edit jj revision graphs."""
    # Only create context if not already provided (e.g., by tests)
    if ctx.obj is None:
        store = FilesystemConfigStore(config_path) if config_path is not None else None
        ctx.obj = create_context(demo=demo, config_store=store)
        configure_logging(
            ctx.obj.config.resolved_log_file,
            debug=debug or bool(os.getenv("LATTICE_DEBUG")),
        )


cli.add_command(filters_group)
cli.add_command(graph_cmd)
cli.add_command(resolve_cmd)


def main() -> None:
    """CLI entry point used by the `lattice` console script."""
    cli()
