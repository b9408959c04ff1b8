"""Output utilities for CLI commands with clear intent.

user_output() is for messages meant for a person (stderr); machine_output()
is for results other programs may consume (stdout).
"""

from typing import Any

import click


def user_output(message: Any = "", nl: bool = True) -> None:
    click.echo(message, nl=nl, err=True)


def machine_output(message: Any = "", nl: bool = True) -> None:
    click.echo(message, nl=nl)
