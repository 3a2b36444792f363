"""Root Typer application, mounts sub-commands."""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from opchart.cli.options import VerboseOption

app = typer.Typer(
    name="opchart",
    help="opchart - Acquire Helm charts for Helm-based operator projects.",
    no_args_is_help=True,
)


@app.callback()
def root(verbose: bool = VerboseOption) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False, rich_tracebacks=verbose)],
    )


def _register_commands() -> None:
    from opchart.cli.commands.create_cmd import app as create_app

    app.add_typer(create_app, name="create", help="Create the chart for a new Helm operator API")


_register_commands()


def main() -> None:
    app()
