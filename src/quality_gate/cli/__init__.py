"""CLI entry point for quality-gate; registers the subcommands."""

from typing import Optional

import typer

from ._common import console

app = typer.Typer(
    name="quality-gate",
    help="Quality Gate - run Python analyzers and decide pass/fail against thresholds",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        from .. import __version__

        console.print(f"[bold cyan]Quality Gate[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit(0)


@app.callback()
def _root(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """Run Python analyzers and decide pass/fail against thresholds."""


def main() -> None:
    app()


# Import subcommands to register them
from .run import run as _run  # noqa: F401, E402
from .check_config import check_config as _check_config  # noqa: F401, E402
from .adapters import adapters as _adapters  # noqa: F401, E402
from .trend import trend as _trend  # noqa: F401, E402
