"""chanindex CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from chanindex.cli.index import index_cmd
from chanindex.cli.recognize import recognize_cmd
from chanindex.cli.search import search_cmd
from chanindex.cli.status import status_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("chanindex")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"chanindex {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="chanindex",
    help=(
        "chanindex — searchable index of a channel backup.\n\n"
        "  chanindex index   Ingest metadata and OCR new media.\n"
        "  chanindex search  Find posts and comments by text or by text in their media."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """chanindex — searchable index of a channel backup."""


app.command("index")(index_cmd)
app.command("recognize")(recognize_cmd)
app.command("search")(search_cmd)
app.command("status")(status_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed chanindex version."""
    typer.echo(f"chanindex {_installed_version()}")


if __name__ == "__main__":
    app()
