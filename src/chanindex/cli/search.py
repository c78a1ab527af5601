"""chanindex search — print one page of ranked hits with permalinks."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from chanindex.channel import ChannelInfo, IndexRootError
from chanindex.cli.common import console, load_settings, open_existing_db, resolve_db_path
from chanindex.cli.errors import err_bad_search_args, err_index_root, warn_no_results
from chanindex.db.repository import Repository
from chanindex.search.service import MIN_PROMPT_LENGTH, SearchMode, SearchPage, SearchScope, SearchService

_SNIPPET_CHARS = 80


def search_cmd(
    channel_dir: Annotated[
        Path,
        typer.Argument(help="Channel backup directory the index was built from."),
    ],
    prompt: Annotated[
        str,
        typer.Argument(help="Text to look for (case-insensitive substring, at least 3 characters)."),
    ],
    discussion: Annotated[
        Path | None,
        typer.Option("--discussion", "-d", help="Discussion group directory, used for comment links."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Index database path (default: <data_dir>/<channel dir name>.db)."),
    ] = None,
    mode: Annotated[
        SearchMode,
        typer.Option("--mode", "-m", help="Search recognized media text or the items' own text."),
    ] = SearchMode.RECOGNITION,
    scope: Annotated[
        SearchScope,
        typer.Option("--scope", "-s", help="Which items to search."),
    ] = SearchScope.BOTH,
    page: Annotated[
        int,
        typer.Option("--page", "-p", min=1, help="1-based result page."),
    ] = 1,
    page_size: Annotated[
        int | None,
        typer.Option("--page-size", min=1, help="Hits per page (default: search.page_size)."),
    ] = None,
) -> None:
    """Search the index and print one page of results."""
    cfg = load_settings()

    try:
        channel = ChannelInfo.from_dirs(channel_dir, discussion)
    except IndexRootError as exc:
        console.print(err_index_root(str(exc)))
        raise typer.Exit(1) from exc

    count = page_size if page_size is not None else cfg.search.page_size
    offset = (page - 1) * count

    db_path = resolve_db_path(cfg, channel_dir, db)
    conn = open_existing_db(db_path, channel_dir)
    try:
        try:
            result = SearchService(Repository(conn)).search(prompt, offset, count, mode, scope)
        except ValueError as exc:
            console.print(err_bad_search_args(str(exc)))
            raise typer.Exit(1) from exc
    finally:
        conn.close()

    if not result.hits:
        console.print(warn_no_results(prompt, MIN_PROMPT_LENGTH))
        return

    _print_page(result, channel, page, mode)


def _print_page(result: SearchPage, channel: ChannelInfo, page: int, mode: SearchMode) -> None:
    table = Table(title=f"Page {page}", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Kind")
    table.add_column("Date", style="dim")
    if mode is SearchMode.RECOGNITION:
        table.add_column("Conf.", justify="right")
    table.add_column("Text")
    table.add_column("Link", overflow="fold")

    for rank, hit in enumerate(result.hits, start=result.offset + 1):
        item = hit.item
        date = item.timestamp.strftime("%Y-%m-%d %H:%M") if item.timestamp else ""
        link = channel.build_link(item) or "[dim](no link)[/]"
        row = [str(rank), item.kind.value, date]
        if mode is SearchMode.RECOGNITION:
            row.append(f"{hit.confidence:.2f}" if hit.confidence is not None else "")
        row.extend([escape(_snippet(item.text)), link])
        table.add_row(*row)

    console.print(table)
    if result.has_more:
        console.print(f"[dim]More results may follow:  --page {page + 1}[/]")


def _snippet(text: str) -> str:
    flat = " ".join(text.split())
    if len(flat) <= _SNIPPET_CHARS:
        return flat
    return flat[: _SNIPPET_CHARS - 1] + "…"
