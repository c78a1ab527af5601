"""chanindex status — row counts for one channel index."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.panel import Panel

from chanindex.cli.common import console, load_settings, open_existing_db, resolve_db_path
from chanindex.db.models import ItemKind
from chanindex.db.repository import Repository


def status_cmd(
    channel_dir: Annotated[
        Path,
        typer.Argument(help="Channel backup directory the index was built from."),
    ],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Index database path (default: <data_dir>/<channel dir name>.db)."),
    ] = None,
) -> None:
    """Show what the index holds and how much OCR work is pending."""
    cfg = load_settings()
    db_path = resolve_db_path(cfg, channel_dir, db)
    conn = open_existing_db(db_path, channel_dir)
    try:
        repo = Repository(conn)
        posts = repo.count_items(ItemKind.POST)
        comments = repo.count_items(ItemKind.COMMENT)
        media = repo.count_media()
        pending = repo.count_media(unrecognized_only=True)
        recognitions = repo.count_recognitions()
        cached = repo.count_fingerprints()
    finally:
        conn.close()

    size_mb = db_path.stat().st_size / (1024 * 1024)
    pending_style = "yellow" if pending else "green"
    lines = [
        f"Database:      {escape(str(db_path))} ({size_mb:.1f} MB)",
        f"Posts:         [bold]{posts:,}[/]",
        f"Comments:      [bold]{comments:,}[/]",
        f"Media:         [bold]{media:,}[/]",
        f"Recognitions:  [bold]{recognitions:,}[/]",
        f"OCR pending:   [{pending_style}]{pending:,}[/]",
        f"Cached files:  [dim]{cached:,}[/]",
    ]
    console.print(Panel("\n".join(lines), title=f"[bold]{escape(channel_dir.name)}[/]", expand=False))
