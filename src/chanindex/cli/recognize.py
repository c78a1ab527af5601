"""chanindex recognize — OCR media that have no recognitions yet."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from chanindex.cancel import CancellationToken
from chanindex.cli.common import (
    build_recognition_pass,
    cancel_on_interrupt,
    console,
    load_settings,
    open_existing_db,
    require_tesseract,
    resolve_db_path,
)
from chanindex.cli.errors import warn_cancelled
from chanindex.cli.index import print_recognition_summary
from chanindex.db.repository import Repository


def recognize_cmd(
    channel_dir: Annotated[
        Path,
        typer.Argument(help="Channel backup directory the index was built from."),
    ],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Index database path (default: <data_dir>/<channel dir name>.db)."),
    ] = None,
    live: Annotated[
        bool,
        typer.Option("--live", help="Commit after every media item."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Debug logging."),
    ] = False,
) -> None:
    """Recognize text in photos and video frames that were not recognized yet."""
    cfg = load_settings(verbose)
    db_path = resolve_db_path(cfg, channel_dir, db)
    conn = open_existing_db(db_path, channel_dir)
    try:
        require_tesseract()
        repo = Repository(conn)
        pending = repo.count_media(unrecognized_only=True)
        if pending == 0:
            console.print("[dim]Nothing to recognize — all media already have recognitions.[/]")
            return

        console.print(f"\n[bold]→ {pending} media pending[/]")
        token = CancellationToken()
        with cancel_on_interrupt(token):
            stats = build_recognition_pass(repo, cfg, token, live=live).run()
        print_recognition_summary(stats)
        if stats.cancelled:
            console.print(warn_cancelled("Recognition"))
    finally:
        conn.close()
