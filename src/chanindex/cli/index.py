"""chanindex index — ingest a channel backup, then OCR its new media.

Ingestion is incremental: unchanged metadata files are skipped via the
fingerprint cache, and only media without recognitions are sent to OCR.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from chanindex.cancel import CancellationToken
from chanindex.channel import ChannelInfo, IndexRootError
from chanindex.cli.common import (
    build_recognition_pass,
    cancel_on_interrupt,
    console,
    load_settings,
    open_db,
    require_tesseract,
    resolve_db_path,
)
from chanindex.cli.errors import err_index_root, warn_cancelled
from chanindex.db.repository import Repository
from chanindex.ingest.engine import IngestStats, MetadataIngestor
from chanindex.recognize.runner import RecognitionStats


def index_cmd(
    channel_dir: Annotated[
        Path,
        typer.Argument(help="Channel backup directory, named <name>_<channel id>."),
    ],
    discussion: Annotated[
        Path | None,
        typer.Option("--discussion", "-d", help="Discussion group backup directory (comments)."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Index database path (default: <data_dir>/<channel dir name>.db)."),
    ] = None,
    skip_ocr: Annotated[
        bool,
        typer.Option("--skip-ocr", help="Only ingest metadata; do not recognize media."),
    ] = False,
    live: Annotated[
        bool,
        typer.Option("--live", help="Commit recognitions in small chunks (for a backup that is still growing)."),
    ] = False,
    trust_cache: Annotated[
        bool,
        typer.Option("--trust-cache", help="Treat every cached metadata file as unchanged."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log every day and item directory."),
    ] = False,
) -> None:
    """Index a channel backup (and its discussion group) into the search database."""
    cfg = load_settings(verbose)

    try:
        channel = ChannelInfo.from_dirs(channel_dir, discussion)
    except IndexRootError as exc:
        console.print(err_index_root(str(exc)))
        raise typer.Exit(1) from exc

    for directory in (channel_dir, discussion):
        if directory is not None and not directory.is_dir():
            console.print(err_index_root(f"Backup directory '{directory}' does not exist"))
            raise typer.Exit(1)

    if not skip_ocr:
        require_tesseract()

    db_path = resolve_db_path(cfg, channel_dir, db)
    console.print(
        f"\n[bold]→ {escape(str(channel_dir))}[/]  [dim](channel {channel.channel_id}, db {escape(str(db_path))})[/]"
    )

    token = CancellationToken()
    conn = open_db(db_path)
    repo = Repository(conn)
    try:
        with cancel_on_interrupt(token):
            ingest_stats = MetadataIngestor(repo, trust_cache=trust_cache, token=token).ingest(
                channel_dir, discussion
            )

            _print_ingest_summary(ingest_stats)
            if ingest_stats.cancelled:
                console.print(warn_cancelled("Indexing"))
                return

            if skip_ocr:
                console.print("  [dim]OCR skipped (--skip-ocr)[/]")
                return

            recognition_stats = build_recognition_pass(repo, cfg, token, live=live).run()
            print_recognition_summary(recognition_stats)
            if recognition_stats.cancelled:
                console.print(warn_cancelled("Recognition"))
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------


def _print_ingest_summary(stats: IngestStats) -> None:
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Days parsed", str(stats.days_processed))
    table.add_row("Items created", str(stats.items_created))
    table.add_row("Items updated", str(stats.items_updated))
    table.add_row("Media created", str(stats.media_created))
    table.add_row("Cache writes", str(stats.cache_writes))
    if stats.files_skipped or stats.dirs_skipped:
        table.add_row(
            "[yellow]Skipped[/]",
            f"{stats.files_skipped} files, {stats.dirs_skipped} dirs",
        )
    console.print("  [green]✓[/] Metadata ingested")
    console.print(table)


def print_recognition_summary(stats: RecognitionStats) -> None:
    console.print(
        f"  [green]✓[/] {stats.media_processed} media recognized, "
        f"{stats.recognitions_written} recognitions written"
    )
    if stats.media_skipped:
        console.print(f"  [yellow]↻ {stats.media_skipped} media left for the next run[/]")
