"""chanindex rich error messages.

Every message names what went wrong and the command or setting that fixes it.

Usage:
    from chanindex.cli.errors import err_no_db
    console.print(err_no_db(path, channel_dir))
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape


def err_no_db(db_path: str, channel_dir: str) -> str:
    """No index database for this channel yet."""
    return (
        f"[red]Error:[/] No index database found at '{escape(db_path)}'.\n"
        f"  Run:  chanindex index {escape(channel_dir)}"
    )


def err_index_root(message: str) -> str:
    """Channel or discussion-group backup directory is missing or misnamed."""
    return (
        f"[red]Error:[/] {escape(message)}\n"
        "  Point chanindex at the backup folder itself, e.g.  chanindex index ./backup/mychannel_1234567890"
    )


def err_config(message: str) -> str:
    """chanindex.yaml / ~/.chanindex/config.yaml holds an invalid value."""
    return (
        f"[red]Error:[/] Invalid configuration: {escape(message)}\n"
        "  Fix chanindex.yaml (or ~/.chanindex/config.yaml) and run again."
    )


def err_tesseract_missing(detail: str) -> str:
    """Tesseract binary not found — OCR is not available."""
    return (
        f"[red]Error:[/] Tesseract is not available ({escape(detail)}).\n"
        "  Install tesseract and the language packs listed in ocr.languages,\n"
        "  or run:  chanindex index <dir> --skip-ocr"
    )


def err_bad_search_args(message: str) -> str:
    return f"[red]Error:[/] {escape(message)}"


def warn_no_results(prompt: str, min_length: int) -> str:
    """Nothing matched the prompt."""
    if len(prompt.strip()) < min_length:
        return (
            f"[yellow]No results:[/] prompt '{escape(prompt)}' is shorter than {min_length} characters."
        )
    return (
        f"[yellow]No results[/] for '{escape(prompt)}'.\n"
        "  Try  --mode text  or  --scope both, or a previous --page."
    )


def warn_cancelled(what: str) -> str:
    """Shown after Ctrl-C — committed work is kept."""
    return (
        f"[yellow]⚠[/] {what} cancelled. Everything committed so far is kept;\n"
        "  run the same command again to continue."
    )
