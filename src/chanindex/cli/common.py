"""Helpers shared by the chanindex commands: config, database, OCR wiring, Ctrl-C."""

from __future__ import annotations

import signal
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import pytesseract
import typer
import yaml
from rich.console import Console

from chanindex.cancel import CancellationToken
from chanindex.cli.errors import err_config, err_no_db, err_tesseract_missing
from chanindex.config import ConfigError, IndexConfig, load_config
from chanindex.db.connection import Database
from chanindex.db.repository import Repository
from chanindex.db.schema import initialize
from chanindex.logging_setup import setup_logging
from chanindex.recognize.consensus import ConsensusRecognizer
from chanindex.recognize.engines import EnginePool
from chanindex.recognize.frames import FrameExtractor
from chanindex.recognize.runner import RecognitionPass

console = Console()


def load_settings(verbose: bool = False) -> IndexConfig:
    """Load config and configure logging; exit 1 on an invalid config."""
    try:
        cfg = load_config()
    except (ConfigError, yaml.YAMLError) as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    setup_logging(cfg.logging, verbose=verbose)
    return cfg


def resolve_db_path(cfg: IndexConfig, channel_dir: Path, db: Path | None) -> Path:
    return db if db is not None else cfg.storage.db_path_for(channel_dir)


def open_db(db_path: Path) -> sqlite3.Connection:
    conn = Database(db_path).connect()
    initialize(conn)
    return conn


def open_existing_db(db_path: Path, channel_dir: Path) -> sqlite3.Connection:
    """Open an index that must already exist (read-side commands)."""
    if not db_path.exists():
        console.print(err_no_db(str(db_path), str(channel_dir)))
        raise typer.Exit(1)
    return open_db(db_path)


def require_tesseract() -> None:
    try:
        pytesseract.get_tesseract_version()
    except pytesseract.TesseractNotFoundError as exc:
        console.print(err_tesseract_missing(str(exc)))
        raise typer.Exit(1) from exc


def build_recognition_pass(
    repo: Repository,
    cfg: IndexConfig,
    token: CancellationToken,
    live: bool = False,
) -> RecognitionPass:
    """Wire the OCR engine pool, frame extractor and consensus recognizer from *cfg*."""
    ocr = cfg.ocr
    pool = EnginePool.tesseract(
        ocr.languages,
        workers=ocr.workers,
        tessdata_dir=ocr.tessdata_dir,
        timeout=ocr.timeout,
    )
    extractor = FrameExtractor(
        ffmpeg=cfg.video.ffmpeg,
        ffprobe=cfg.video.ffprobe,
        frame_count=cfg.video.frame_count,
        token=token,
    )
    return RecognitionPass(
        repo,
        pool,
        extractor,
        recognizer=ConsensusRecognizer(ocr.threshold),
        chunk_size=ocr.live_chunk_size if live else ocr.chunk_size,
        token=token,
    )


@contextmanager
def cancel_on_interrupt(token: CancellationToken) -> Iterator[CancellationToken]:
    """Turn the first Ctrl-C into a cancellation request; a second one aborts."""

    def _handler(signum, frame):  # noqa: ARG001
        if token.cancelled:
            raise KeyboardInterrupt
        console.print("[yellow]Interrupt received, stopping after the current unit…[/]")
        token.cancel()

    try:
        previous = signal.signal(signal.SIGINT, _handler)
        installed = True
    except ValueError:
        # signal handlers can only be installed from the main thread
        previous, installed = None, False

    try:
        yield token
    finally:
        if installed:
            signal.signal(signal.SIGINT, previous if previous is not None else signal.SIG_DFL)
