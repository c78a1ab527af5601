"""Incremental metadata ingestion for a channel backup.

Backup layout (channel and optional discussion group alike):

  <root>/<day>/<item>/metadata*.json   one file per message of the item
  <root>/<day>/<item>/<file id>.<ext>  payload files named by numeric file id

One day directory is the unit of work: its items are batch-fetched, merged in
memory, written in a single transaction and then dropped. Metadata files are
fingerprinted (size, mtime) so unchanged files are never parsed twice.
Comments are ingested before posts so reply chains exist when posts are read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from chanindex.cancel import NEVER, CancellationToken, OperationCancelled
from chanindex.channel import IndexRootError
from chanindex.db.models import FileFingerprint, Item, Media
from chanindex.db.repository import Repository
from chanindex.ingest.base import ItemParser
from chanindex.ingest.comments import ChainIndex, CommentParser
from chanindex.ingest.fingerprint import CacheState, build_fingerprint, classify
from chanindex.ingest.metadata import (
    IGNORED_MEDIA_KINDS,
    MEDIA_KINDS,
    METADATA_PATTERN,
    MetadataError,
    MetadataRecord,
    payload_map,
    read_record,
)
from chanindex.ingest.posts import PostParser

logger = logging.getLogger(__name__)

_PROGRESS_EVERY_DAYS = 250


@dataclass
class IngestStats:
    """Counters for one ingestion pass."""

    days_processed: int = 0
    items_created: int = 0
    items_updated: int = 0
    media_created: int = 0
    cache_writes: int = 0
    files_skipped: int = 0
    dirs_skipped: int = 0
    cancelled: bool = False


@dataclass
class _DayBatch:
    """Writes staged for one day directory."""

    new_items: list[Item] = field(default_factory=list)
    updated_items: list[Item] = field(default_factory=list)
    new_fingerprints: list[FileFingerprint] = field(default_factory=list)
    stale_fingerprints: list[FileFingerprint] = field(default_factory=list)


class MetadataIngestor:
    """Walks day/item directories and keeps items, media and the cache in sync.

    Args:
        repo: Open repository; the ingestor commits once per day directory.
        trust_cache: Treat every cached metadata file as unchanged, even when
            its fingerprint differs.
        token: Cancellation token checked between day and item directories.
    """

    def __init__(
        self,
        repo: Repository,
        *,
        trust_cache: bool = False,
        token: CancellationToken = NEVER,
    ) -> None:
        self.repo = repo
        self.trust_cache = trust_cache
        self.token = token
        self.stats = IngestStats()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def ingest(self, channel_dir: Path, discussion_dir: Path | None = None) -> IngestStats:
        """Run one ingestion pass over the channel (and discussion group) backup.

        Raises:
            IndexRootError: If a backup directory does not exist.
        """
        _require_dir(channel_dir, "Channel")
        if discussion_dir is not None:
            _require_dir(discussion_dir, "Discussion group")

        self.stats = IngestStats()
        logger.info("Starting to parse metadata...")

        try:
            chains = ChainIndex([])
            if discussion_dir is not None:
                comment_parser = CommentParser()
                self._ingest_tree(discussion_dir, comment_parser)
                chains = comment_parser.build_chains()
                logger.info("Built %d comment chains", len(chains))

            self._ingest_tree(channel_dir, PostParser(chains))
        except OperationCancelled:
            self.repo.rollback()
            self.stats.cancelled = True
            logger.warning(
                "Ingestion cancelled after %d days; completed days are kept",
                self.stats.days_processed,
            )
            return self.stats

        logger.info(
            "Successfully parsed metadata, days parsed: %d, total cache writes: %d",
            self.stats.days_processed,
            self.stats.cache_writes,
        )
        return self.stats

    # ------------------------------------------------------------------
    # Directory walk
    # ------------------------------------------------------------------

    def _ingest_tree(self, root: Path, parser: ItemParser) -> None:
        for day_dir in _subdirs(root):
            self.token.raise_if_cancelled()
            self._ingest_day(day_dir, parser)

    def _ingest_day(self, day_dir: Path, parser: ItemParser) -> None:
        logger.debug("Starting to parse day %s", day_dir.name)

        try:
            item_dirs = _subdirs(day_dir)
        except OSError as exc:
            logger.error("Cannot list day directory %s, skipping: %s", day_dir, exc)
            self.stats.dirs_skipped += 1
            return

        existing = self.repo.get_items_by_dirs(parser.kind, [str(d) for d in item_dirs])
        batch = _DayBatch()

        for item_dir in item_dirs:
            self.token.raise_if_cancelled()
            try:
                self._ingest_item(item_dir, existing.get(str(item_dir)), parser, batch)
            except OSError as exc:
                logger.error("Cannot read item directory %s, skipping: %s", item_dir, exc)
                self.stats.dirs_skipped += 1

        try:
            self._flush(batch)
        except Exception:
            self.repo.rollback()
            raise
        self.repo.commit()

        logger.debug("Successfully parsed day %s", day_dir.name)
        self.stats.days_processed += 1
        if self.stats.days_processed % _PROGRESS_EVERY_DAYS == 0:
            logger.info("Parsed %d days, still going...", self.stats.days_processed)

    def _ingest_item(
        self,
        item_dir: Path,
        existing: Item | None,
        parser: ItemParser,
        batch: _DayBatch,
    ) -> None:
        logger.debug("Starting to parse item %s", item_dir.name)

        metadata_files = sorted(p for p in item_dir.glob(METADATA_PATTERN) if p.is_file())
        if not metadata_files:
            logger.error("Directory %s does not contain any metadata", item_dir)
            self.stats.dirs_skipped += 1
            return

        item = existing if existing is not None else Item(kind=parser.kind, dir_path=str(item_dir))
        payloads = payload_map(item_dir, set(metadata_files))
        cached = self.repo.get_fingerprints(str(p) for p in metadata_files)
        touched = False

        for metadata in metadata_files:
            try:
                fingerprint = build_fingerprint(metadata)
            except OSError as exc:
                logger.error("Failed to read file %s metadata, skipping: %s", metadata, exc)
                self.stats.files_skipped += 1
                continue

            state = classify(fingerprint, cached.get(str(metadata)), self.trust_cache)
            if state is CacheState.UNCHANGED:
                continue

            try:
                record = read_record(metadata)
            except MetadataError as exc:
                logger.error("Skipping metadata file: %s", exc)
                self.stats.files_skipped += 1
                continue

            self._merge(item, record, payloads)
            parser.parse_item(item, record)
            touched = True

            if state is CacheState.STALE:
                batch.stale_fingerprints.append(fingerprint)
                logger.warning("Cache mismatch at %s. Updating cache", metadata)
            else:
                batch.new_fingerprints.append(fingerprint)

        if touched:
            if existing is None:
                batch.new_items.append(item)
            else:
                batch.updated_items.append(item)

        logger.debug("Successfully parsed item %s", item_dir.name)

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def _merge(self, item: Item, record: MetadataRecord, payloads: dict[int, Path]) -> None:
        """Fold one record into *item*.

        Message id and timestamp keep the minimum seen (album messages share
        one item); text keeps the last non-empty value.
        """
        if item.timestamp is None:
            item.message_id = record.message_id
            item.timestamp = record.timestamp
        else:
            item.message_id = min(item.message_id, record.message_id)
            item.timestamp = min(item.timestamp, record.timestamp)

        if record.text:
            item.text = record.text

        media = self._resolve_media(record, payloads)
        if media is not None:
            item.media.append(media)

    def _resolve_media(self, record: MetadataRecord, payloads: dict[int, Path]) -> Media | None:
        descriptor = record.media
        if not descriptor:
            return None

        for key, media_type in MEDIA_KINDS:
            if key not in descriptor:
                continue
            try:
                file_id = int((descriptor[key] or {})["id"])
            except (KeyError, TypeError, ValueError):
                logger.error("Metadata %s has a %s without a usable id", record.path, key)
                return None

            payload = payloads.get(file_id)
            if payload is None:
                logger.error(
                    "Metadata %s references media %s, but there's no file with that name",
                    record.path,
                    file_id,
                )
                return None

            return Media(
                message_id=record.message_id,
                timestamp=record.timestamp,
                file_path=str(payload),
                type=media_type,
            )

        if not IGNORED_MEDIA_KINDS.intersection(descriptor):
            logger.warning(
                'Metadata %s: property "media" is not null, but contains neither "photo" nor "document"',
                record.path,
            )
        return None

    # ------------------------------------------------------------------
    # Flush
    # ------------------------------------------------------------------

    def _flush(self, batch: _DayBatch) -> None:
        for item in batch.new_items:
            self.repo.add_item(item)
            self.stats.items_created += 1
        for item in batch.updated_items:
            self.repo.update_item(item)
            self.stats.items_updated += 1

        for item in batch.new_items + batch.updated_items:
            for media in item.media:
                media.item_id = item.id
                if self.repo.add_media(media) is not None:
                    self.stats.media_created += 1

            if item.comments:
                comment_ids = [c.id for c in item.comments if c.id is not None]
                self.repo.attach_comments(item.id, comment_ids)
                item.has_comments = True
                item.comments.clear()

        for fingerprint in batch.new_fingerprints:
            self.repo.add_fingerprint(fingerprint)
        for fingerprint in batch.stale_fingerprints:
            self.repo.update_fingerprint(fingerprint)
        self.stats.cache_writes += len(batch.new_fingerprints) + len(batch.stale_fingerprints)


def _subdirs(directory: Path) -> list[Path]:
    return sorted(p for p in directory.iterdir() if p.is_dir())


def _require_dir(directory: Path, label: str) -> None:
    if not directory.is_dir():
        raise IndexRootError(f"{label} directory '{directory}' does not exist")
