"""Repository pattern for all channel index database operations.

Single interface for: items (posts + comments), media, recognitions, the
metadata fingerprint cache, and the two search queries.

Write methods do NOT commit. Callers group writes into one processing unit
(a day directory during ingestion, a chunk during recognition) and call
``commit()`` once the unit is complete, or ``rollback()`` to discard it.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable, Iterator, Sequence

from chanindex.db.models import (
    FileFingerprint,
    Item,
    ItemKind,
    Media,
    MediaType,
    Recognition,
    format_timestamp,
    parse_timestamp,
)

# Stay well below SQLITE_MAX_VARIABLE_NUMBER on old builds.
_MAX_PARAMS = 500

_ITEM_COLUMNS = "i.id, i.kind, i.dir_path, i.message_id, i.timestamp, i.text, i.post_id"


class Repository:
    """Data access layer for all channel index entities.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see chanindex.db.schema.initialize).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def commit(self) -> None:
        """Flush the current processing unit."""
        self._conn.commit()

    def rollback(self) -> None:
        """Discard all writes since the last commit."""
        self._conn.rollback()

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def add_item(self, item: Item) -> int:
        """Insert *item*, set ``item.id`` and return it."""
        cur = self._conn.execute(
            """
            INSERT INTO items (kind, dir_path, message_id, timestamp, text, post_id)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                item.kind.value,
                item.dir_path,
                item.message_id,
                format_timestamp(item.timestamp),
                item.text,
                item.post_id,
            ),
        )
        item.id = cur.lastrowid
        return item.id

    def update_item(self, item: Item) -> None:
        """Write back the merged core fields of an existing item."""
        self._conn.execute(
            "UPDATE items SET message_id = ?, timestamp = ?, text = ? WHERE id = ?",
            (item.message_id, format_timestamp(item.timestamp), item.text, item.id),
        )

    def get_item(self, item_id: int) -> Item | None:
        row = self._conn.execute(
            f"SELECT {_ITEM_COLUMNS} FROM items i WHERE i.id = ?", (item_id,)
        ).fetchone()
        return _row_to_item(row) if row else None

    def get_item_by_dir(self, dir_path: str, with_media: bool = False) -> Item | None:
        """Return the item stored for *dir_path*, or None.

        Args:
            dir_path: Item directory path (unique key).
            with_media: Also load the item's media rows into ``item.media``.
        """
        row = self._conn.execute(
            f"SELECT {_ITEM_COLUMNS} FROM items i WHERE i.dir_path = ?", (dir_path,)
        ).fetchone()
        if row is None:
            return None
        item = _row_to_item(row)
        if with_media:
            item.media = self.list_media(item.id)
        return item

    def get_items_by_dirs(self, kind: ItemKind, dir_paths: Iterable[str]) -> dict[str, Item]:
        """Batch-fetch existing items of *kind* keyed by directory path.

        ``has_comments`` is populated for posts so album re-parses do not
        attach the same chain twice.
        """
        result: dict[str, Item] = {}
        for batch in _chunked(list(dir_paths)):
            placeholders = ",".join("?" * len(batch))
            rows = self._conn.execute(
                f"""
                SELECT {_ITEM_COLUMNS},
                       EXISTS (SELECT 1 FROM items c WHERE c.post_id = i.id) AS has_comments
                FROM items i
                WHERE i.kind = ? AND i.dir_path IN ({placeholders})
                """,
                (kind.value, *batch),
            ).fetchall()
            for row in rows:
                item = _row_to_item(row)
                item.has_comments = bool(row["has_comments"])
                result[item.dir_path] = item
        return result

    def attach_comments(self, post_id: int, comment_ids: Iterable[int]) -> None:
        """Make every comment in *comment_ids* a child of *post_id*."""
        ids = list(comment_ids)
        for batch in _chunked(ids):
            placeholders = ",".join("?" * len(batch))
            self._conn.execute(
                f"UPDATE items SET post_id = ? WHERE kind = 'comment' AND id IN ({placeholders})",
                (post_id, *batch),
            )

    def list_comments(self, post_id: int) -> list[Item]:
        rows = self._conn.execute(
            f"SELECT {_ITEM_COLUMNS} FROM items i WHERE i.post_id = ? ORDER BY i.timestamp",
            (post_id,),
        ).fetchall()
        return [_row_to_item(r) for r in rows]

    def count_items(self, kind: ItemKind | None = None) -> int:
        if kind is None:
            return self._conn.execute("SELECT COUNT(*) FROM items").fetchone()[0]
        return self._conn.execute(
            "SELECT COUNT(*) FROM items WHERE kind = ?", (kind.value,)
        ).fetchone()[0]

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    def add_media(self, media: Media) -> int | None:
        """Insert *media* unless the same file is already attached to the item.

        Returns:
            The new rowid, or None when the row already existed.
        """
        cur = self._conn.execute(
            """
            INSERT OR IGNORE INTO media (item_id, message_id, timestamp, file_path, type)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                media.item_id,
                media.message_id,
                format_timestamp(media.timestamp),
                media.file_path,
                media.type.value,
            ),
        )
        if cur.rowcount == 0:
            return None
        media.id = cur.lastrowid
        return media.id

    def list_media(self, item_id: int) -> list[Media]:
        rows = self._conn.execute(
            "SELECT id, item_id, message_id, timestamp, file_path, type FROM media "
            "WHERE item_id = ? ORDER BY id",
            (item_id,),
        ).fetchall()
        return [_row_to_media(r) for r in rows]

    def list_unrecognized_media(self, after_id: int = 0, limit: int = 50) -> list[Media]:
        """Return up to *limit* media with no recognitions and ``id > after_id``.

        Keyset pagination: callers pass the last id they processed so media
        left unrecognized (e.g. zero extracted frames) are not revisited in
        the same pass.
        """
        rows = self._conn.execute(
            """
            SELECT m.id, m.item_id, m.message_id, m.timestamp, m.file_path, m.type
            FROM media m
            WHERE m.id > ?
              AND NOT EXISTS (SELECT 1 FROM recognitions r WHERE r.media_id = m.id)
            ORDER BY m.id
            LIMIT ?
            """,
            (after_id, limit),
        ).fetchall()
        return [_row_to_media(r) for r in rows]

    def count_media(self, unrecognized_only: bool = False) -> int:
        if unrecognized_only:
            return self._conn.execute(
                "SELECT COUNT(*) FROM media m "
                "WHERE NOT EXISTS (SELECT 1 FROM recognitions r WHERE r.media_id = m.id)"
            ).fetchone()[0]
        return self._conn.execute("SELECT COUNT(*) FROM media").fetchone()[0]

    # ------------------------------------------------------------------
    # Recognitions
    # ------------------------------------------------------------------

    def add_recognition(self, recognition: Recognition) -> int:
        cur = self._conn.execute(
            "INSERT INTO recognitions (media_id, text, confidence) VALUES (?, ?, ?)",
            (recognition.media_id, recognition.text, recognition.confidence),
        )
        recognition.id = cur.lastrowid
        return recognition.id

    def list_recognitions(self, media_id: int) -> list[Recognition]:
        rows = self._conn.execute(
            "SELECT id, media_id, text, confidence FROM recognitions WHERE media_id = ? ORDER BY id",
            (media_id,),
        ).fetchall()
        return [
            Recognition(id=r["id"], media_id=r["media_id"], text=r["text"], confidence=r["confidence"])
            for r in rows
        ]

    def count_recognitions(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM recognitions").fetchone()[0]

    # ------------------------------------------------------------------
    # Metadata fingerprint cache
    # ------------------------------------------------------------------

    def get_fingerprints(self, paths: Iterable[str]) -> dict[str, FileFingerprint]:
        """Batch-fetch cache rows for *paths*, keyed by path."""
        result: dict[str, FileFingerprint] = {}
        for batch in _chunked(list(paths)):
            placeholders = ",".join("?" * len(batch))
            rows = self._conn.execute(
                f"SELECT id, path, size, last_write_ns FROM metadata_cache WHERE path IN ({placeholders})",
                batch,
            ).fetchall()
            for r in rows:
                result[r["path"]] = FileFingerprint(
                    id=r["id"], path=r["path"], size=r["size"], last_write_ns=r["last_write_ns"]
                )
        return result

    def add_fingerprint(self, fingerprint: FileFingerprint) -> None:
        self._conn.execute(
            "INSERT INTO metadata_cache (path, size, last_write_ns) VALUES (?, ?, ?)",
            (fingerprint.path, fingerprint.size, fingerprint.last_write_ns),
        )

    def update_fingerprint(self, fingerprint: FileFingerprint) -> None:
        """Overwrite size and last-write time of the row keyed by ``fingerprint.path``."""
        self._conn.execute(
            "UPDATE metadata_cache SET size = ?, last_write_ns = ? WHERE path = ?",
            (fingerprint.size, fingerprint.last_write_ns, fingerprint.path),
        )

    def count_fingerprints(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM metadata_cache").fetchone()[0]

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search_text(
        self, prompt: str, kinds: Sequence[ItemKind], offset: int, limit: int
    ) -> list[Item]:
        """Items whose own text contains *prompt* (case-insensitive), newest first.

        Args:
            prompt: Already lower-cased search string.
            kinds: Item variants to include.
            offset: Number of ranked rows to skip.
            limit: Maximum rows to return.
        """
        placeholders = ",".join("?" * len(kinds))
        rows = self._conn.execute(
            f"""
            SELECT {_ITEM_COLUMNS}
            FROM items i
            WHERE i.kind IN ({placeholders})
              AND instr(ulower(i.text), ?) > 0
            ORDER BY i.timestamp DESC, i.id DESC
            LIMIT ? OFFSET ?
            """,
            (*(k.value for k in kinds), prompt, limit, offset),
        ).fetchall()
        return [_row_to_item(r) for r in rows]

    def search_recognitions(
        self, prompt: str, kinds: Sequence[ItemKind], offset: int, limit: int
    ) -> list[tuple[Item, float]]:
        """Items with a matching recognition, one row per item.

        Ranked by the item's best matching recognition confidence, then by
        timestamp (newest first). Returns (item, best confidence) pairs.
        """
        placeholders = ",".join("?" * len(kinds))
        rows = self._conn.execute(
            f"""
            SELECT {_ITEM_COLUMNS}, MAX(r.confidence) AS best_confidence
            FROM items i
            JOIN media m ON m.item_id = i.id
            JOIN recognitions r ON r.media_id = m.id
            WHERE i.kind IN ({placeholders})
              AND instr(r.text, ?) > 0
            GROUP BY i.id
            ORDER BY best_confidence DESC, i.timestamp DESC, i.id DESC
            LIMIT ? OFFSET ?
            """,
            (*(k.value for k in kinds), prompt, limit, offset),
        ).fetchall()
        return [(_row_to_item(r), r["best_confidence"]) for r in rows]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _chunked(values: list, size: int = _MAX_PARAMS) -> Iterator[list]:
    for start in range(0, len(values), size):
        yield values[start : start + size]


def _row_to_item(row: sqlite3.Row) -> Item:
    return Item(
        id=row["id"],
        kind=ItemKind(row["kind"]),
        dir_path=row["dir_path"],
        message_id=row["message_id"],
        timestamp=parse_timestamp(row["timestamp"]),
        text=row["text"],
        post_id=row["post_id"],
    )


def _row_to_media(row: sqlite3.Row) -> Media:
    return Media(
        id=row["id"],
        item_id=row["item_id"],
        message_id=row["message_id"],
        timestamp=parse_timestamp(row["timestamp"]),
        file_path=row["file_path"],
        type=MediaType(row["type"]),
    )
