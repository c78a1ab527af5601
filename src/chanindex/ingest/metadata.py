"""Reading one exported ``metadata*.json`` message record."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from chanindex.db.models import MediaType, parse_timestamp

METADATA_PATTERN = "metadata*.json"

# Message ids are stored as SQLite INTEGER (signed 64-bit).
_MAX_MESSAGE_ID = 2**63 - 1

# Media descriptor keys that map to a payload file.
MEDIA_KINDS: tuple[tuple[str, MediaType], ...] = (
    ("photo", MediaType.PHOTO),
    ("document", MediaType.DOCUMENT),
)
# Descriptor keys that never carry an indexable payload.
IGNORED_MEDIA_KINDS: frozenset[str] = frozenset(["webpage", "poll", "extended_media"])


class MetadataError(ValueError):
    """Raised when a metadata file is malformed or lacks a required field."""


@dataclass
class MetadataRecord:
    """The fields of one exported message that ingestion cares about.

    Attributes:
        path: Metadata file the record was read from.
        message_id: Source message id.
        timestamp: Message date (UTC).
        text: Message text ('' when absent).
        media: Raw media descriptor, or None.
        raw: The whole decoded JSON object, for item-kind parsers.
    """

    path: Path
    message_id: int
    timestamp: datetime
    text: str
    media: dict[str, Any] | None = None
    raw: dict[str, Any] = field(default_factory=dict)


def read_record(path: Path) -> MetadataRecord:
    """Parse *path* into a MetadataRecord.

    Raises:
        MetadataError: On unreadable or malformed JSON, or a missing/invalid
            ``id``, ``date`` or ``message`` field.
    """
    try:
        with path.open("rb") as fh:
            raw = json.load(fh)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MetadataError(f"Cannot parse '{path}': {exc}") from exc

    if not isinstance(raw, dict):
        raise MetadataError(f"'{path}' does not contain a JSON object")

    missing = [key for key in ("id", "date", "message") if key not in raw]
    if missing:
        raise MetadataError(f"'{path}' is missing required field(s): {', '.join(missing)}")

    try:
        message_id = int(raw["id"])
        timestamp = parse_timestamp(str(raw["date"]))
    except (TypeError, ValueError) as exc:
        raise MetadataError(f"'{path}' has an invalid id or date: {exc}") from exc

    if not -_MAX_MESSAGE_ID - 1 <= message_id <= _MAX_MESSAGE_ID:
        raise MetadataError(f"'{path}' has an out-of-range id {message_id}")

    text = raw["message"]
    if text is not None and not isinstance(text, str):
        raise MetadataError(f"'{path}' has a non-string message")

    media = raw.get("media")
    if media is not None and not isinstance(media, dict):
        raise MetadataError(f"'{path}' has a non-object media descriptor")

    return MetadataRecord(
        path=path,
        message_id=message_id,
        timestamp=timestamp,
        text=text or "",
        media=media or None,
        raw=raw,
    )


def payload_map(item_dir: Path, metadata_files: set[Path]) -> dict[int, Path]:
    """Map numeric file ids (payload file stems) to payload paths.

    Files whose stem is not an integer are not payloads and are left out.
    """
    payloads: dict[int, Path] = {}
    for entry in item_dir.iterdir():
        if not entry.is_file() or entry in metadata_files:
            continue
        try:
            payloads[int(entry.stem)] = entry
        except ValueError:
            continue
    return payloads
