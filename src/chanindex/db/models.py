"""Domain models for the channel index database layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ItemKind(str, Enum):
    """Item variant tag: a channel post or a discussion-group comment."""

    POST = "post"
    COMMENT = "comment"


class MediaType(str, Enum):
    PHOTO = "photo"
    DOCUMENT = "document"


@dataclass
class Media:
    message_id: int
    timestamp: datetime
    file_path: str
    type: MediaType
    item_id: int | None = None
    id: int | None = None  # set after insert


@dataclass
class Recognition:
    media_id: int
    text: str
    confidence: float
    id: int | None = None


@dataclass
class Item:
    """A Post or a Comment, distinguished by *kind*.

    Attributes:
        kind: Variant tag.
        dir_path: Item directory inside the backup; globally unique.
        message_id: Smallest source message id seen across the item's metadata files.
        timestamp: Earliest message timestamp (UTC).
        text: Last non-empty message text parsed for the item.
        post_id: Owning post (comments only).
        media: Media attached during the current pass, or loaded on request.
        comments: Comments staged for attachment to this post.
        has_comments: True when the post already owns comments in the database.
    """

    kind: ItemKind
    dir_path: str
    message_id: int = 0
    timestamp: datetime | None = None
    text: str = ""
    post_id: int | None = None
    id: int | None = None
    media: list[Media] = field(default_factory=list)
    comments: list[Item] = field(default_factory=list)
    has_comments: bool = False

    @property
    def is_album(self) -> bool:
        return len(self.media) > 1

    @property
    def is_text_only(self) -> bool:
        return not self.media


@dataclass(frozen=True)
class FileFingerprint:
    """Cache row for one metadata file: (size, last-write time) keyed by path."""

    path: str
    size: int
    last_write_ns: int
    id: int | None = field(default=None, compare=False)

    def matches(self, other: FileFingerprint) -> bool:
        """True when *other* describes the same file content state."""
        return (
            self.path == other.path
            and self.size == other.size
            and self.last_write_ns == other.last_write_ns
        )


# ------------------------------------------------------------------
# Timestamp helpers
# ------------------------------------------------------------------


def to_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime (naive values are assumed UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Serialise a timestamp so that string order equals chronological order."""
    return to_utc(value).isoformat(timespec="seconds")


def parse_timestamp(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return to_utc(datetime.fromisoformat(value))
