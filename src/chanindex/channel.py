"""Channel identity parsed from backup directory names, and permalinks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from chanindex.db.models import Item, ItemKind

logger = logging.getLogger(__name__)

_LINK_BASE = "https://t.me/c"


class IndexRootError(FileNotFoundError):
    """Raised when the channel or discussion-group backup directory is unusable."""


@dataclass(frozen=True)
class ChannelInfo:
    """Ids needed to render permalinks.

    Attributes:
        channel_id: Numeric channel id, parsed from ``<name>_<id>``.
        discussion_group_id: Numeric discussion group id, or None if unknown.
    """

    channel_id: int
    discussion_group_id: int | None = None

    @classmethod
    def from_dirs(cls, channel_dir: Path, discussion_dir: Path | None = None) -> ChannelInfo:
        """Parse ids from backup directory names.

        Raises:
            IndexRootError: If the channel directory name has no numeric id suffix.
        """
        channel_id = _parse_dir_id(channel_dir)
        if channel_id is None:
            raise IndexRootError(
                f"Cannot parse a channel id from '{channel_dir.name}' "
                "(expected '<name>_<numeric id>')"
            )

        discussion_group_id = None
        if discussion_dir is not None:
            discussion_group_id = _parse_dir_id(discussion_dir)
            if discussion_group_id is None:
                logger.warning(
                    "'%s' is not a valid discussion group folder name, comment links disabled",
                    discussion_dir.name,
                )

        return cls(channel_id=channel_id, discussion_group_id=discussion_group_id)

    def build_link(self, item: Item) -> str | None:
        """Return the public permalink of *item*, or None if its chat id is unknown."""
        if item.kind is ItemKind.POST:
            return f"{_LINK_BASE}/{self.channel_id}/{item.message_id}"
        if self.discussion_group_id is None:
            return None
        return f"{_LINK_BASE}/{self.discussion_group_id}/{item.message_id}"


def _parse_dir_id(directory: Path) -> int | None:
    name = Path(str(directory).rstrip("/\\")).name
    _, sep, suffix = name.partition("_")
    if not sep:
        return None
    try:
        return int(suffix)
    except ValueError:
        return None
