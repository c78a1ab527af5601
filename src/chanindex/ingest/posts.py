"""Post parser: attach previously built comment chains to channel posts."""

from __future__ import annotations

import logging

from chanindex.db.models import Item, ItemKind
from chanindex.ingest.base import ItemParser
from chanindex.ingest.comments import ChainIndex
from chanindex.ingest.metadata import MetadataRecord

logger = logging.getLogger(__name__)


class PostParser(ItemParser):
    """Stages the comment chain referenced by ``replies.max_id`` on a post.

    A post gets at most one chain: album posts are backed by several
    metadata files and only the first one that resolves attaches comments.
    """

    kind = ItemKind.POST

    def __init__(self, chains: ChainIndex) -> None:
        self._chains = chains

    def parse_item(self, item: Item, record: MetadataRecord) -> None:
        if item.has_comments or item.comments:
            return

        replies = record.raw.get("replies")
        if not isinstance(replies, dict):
            return

        if "max_id" not in replies:
            logger.warning("Post %s has replies, but does not have max_id", record.message_id)
            return

        max_id = replies["max_id"]
        if max_id is None:
            # Discussion enabled but nobody commented
            return

        try:
            max_id = int(max_id)
        except (TypeError, ValueError):
            logger.warning("Post %s has a non-numeric max_id %r", record.message_id, max_id)
            return

        chain = self._chains.find(max_id)
        if chain is None:
            logger.warning(
                "Post %s has max_id %s, but no comment chain with such comment was found",
                record.message_id,
                max_id,
            )
            return

        item.comments.extend(chain.unique_comments())
