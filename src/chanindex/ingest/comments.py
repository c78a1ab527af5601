"""Comment threading: rebuild reply chains from flat discussion-group comments.

Edge classification uses the record's ``reply_to`` object:

  no reply_to                 → orphan chain (ORPHAN_ROOT_ID)
  top == 0 and msg != 0       → direct reply to a post, root = msg
  top != 0 and msg != 0       → nested reply, root = top
  anything else               → warning, edge dropped

A missing or null id counts as 0.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from chanindex.db.models import Item, ItemKind
from chanindex.ingest.base import ItemParser
from chanindex.ingest.metadata import MetadataRecord

logger = logging.getLogger(__name__)

ORPHAN_ROOT_ID = -1


@dataclass(frozen=True)
class CommentChain:
    """A reconstructed reply thread: root message id → {comment message id → comment}."""

    root_id: int
    comments: Mapping[int, Item]

    def unique_comments(self) -> list[Item]:
        """Comments of the chain, each item once (album comments span several ids)."""
        seen: set[int] = set()
        result: list[Item] = []
        for comment in self.comments.values():
            if id(comment) not in seen:
                seen.add(id(comment))
                result.append(comment)
        return result


class ChainIndex:
    """Lookup of the chain containing a given comment id, built once per pass."""

    def __init__(self, chains: list[CommentChain]) -> None:
        self.chains = chains
        self._by_comment: dict[int, CommentChain] = {}
        for chain in chains:
            for comment_id in chain.comments:
                self._by_comment.setdefault(comment_id, chain)

    def __len__(self) -> int:
        return len(self.chains)

    def find(self, comment_id: int) -> CommentChain | None:
        return self._by_comment.get(comment_id)


class CommentParser(ItemParser):
    """Records reply-graph edges for every parsed comment."""

    kind = ItemKind.COMMENT

    def __init__(self) -> None:
        self._chains: dict[int, dict[int, Item]] = {}

    def parse_item(self, item: Item, record: MetadataRecord) -> None:
        root_id = _root_id(record)
        if root_id is not None:
            self.add_comment(root_id, record.message_id, item)

    def add_comment(self, root_id: int, comment_id: int, comment: Item) -> None:
        """Insert *comment* into chain *root_id*; re-inserting an id is a no-op."""
        chain = self._chains.setdefault(root_id, {})
        chain.setdefault(comment_id, comment)

    def build_chains(self) -> ChainIndex:
        return ChainIndex(
            [CommentChain(root_id, dict(comments)) for root_id, comments in self._chains.items()]
        )


def _root_id(record: MetadataRecord) -> int | None:
    reply_to: Any = record.raw.get("reply_to")
    if not isinstance(reply_to, dict):
        # Plain message in the discussion group
        return ORPHAN_ROOT_ID

    if "reply_to_top_id" not in reply_to and "reply_to_msg_id" not in reply_to:
        logger.warning(
            "Comment %s has reply_to, but neither reply_to_top_id nor reply_to_msg_id",
            record.message_id,
        )
        return None

    try:
        top_id = int(reply_to.get("reply_to_top_id") or 0)
        msg_id = int(reply_to.get("reply_to_msg_id") or 0)
    except (TypeError, ValueError):
        logger.warning("Comment %s has a non-numeric reply_to id", record.message_id)
        return None

    if top_id == 0 and msg_id != 0:
        return msg_id
    if top_id != 0 and msg_id != 0:
        return top_id

    logger.warning(
        "Comment %s has reply_to, but is neither a top comment nor a reply to a comment",
        record.message_id,
    )
    return None
