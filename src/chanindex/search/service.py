"""Search over ingested items: own text or OCR recognitions of attached media."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from chanindex.db.models import Item, ItemKind
from chanindex.db.repository import Repository

logger = logging.getLogger(__name__)

# Shorter prompts match almost everything; they return an empty page.
MIN_PROMPT_LENGTH = 3


class SearchMode(str, Enum):
    TEXT = "text"
    RECOGNITION = "recognition"


class SearchScope(str, Enum):
    POST = "post"
    COMMENT = "comment"
    BOTH = "both"

    @property
    def kinds(self) -> tuple[ItemKind, ...]:
        if self is SearchScope.POST:
            return (ItemKind.POST,)
        if self is SearchScope.COMMENT:
            return (ItemKind.COMMENT,)
        return (ItemKind.POST, ItemKind.COMMENT)


@dataclass
class SearchHit:
    """One ranked result.

    Attributes:
        item: The matching post or comment (without media or comments loaded).
        confidence: Best matching recognition confidence in recognition mode;
            None in text mode.
    """

    item: Item
    confidence: float | None = None


@dataclass
class SearchPage:
    hits: list[SearchHit] = field(default_factory=list)
    offset: int = 0
    count: int = 0

    def __len__(self) -> int:
        return len(self.hits)

    @property
    def has_more(self) -> bool:
        """True when the page is full, so the next offset may yield more hits."""
        return self.count > 0 and len(self.hits) == self.count


class SearchService:
    """Paged, case-insensitive substring search over one channel's store."""

    def __init__(self, repo: Repository) -> None:
        self.repo = repo

    def search(
        self,
        prompt: str,
        offset: int = 0,
        count: int = 10,
        mode: SearchMode = SearchMode.RECOGNITION,
        scope: SearchScope = SearchScope.BOTH,
    ) -> SearchPage:
        """Return up to *count* hits after skipping *offset* ranked hits.

        Recognition mode ranks items by their best matching recognition
        confidence, then newest first; an item appears once no matter how
        many of its recognitions match. Text mode ranks newest first.

        Raises:
            ValueError: If *prompt* is None, or *offset* or *count* is negative.
        """
        if prompt is None:
            raise ValueError("prompt must not be None")
        if offset < 0:
            raise ValueError(f"offset must be >= 0, got {offset}")
        if count < 0:
            raise ValueError(f"count must be >= 0, got {count}")

        needle = prompt.strip().lower()
        page = SearchPage(offset=offset, count=count)
        if len(needle) < MIN_PROMPT_LENGTH or count == 0:
            logger.debug("Prompt %r too short or empty page requested", prompt)
            return page

        kinds = scope.kinds
        if mode is SearchMode.TEXT:
            items = self.repo.search_text(needle, kinds, offset, count)
            page.hits = [SearchHit(item=item) for item in items]
        else:
            rows = self.repo.search_recognitions(needle, kinds, offset, count)
            page.hits = [SearchHit(item=item, confidence=conf) for item, conf in rows]

        logger.debug(
            "Search %r (%s, %s) offset=%d count=%d -> %d hits",
            needle, mode.value, scope.value, offset, count, len(page.hits),
        )
        return page
