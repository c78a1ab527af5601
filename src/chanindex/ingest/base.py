"""Base interface for item-kind parsers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from chanindex.db.models import Item, ItemKind
from chanindex.ingest.metadata import MetadataRecord


class ItemParser(ABC):
    """Kind-specific step run after the core fields of a record are merged.

    Subclasses set ``kind`` and implement ``parse_item()``. The ingestion
    engine only hands a parser items of its own kind.
    """

    kind: ItemKind

    @abstractmethod
    def parse_item(self, item: Item, record: MetadataRecord) -> None:
        """Apply kind-specific fields of *record* to *item*.

        Args:
            item: The item being built or updated for the record's directory.
            record: The parsed metadata record.
        """
