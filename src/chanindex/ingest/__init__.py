"""Metadata ingestion — fingerprint cache, item parsers, comment threading."""

from chanindex.ingest.base import ItemParser
from chanindex.ingest.comments import ChainIndex, CommentChain, CommentParser
from chanindex.ingest.engine import IngestStats, MetadataIngestor
from chanindex.ingest.metadata import MetadataError, MetadataRecord
from chanindex.ingest.posts import PostParser

__all__ = [
    "ChainIndex",
    "CommentChain",
    "CommentParser",
    "IngestStats",
    "ItemParser",
    "MetadataError",
    "MetadataIngestor",
    "MetadataRecord",
    "PostParser",
]
