"""Metadata file fingerprints: detect changed files without reparsing them."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from chanindex.db.models import FileFingerprint


class CacheState(str, Enum):
    NEW = "new"
    UNCHANGED = "unchanged"
    STALE = "stale"


def build_fingerprint(path: Path) -> FileFingerprint:
    """Stat *path* and return its fingerprint.

    Raises:
        OSError: If the file cannot be stat'ed.
    """
    st = path.stat()
    return FileFingerprint(path=str(path), size=st.st_size, last_write_ns=st.st_mtime_ns)


def classify(
    current: FileFingerprint,
    cached: FileFingerprint | None,
    trust_cache: bool = False,
) -> CacheState:
    """Compare a fresh fingerprint against the cached row for the same path.

    Args:
        current: Fingerprint of the file as it is on disk now.
        cached: Row from the metadata cache, or None if never ingested.
        trust_cache: Treat any cached row as unchanged (skip mismatch checks).
    """
    if cached is None:
        return CacheState.NEW
    if trust_cache or cached.matches(current):
        return CacheState.UNCHANGED
    return CacheState.STALE
