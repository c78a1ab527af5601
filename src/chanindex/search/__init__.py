"""Paged search over indexed posts and comments."""

from chanindex.search.service import (
    MIN_PROMPT_LENGTH,
    SearchHit,
    SearchMode,
    SearchPage,
    SearchScope,
    SearchService,
)

__all__ = [
    "MIN_PROMPT_LENGTH",
    "SearchHit",
    "SearchMode",
    "SearchPage",
    "SearchScope",
    "SearchService",
]
