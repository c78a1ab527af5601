"""Tests for the search/ranking service."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from chanindex.db.models import Item, ItemKind, Media, MediaType, Recognition
from chanindex.search.service import SearchMode, SearchScope, SearchService

T0 = datetime(2023, 5, 1, tzinfo=timezone.utc)


def _item(repo, name: str, kind=ItemKind.POST, text: str = "", days: int = 0) -> Item:
    item = Item(kind=kind, dir_path=f"/b/{name}", message_id=days + 1, timestamp=T0 + timedelta(days=days), text=text)
    repo.add_item(item)
    return item


def _recognized(repo, item: Item, *recognitions: tuple[str, float]) -> None:
    media = Media(
        message_id=item.message_id,
        timestamp=item.timestamp,
        file_path=f"{item.dir_path}/{len(repo.list_media(item.id))}.jpg",
        type=MediaType.PHOTO,
        item_id=item.id,
    )
    repo.add_media(media)
    for text, confidence in recognitions:
        repo.add_recognition(Recognition(media_id=media.id, text=text, confidence=confidence))


@pytest.fixture
def service(repo):
    return SearchService(repo)


# ---------------------------------------------------------------------------
# Recognition mode
# ---------------------------------------------------------------------------


def test_ranked_by_confidence(repo, service):
    low = _item(repo, "low", days=5)
    high = _item(repo, "high", days=0)
    _recognized(repo, low, ("the cat sat", 0.6))
    _recognized(repo, high, ("a cat", 0.9))

    page = service.search("cat", 0, 10, SearchMode.RECOGNITION, SearchScope.BOTH)

    assert [h.item.id for h in page.hits] == [high.id, low.id]
    assert [h.confidence for h in page.hits] == [pytest.approx(0.9), pytest.approx(0.6)]


def test_equal_confidence_newest_first(repo, service):
    old = _item(repo, "old", days=0)
    new = _item(repo, "new", days=3)
    _recognized(repo, old, ("cat", 0.7))
    _recognized(repo, new, ("cat", 0.7))

    page = service.search("cat", 0, 10)

    assert [h.item.id for h in page.hits] == [new.id, old.id]


def test_item_listed_once_with_best_confidence(repo, service):
    item = _item(repo, "album")
    _recognized(repo, item, ("cat one", 0.3))
    _recognized(repo, item, ("cat two", 0.8))

    page = service.search("cat", 0, 10)

    assert len(page) == 1
    assert page.hits[0].confidence == pytest.approx(0.8)


def test_prompt_is_trimmed_and_lowered(repo, service):
    item = _item(repo, "p")
    _recognized(repo, item, ("stored lowercase", 0.5))

    page = service.search("  LowerCase ", 0, 10)

    assert [h.item.id for h in page.hits] == [item.id]


# ---------------------------------------------------------------------------
# Text mode
# ---------------------------------------------------------------------------


def test_text_mode_newest_first(repo, service):
    a = _item(repo, "a", text="Meeting at noon", days=0)
    b = _item(repo, "b", text="another MEETING", days=2)
    _item(repo, "c", text="unrelated", days=4)

    page = service.search("meeting", 0, 10, SearchMode.TEXT)

    assert [h.item.id for h in page.hits] == [b.id, a.id]
    assert all(h.confidence is None for h in page.hits)


def test_text_mode_unicode_case_insensitive(repo, service):
    item = _item(repo, "ru", text="Съезд ПАРТИИ")
    page = service.search("партии", 0, 10, SearchMode.TEXT)
    assert [h.item.id for h in page.hits] == [item.id]


# ---------------------------------------------------------------------------
# Scope
# ---------------------------------------------------------------------------


def test_scope_filters_kind(repo, service):
    post = _item(repo, "post", text="hello there")
    comment = _item(repo, "comment", kind=ItemKind.COMMENT, text="hello back")

    posts = service.search("hello", 0, 10, SearchMode.TEXT, SearchScope.POST)
    comments = service.search("hello", 0, 10, SearchMode.TEXT, SearchScope.COMMENT)
    both = service.search("hello", 0, 10, SearchMode.TEXT, SearchScope.BOTH)

    assert [h.item.id for h in posts.hits] == [post.id]
    assert [h.item.id for h in comments.hits] == [comment.id]
    assert len(both) == 2


# ---------------------------------------------------------------------------
# Paging and guards
# ---------------------------------------------------------------------------


def test_pagination(repo, service):
    items = [_item(repo, f"i{n}", text="needle", days=n) for n in range(20)]
    newest_first = [i.id for i in reversed(items)]

    page = service.search("needle", 10, 5, SearchMode.TEXT)

    assert [h.item.id for h in page.hits] == newest_first[10:15]
    assert page.offset == 10
    assert page.has_more


def test_short_prompt_returns_empty_page(repo, service):
    item = _item(repo, "x", text="ab ab ab")
    _recognized(repo, item, ("ab", 0.9))

    assert service.search("ab", 0, 10).hits == []
    assert service.search("  ab  ", 0, 10, SearchMode.TEXT).hits == []


def test_zero_count_returns_empty_page(repo, service):
    _item(repo, "x", text="needle")
    assert service.search("needle", 0, 0, SearchMode.TEXT).hits == []


def test_invalid_arguments(service):
    with pytest.raises(ValueError):
        service.search(None, 0, 10)
    with pytest.raises(ValueError):
        service.search("cat", -1, 10)
    with pytest.raises(ValueError):
        service.search("cat", 0, -5)


def test_scope_kinds():
    assert SearchScope.BOTH.kinds == (ItemKind.POST, ItemKind.COMMENT)
    assert SearchScope.POST.kinds == (ItemKind.POST,)
