"""Tests for the Repository data access layer."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from chanindex.db.models import FileFingerprint, Item, ItemKind, Media, MediaType, Recognition

T0 = datetime(2023, 5, 1, 10, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _item(repo, dir_path: str, kind=ItemKind.POST, message_id: int = 1, text: str = "", ts=T0) -> Item:
    item = Item(kind=kind, dir_path=dir_path, message_id=message_id, timestamp=ts, text=text)
    repo.add_item(item)
    return item


def _media(repo, item: Item, name: str = "1.jpg", media_type=MediaType.PHOTO) -> Media:
    media = Media(
        message_id=item.message_id,
        timestamp=item.timestamp,
        file_path=f"{item.dir_path}/{name}",
        type=media_type,
        item_id=item.id,
    )
    repo.add_media(media)
    return media


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


def test_add_item_sets_id(repo):
    item = _item(repo, "/b/d1/i1")
    assert item.id is not None
    loaded = repo.get_item(item.id)
    assert loaded.dir_path == "/b/d1/i1"
    assert loaded.kind is ItemKind.POST
    assert loaded.timestamp == T0


def test_timestamp_round_trip_is_utc(repo):
    local = datetime(2023, 5, 1, 13, 0, tzinfo=timezone(timedelta(hours=3)))
    item = _item(repo, "/b/d1/i1", ts=local)
    assert repo.get_item(item.id).timestamp == T0


def test_update_item(repo):
    item = _item(repo, "/b/d1/i1", message_id=7, text="old")
    item.message_id = 3
    item.text = "new"
    repo.update_item(item)
    loaded = repo.get_item(item.id)
    assert loaded.message_id == 3
    assert loaded.text == "new"


def test_get_item_by_dir_with_media(repo):
    item = _item(repo, "/b/d1/i1")
    _media(repo, item, "1.jpg")
    _media(repo, item, "2.jpg")
    loaded = repo.get_item_by_dir("/b/d1/i1", with_media=True)
    assert [m.file_path for m in loaded.media] == ["/b/d1/i1/1.jpg", "/b/d1/i1/2.jpg"]
    assert loaded.is_album
    assert repo.get_item_by_dir("/missing") is None


def test_get_items_by_dirs_filters_kind_and_flags_comments(repo):
    post = _item(repo, "/b/d1/p1")
    _item(repo, "/b/d1/p2")
    comment = _item(repo, "/c/d1/c1", kind=ItemKind.COMMENT)
    repo.attach_comments(post.id, [comment.id])

    found = repo.get_items_by_dirs(ItemKind.POST, ["/b/d1/p1", "/b/d1/p2", "/c/d1/c1"])
    assert set(found) == {"/b/d1/p1", "/b/d1/p2"}
    assert found["/b/d1/p1"].has_comments is True
    assert found["/b/d1/p2"].has_comments is False


def test_get_items_by_dirs_handles_large_batches(repo):
    dirs = [f"/b/d1/i{n}" for n in range(1200)]
    for n, d in enumerate(dirs):
        _item(repo, d, message_id=n)
    assert len(repo.get_items_by_dirs(ItemKind.POST, dirs)) == 1200


def test_attach_comments_only_touches_comments(repo):
    post = _item(repo, "/b/d1/p1")
    other_post = _item(repo, "/b/d1/p2")
    comment = _item(repo, "/c/d1/c1", kind=ItemKind.COMMENT)
    repo.attach_comments(post.id, [comment.id, other_post.id])

    assert [c.id for c in repo.list_comments(post.id)] == [comment.id]
    assert repo.get_item(other_post.id).post_id is None


def test_count_items(repo):
    _item(repo, "/b/1")
    _item(repo, "/c/1", kind=ItemKind.COMMENT)
    _item(repo, "/c/2", kind=ItemKind.COMMENT)
    assert repo.count_items() == 3
    assert repo.count_items(ItemKind.COMMENT) == 2


# ---------------------------------------------------------------------------
# Media
# ---------------------------------------------------------------------------


def test_add_media_ignores_duplicate_file(repo):
    item = _item(repo, "/b/d1/i1")
    first = _media(repo, item)
    again = Media(
        message_id=item.message_id,
        timestamp=T0,
        file_path=first.file_path,
        type=MediaType.PHOTO,
        item_id=item.id,
    )
    assert repo.add_media(again) is None
    assert again.id is None
    assert repo.count_media() == 1


def test_list_unrecognized_media_keyset(repo):
    item = _item(repo, "/b/d1/i1")
    m1 = _media(repo, item, "1.jpg")
    m2 = _media(repo, item, "2.jpg")
    m3 = _media(repo, item, "3.mp4", MediaType.DOCUMENT)
    repo.add_recognition(Recognition(media_id=m2.id, text="x", confidence=0.9))

    assert [m.id for m in repo.list_unrecognized_media()] == [m1.id, m3.id]
    assert [m.id for m in repo.list_unrecognized_media(after_id=m1.id)] == [m3.id]
    assert [m.id for m in repo.list_unrecognized_media(limit=1)] == [m1.id]
    assert repo.count_media(unrecognized_only=True) == 2
    assert repo.list_unrecognized_media(after_id=m3.id) == []


# ---------------------------------------------------------------------------
# Recognitions
# ---------------------------------------------------------------------------


def test_add_and_list_recognitions(repo):
    item = _item(repo, "/b/d1/i1")
    media = _media(repo, item)
    rec = Recognition(media_id=media.id, text="hello", confidence=0.8)
    repo.add_recognition(rec)
    assert rec.id is not None
    assert repo.list_recognitions(media.id) == [rec]
    assert repo.count_recognitions() == 1


# ---------------------------------------------------------------------------
# Fingerprints
# ---------------------------------------------------------------------------


def test_fingerprint_add_get_update(repo):
    repo.add_fingerprint(FileFingerprint(path="/b/m.json", size=10, last_write_ns=100))
    cached = repo.get_fingerprints(["/b/m.json", "/b/other.json"])
    assert list(cached) == ["/b/m.json"]
    assert cached["/b/m.json"].matches(FileFingerprint("/b/m.json", 10, 100))

    repo.update_fingerprint(FileFingerprint(path="/b/m.json", size=12, last_write_ns=200))
    updated = repo.get_fingerprints(["/b/m.json"])["/b/m.json"]
    assert (updated.size, updated.last_write_ns) == (12, 200)
    assert repo.count_fingerprints() == 1


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


def test_rollback_discards_uncommitted_writes(repo):
    _item(repo, "/b/d1/i1")
    repo.commit()
    _item(repo, "/b/d1/i2")
    repo.rollback()
    assert repo.count_items() == 1


# ---------------------------------------------------------------------------
# Search queries
# ---------------------------------------------------------------------------


def test_search_text_is_case_insensitive_and_newest_first(repo):
    _item(repo, "/b/1", text="Hello world", ts=T0)
    _item(repo, "/b/2", text="say HELLO", ts=T0 + timedelta(days=1))
    _item(repo, "/b/3", text="nothing", ts=T0 + timedelta(days=2))

    hits = repo.search_text("hello", [ItemKind.POST], 0, 10)
    assert [i.dir_path for i in hits] == ["/b/2", "/b/1"]


def test_search_text_unicode(repo):
    _item(repo, "/b/1", text="Большой ПРИВЕТ")
    assert len(repo.search_text("привет", [ItemKind.POST], 0, 10)) == 1


def test_search_recognitions_groups_per_item(repo):
    item = _item(repo, "/b/1")
    m1 = _media(repo, item, "1.jpg")
    m2 = _media(repo, item, "2.jpg")
    repo.add_recognition(Recognition(media_id=m1.id, text="cat photo", confidence=0.4))
    repo.add_recognition(Recognition(media_id=m2.id, text="black cat", confidence=0.7))

    hits = repo.search_recognitions("cat", [ItemKind.POST, ItemKind.COMMENT], 0, 10)
    assert len(hits) == 1
    found, confidence = hits[0]
    assert found.id == item.id
    assert confidence == pytest.approx(0.7)
