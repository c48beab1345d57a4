"""Tests for zenkeep.collection — CRUD, filtering, sorting and tag index."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable

import pytest

from zenkeep.collection import (
    ItemCollection,
    bookmark_collection,
    note_collection,
)
from zenkeep.exceptions import ItemNotFoundError, ItemValidationError
from zenkeep.models import BookmarkDraft, ItemKind, ListQuery, NoteDraft
from zenkeep.storage import JsonFileStore, MemoryStore

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def notes(store: MemoryStore, clock: Callable[[], str]) -> ItemCollection:
    collection = note_collection(store, clock=clock)
    collection.load()
    return collection


@pytest.fixture()
def bookmarks(store: MemoryStore, clock: Callable[[], str]) -> ItemCollection:
    collection = bookmark_collection(store, clock=clock)
    collection.load()
    return collection


class FailingStore(MemoryStore):
    """Store whose writes fail once ``fail`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.fail = False

    def _write(self, key: str, blob: str) -> None:
        if self.fail:
            raise OSError("disk full")
        super()._write(key, blob)


def _ids(items) -> list[str]:
    return [item.id for item in items]


def _search(collection: ItemCollection, term: str = "", **kwargs) -> list:
    return collection.list_filtered(ListQuery(search=term, **kwargs))


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


class TestCreate:
    def test_new_note_defaults(self, notes: ItemCollection) -> None:
        note = notes.create(NoteDraft(title="", content="Buy milk", tags=["errand"]))

        assert note.is_favorite is False
        assert note.created_at == note.updated_at
        assert note.tags == ["errand"]
        assert note.display_title == "Untitled"
        assert _ids(_search(notes)) == [note.id]

    def test_adds_exactly_one_with_fresh_id(self, notes: ItemCollection) -> None:
        existing = {notes.create(NoteDraft(content=f"n{i}")).id for i in range(3)}
        new = notes.create(NoteDraft(content="another"))

        assert len(_search(notes)) == 4
        assert new.id not in existing

    def test_prepends_newest_first(self, bookmarks: ItemCollection) -> None:
        first = bookmarks.create(BookmarkDraft(url="https://a.example"))
        second = bookmarks.create(BookmarkDraft(url="https://b.example"))
        assert _ids(bookmarks.recent(10)) == [second.id, first.id]

    @pytest.mark.parametrize("content", ["", "   \n\t"])
    def test_empty_note_content_rejected(
        self, notes: ItemCollection, store: MemoryStore, content: str
    ) -> None:
        with pytest.raises(ItemValidationError) as exc_info:
            notes.create(NoteDraft(title="Has a title", content=content))

        assert exc_info.value.field == "content"
        assert notes.count == 0
        assert store.blobs == {}

    def test_invalid_bookmark_url_rejected(self, bookmarks: ItemCollection) -> None:
        bookmarks.create(BookmarkDraft(url="https://ok.example"))

        with pytest.raises(ItemValidationError) as exc_info:
            bookmarks.create(BookmarkDraft(url="not a url", title="Broken"))

        assert exc_info.value.field == "url"
        assert "valid URL" in exc_info.value.message
        assert bookmarks.count == 1

    def test_missing_bookmark_url_rejected(self, bookmarks: ItemCollection) -> None:
        with pytest.raises(ItemValidationError, match="required"):
            bookmarks.create(BookmarkDraft(title="No url"))

    def test_bookmark_has_creation_stamp_only(self, bookmarks: ItemCollection) -> None:
        bookmark = bookmarks.create(BookmarkDraft(url="https://example.com", tags=["x"]))
        assert bookmark.created_at
        assert not hasattr(bookmark, "updated_at")

    def test_id_collision_is_retried(self, store: MemoryStore, clock: Callable[[], str]) -> None:
        ids = iter(["same", "same", "other"])
        collection = note_collection(store, clock=clock, id_factory=lambda: next(ids))

        first = collection.create(NoteDraft(content="a"))
        second = collection.create(NoteDraft(content="b"))

        assert (first.id, second.id) == ("same", "other")

    def test_deleted_ids_are_not_reissued(self, store: MemoryStore, clock: Callable[[], str]) -> None:
        ids = iter(["x", "x", "y"])
        collection = note_collection(store, clock=clock, id_factory=lambda: next(ids))

        collection.delete(collection.create(NoteDraft(content="a")).id)
        assert collection.create(NoteDraft(content="b")).id == "y"


# ---------------------------------------------------------------------------
# update
# ---------------------------------------------------------------------------


class TestUpdate:
    def test_note_update_preserves_identity(self, notes: ItemCollection) -> None:
        original = notes.create(NoteDraft(title="Old", content="old body"))
        notes.toggle_favorite(original.id)

        updated = notes.update(original.id, NoteDraft(title="New", content="new body", tags=["t"]))

        assert updated.id == original.id
        assert updated.created_at == original.created_at
        assert updated.updated_at > original.updated_at
        assert updated.is_favorite is True
        assert (updated.title, updated.content, updated.tags) == ("New", "new body", ["t"])
        assert notes.get(original.id) == updated

    def test_bookmark_update_overwrites_fields(self, bookmarks: ItemCollection) -> None:
        original = bookmarks.create(
            BookmarkDraft(url="https://old.example", title="Old", description="d", tags=["a"])
        )
        updated = bookmarks.update(original.id, BookmarkDraft(url="https://new.example"))

        assert updated.created_at == original.created_at
        assert updated.url == "https://new.example"
        assert (updated.title, updated.description, updated.tags) == ("", "", [])

    def test_missing_id_raises(self, notes: ItemCollection) -> None:
        with pytest.raises(ItemNotFoundError):
            notes.update("nope", NoteDraft(content="x"))

    def test_invalid_draft_leaves_item_unchanged(self, notes: ItemCollection) -> None:
        note = notes.create(NoteDraft(content="keep me"))
        with pytest.raises(ItemValidationError):
            notes.update(note.id, NoteDraft(content=""))
        assert notes.get(note.id) == note

    def test_update_moves_note_to_front(self, notes: ItemCollection) -> None:
        older = notes.create(NoteDraft(content="older"))
        newer = notes.create(NoteDraft(content="newer"))
        assert _ids(_search(notes)) == [newer.id, older.id]

        notes.update(older.id, NoteDraft(content="older, edited"))
        assert _ids(_search(notes)) == [older.id, newer.id]


# ---------------------------------------------------------------------------
# delete / toggle_favorite
# ---------------------------------------------------------------------------


class TestDelete:
    def test_removes_exactly_one(self, notes: ItemCollection) -> None:
        keep = notes.create(NoteDraft(content="keep"))
        drop = notes.create(NoteDraft(content="drop"))

        assert notes.delete(drop.id) is True
        assert _ids(_search(notes)) == [keep.id]

    def test_missing_id_is_noop(self, notes: ItemCollection, store: MemoryStore) -> None:
        notes.create(NoteDraft(content="x"))
        before = dict(store.blobs)

        assert notes.delete("missing") is False
        assert notes.count == 1
        assert store.blobs == before


class TestToggleFavorite:
    def test_double_toggle_restores_state(self, bookmarks: ItemCollection) -> None:
        bookmark = bookmarks.create(BookmarkDraft(url="https://example.com"))

        assert bookmarks.toggle_favorite(bookmark.id).is_favorite is True
        assert bookmarks.toggle_favorite(bookmark.id).is_favorite is False
        assert bookmarks.get(bookmark.id) == bookmark

    def test_does_not_touch_updated_at(self, notes: ItemCollection) -> None:
        note = notes.create(NoteDraft(content="x"))
        toggled = notes.toggle_favorite(note.id)
        assert toggled.updated_at == note.updated_at

    def test_missing_id_returns_none(self, notes: ItemCollection) -> None:
        assert notes.toggle_favorite("missing") is None


# ---------------------------------------------------------------------------
# list_filtered / tag_index
# ---------------------------------------------------------------------------


class TestListFiltered:
    @pytest.fixture()
    def seeded(self, notes: ItemCollection) -> dict[str, str]:
        ids = {
            "title": notes.create(NoteDraft(title="FOO fighters", content="band")).id,
            "content": notes.create(NoteDraft(content="some food for thought")).id,
            "tag": notes.create(NoteDraft(content="tagged", tags=["Foobar"])).id,
            "none": notes.create(NoteDraft(title="bar", content="baz", tags=["qux"])).id,
        }
        return ids

    def test_empty_term_matches_everything(self, notes, seeded) -> None:
        assert len(_search(notes, "")) == 4

    def test_case_insensitive_substring(self, notes, seeded) -> None:
        matched = set(_ids(_search(notes, "foo")))
        assert matched == {seeded["title"], seeded["content"], seeded["tag"]}

    def test_no_match(self, notes, seeded) -> None:
        assert _search(notes, "zzz") == []

    def test_bookmark_fields_searched(self, bookmarks: ItemCollection) -> None:
        by_url = bookmarks.create(BookmarkDraft(url="https://python.org"))
        by_desc = bookmarks.create(
            BookmarkDraft(url="https://example.com", description="Python tutorials")
        )
        bookmarks.create(BookmarkDraft(url="https://rust-lang.org", title="Rust"))

        assert set(_ids(_search(bookmarks, "PYTHON"))) == {by_url.id, by_desc.id}

    def test_favorites_only(self, notes, seeded) -> None:
        notes.toggle_favorite(seeded["none"])
        assert _ids(_search(notes, favorites_only=True)) == [seeded["none"]]

    def test_tag_filter_is_exact(self, notes, seeded) -> None:
        assert _ids(_search(notes, tag="Foobar")) == [seeded["tag"]]
        assert _search(notes, tag="foobar") == []
        assert _search(notes, tag="Foo") == []

    def test_filters_combine(self, notes, seeded) -> None:
        notes.toggle_favorite(seeded["tag"])
        notes.toggle_favorite(seeded["none"])

        result = _search(notes, "foo", favorites_only=True, tag="Foobar")
        assert _ids(result) == [seeded["tag"]]
        assert _search(notes, "baz", favorites_only=True, tag="Foobar") == []

    def test_sorted_by_timestamp_descending(self, notes, seeded) -> None:
        result = _search(notes)
        stamps = [n.updated_at for n in result]
        assert stamps == sorted(stamps, reverse=True)

    def test_equal_timestamps_keep_newest_created_first(self, store: MemoryStore) -> None:
        frozen = "2026-03-01T12:00:00+00:00"
        collection = note_collection(store, clock=lambda: frozen)
        first = collection.create(NoteDraft(content="a"))
        second = collection.create(NoteDraft(content="b"))
        third = collection.create(NoteDraft(content="c"))

        assert _ids(_search(collection)) == [third.id, second.id, first.id]

    def test_mixed_timestamp_formats_sort_chronologically(self, store: MemoryStore) -> None:
        store.blobs["zenkeep_bookmarks"] = json.dumps(
            [
                {"id": "old", "url": "https://a.example", "createdAt": "2024-01-01T00:00:00.000Z"},
                {"id": "new", "url": "https://b.example", "createdAt": "2025-06-01T08:30:00+02:00"},
            ]
        )
        collection = bookmark_collection(store)
        collection.load()
        assert _ids(_search(collection)) == ["new", "old"]


class TestTagIndex:
    def test_sorted_and_deduplicated(self, notes: ItemCollection) -> None:
        notes.create(NoteDraft(content="1", tags=["b", "a"]))
        notes.create(NoteDraft(content="2", tags=["a", "c"]))
        assert notes.tag_index() == ["a", "b", "c"]

    def test_reflects_current_state(self, notes: ItemCollection) -> None:
        note = notes.create(NoteDraft(content="1", tags=["gone"]))
        notes.delete(note.id)
        assert notes.tag_index() == []

    def test_empty_collection(self, bookmarks: ItemCollection) -> None:
        assert bookmarks.tag_index() == []


# ---------------------------------------------------------------------------
# Persistence interaction
# ---------------------------------------------------------------------------


class TestWriteThrough:
    def test_every_mutation_is_persisted(self, store: MemoryStore, clock: Callable[[], str]) -> None:
        notes = note_collection(store, clock=clock)
        note = notes.create(NoteDraft(content="persist me", tags=["p"]))
        notes.toggle_favorite(note.id)

        reloaded = note_collection(store)
        reloaded.load()
        assert reloaded.get(note.id).is_favorite is True
        assert reloaded.get(note.id).tags == ["p"]

    def test_failed_write_leaves_memory_unchanged(self, clock: Callable[[], str]) -> None:
        store = FailingStore()
        notes = note_collection(store, clock=clock)
        note = notes.create(NoteDraft(content="x"))
        store.fail = True

        with pytest.raises(OSError):
            notes.create(NoteDraft(content="y"))
        with pytest.raises(OSError):
            notes.toggle_favorite(note.id)

        assert notes.count == 1
        assert notes.get(note.id).is_favorite is False

    def test_corrupt_store_loads_as_empty(self, store: MemoryStore) -> None:
        store.blobs["zenkeep_notes"] = "definitely not json"
        notes = note_collection(store)

        notes.load()

        assert notes.count == 0
        assert notes.kind is ItemKind.NOTES

    def test_undecodable_file_loads_as_empty(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path)
        store.path_for("zenkeep_notes").write_bytes(b'[{"id": "\xff\xfe"}]')
        notes = note_collection(store)

        notes.load()

        assert notes.count == 0

    def test_notes_and_bookmarks_independent(
        self, notes: ItemCollection, bookmarks: ItemCollection, store: MemoryStore
    ) -> None:
        notes.create(NoteDraft(content="n"))
        assert "zenkeep_bookmarks" not in store.blobs
        assert bookmarks.count == 0


class TestRecent:
    def test_limit(self, notes: ItemCollection) -> None:
        created = [notes.create(NoteDraft(content=str(i))) for i in range(5)]
        recent = notes.recent(3)
        assert _ids(recent) == [c.id for c in reversed(created)][:3]
        assert len(notes.recent()) == 3
