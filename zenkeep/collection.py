"""In-memory item collections with write-through persistence.

A single ``ItemCollection`` implementation serves both notes and bookmarks.
What differs between the two kinds (searchable fields, sort key, the
required-field check, how a draft becomes an item) lives in a
``CollectionSpec``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Callable, Generic, Optional, TypeVar
from uuid import uuid4

from zenkeep.exceptions import ItemNotFoundError, ItemValidationError, StorageCorruptError
from zenkeep.metrics import ITEM_MUTATIONS, STORAGE_RECOVERIES, STORED_ITEMS, VALIDATION_ERRORS
from zenkeep.models import (
    Bookmark,
    BookmarkDraft,
    ItemKind,
    ListQuery,
    Note,
    NoteDraft,
    is_absolute_url,
)
from zenkeep.storage import CollectionStore

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT", Note, Bookmark)
DraftT = TypeVar("DraftT", NoteDraft, BookmarkDraft)

DEFAULT_RECENT = 3


def utc_now() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(UTC).isoformat()


def new_id() -> str:
    return str(uuid4())


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass(frozen=True)
class CollectionSpec(Generic[ItemT, DraftT]):
    """Per-kind behaviour plugged into ``ItemCollection``."""

    kind: ItemKind
    searchable: Callable[[ItemT], list[str]]
    sort_timestamp: Callable[[ItemT], str]
    validate: Callable[[DraftT], None]
    build: Callable[[DraftT, str, str], ItemT]  # (draft, item_id, now)
    apply: Callable[[ItemT, DraftT, str], ItemT]  # (item, draft, now)


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


def _validate_note(draft: NoteDraft) -> None:
    if not draft.content.strip():
        raise ItemValidationError("content", "Note content must not be empty.")


def _build_note(draft: NoteDraft, item_id: str, now: str) -> Note:
    return Note(
        id=item_id,
        title=draft.title,
        content=draft.content,
        tags=list(draft.tags),
        is_favorite=False,
        created_at=now,
        updated_at=now,
    )


def _apply_note(note: Note, draft: NoteDraft, now: str) -> Note:
    return note.model_copy(
        update={
            "title": draft.title,
            "content": draft.content,
            "tags": list(draft.tags),
            "updated_at": now,
        }
    )


NOTES_SPEC: CollectionSpec[Note, NoteDraft] = CollectionSpec(
    kind=ItemKind.NOTES,
    searchable=lambda n: [n.title, n.content, *n.tags],
    sort_timestamp=lambda n: n.updated_at,
    validate=_validate_note,
    build=_build_note,
    apply=_apply_note,
)


# ---------------------------------------------------------------------------
# Bookmarks
# ---------------------------------------------------------------------------


def _validate_bookmark(draft: BookmarkDraft) -> None:
    if not draft.url:
        raise ItemValidationError("url", "A URL is required.")
    if not is_absolute_url(draft.url):
        raise ItemValidationError("url", "Please enter a valid URL.")


def _build_bookmark(draft: BookmarkDraft, item_id: str, now: str) -> Bookmark:
    return Bookmark(
        id=item_id,
        url=draft.url,
        title=draft.title,
        description=draft.description,
        tags=list(draft.tags),
        is_favorite=False,
        created_at=now,
    )


def _apply_bookmark(bookmark: Bookmark, draft: BookmarkDraft, now: str) -> Bookmark:
    # Bookmarks carry no edit timestamp.
    return bookmark.model_copy(
        update={
            "url": draft.url,
            "title": draft.title,
            "description": draft.description,
            "tags": list(draft.tags),
        }
    )


BOOKMARKS_SPEC: CollectionSpec[Bookmark, BookmarkDraft] = CollectionSpec(
    kind=ItemKind.BOOKMARKS,
    searchable=lambda b: [b.title, b.url, b.description, *b.tags],
    sort_timestamp=lambda b: b.created_at,
    validate=_validate_bookmark,
    build=_build_bookmark,
    apply=_apply_bookmark,
)


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class ItemCollection(Generic[ItemT, DraftT]):
    """Ordered, newest-first collection of one item kind.

    Every mutation builds the new item list, saves it through the store and
    only then swaps it in, so a failed write leaves memory untouched.
    """

    def __init__(
        self,
        spec: CollectionSpec[ItemT, DraftT],
        store: CollectionStore,
        clock: Callable[[], str] = utc_now,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self._spec = spec
        self._store = store
        self._clock = clock
        self._id_factory = id_factory
        self._items: list[ItemT] = []
        self._issued_ids: set[str] = set()

    @property
    def kind(self) -> ItemKind:
        return self._spec.kind

    @property
    def count(self) -> int:
        """Number of items in the collection."""
        return len(self._items)

    def load(self) -> None:
        """Replace the in-memory collection with what the store holds.

        An unreadable stored blob is logged and treated as an empty collection.
        """
        try:
            items = self._store.load(self.kind)
        except StorageCorruptError as exc:
            logger.warning("%s — starting with an empty %s collection", exc, self.kind.value)
            STORAGE_RECOVERIES.labels(kind=self.kind.value).inc()
            items = []
        self._items = list(items)
        self._issued_ids.update(item.id for item in self._items)
        STORED_ITEMS.labels(kind=self.kind.value).set(len(self._items))
        logger.info("Loaded %d %s", len(self._items), self.kind.value)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, item_id: str) -> Optional[ItemT]:
        index = self._index_of(item_id)
        return None if index is None else self._items[index]

    def list_filtered(self, query: Optional[ListQuery] = None) -> list[ItemT]:
        """Items matching *query*, most recent first.

        Items with equal timestamps keep their collection order, so among
        ties the most recently created item comes first.
        """
        query = query or ListQuery()
        matches = [item for item in self._items if self._matches(item, query)]
        return sorted(
            matches,
            key=lambda item: _parse_timestamp(self._spec.sort_timestamp(item)),
            reverse=True,
        )

    def tag_index(self) -> list[str]:
        """All distinct tags in the collection, sorted ascending."""
        return sorted({tag for item in self._items for tag in item.tags})

    def recent(self, limit: int = DEFAULT_RECENT) -> list[ItemT]:
        return self.list_filtered()[:limit]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, draft: DraftT) -> ItemT:
        """Validate *draft* and prepend a new item built from it.

        Raises:
            ItemValidationError: the draft's required field is missing or invalid.
        """
        self._validate(draft)
        item = self._spec.build(draft, self._fresh_id(), self._clock())
        self._commit([item, *self._items], "create")
        self._issued_ids.add(item.id)
        logger.info("Created %s %s", self.kind.value, item.id)
        return item

    def update(self, item_id: str, draft: DraftT) -> ItemT:
        """Overwrite the editable fields of an existing item.

        Raises:
            ItemNotFoundError: no item has *item_id*.
            ItemValidationError: the draft's required field is missing or invalid.
        """
        index = self._index_of(item_id)
        if index is None:
            raise ItemNotFoundError(self.kind.value, item_id)
        self._validate(draft)
        item = self._spec.apply(self._items[index], draft, self._clock())
        self._commit(self._replaced(index, item), "update")
        logger.info("Updated %s %s", self.kind.value, item_id)
        return item

    def delete(self, item_id: str) -> bool:
        """Remove an item. Returns False (and writes nothing) if it is absent."""
        index = self._index_of(item_id)
        if index is None:
            logger.info("Delete of missing %s %s ignored", self.kind.value, item_id)
            return False
        self._commit(self._items[:index] + self._items[index + 1 :], "delete")
        logger.info("Deleted %s %s", self.kind.value, item_id)
        return True

    def toggle_favorite(self, item_id: str) -> Optional[ItemT]:
        """Flip ``is_favorite``. Edit timestamps are left alone."""
        index = self._index_of(item_id)
        if index is None:
            return None
        current = self._items[index]
        item = current.model_copy(update={"is_favorite": not current.is_favorite})
        self._commit(self._replaced(index, item), "favorite")
        logger.info("%s %s favorite=%s", self.kind.value, item_id, item.is_favorite)
        return item

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _matches(self, item: ItemT, query: ListQuery) -> bool:
        term = query.search.lower()
        if term and not any(term in field.lower() for field in self._spec.searchable(item)):
            return False
        if query.favorites_only and not item.is_favorite:
            return False
        if query.tag and query.tag not in item.tags:
            return False
        return True

    def _validate(self, draft: DraftT) -> None:
        try:
            self._spec.validate(draft)
        except ItemValidationError as exc:
            VALIDATION_ERRORS.labels(kind=self.kind.value, field=exc.field).inc()
            logger.info("Rejected %s draft: %s", self.kind.value, exc.message)
            raise

    def _fresh_id(self) -> str:
        item_id = self._id_factory()
        while item_id in self._issued_ids:
            item_id = self._id_factory()
        return item_id

    def _index_of(self, item_id: str) -> Optional[int]:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                return index
        return None

    def _replaced(self, index: int, item: ItemT) -> list[ItemT]:
        items = list(self._items)
        items[index] = item
        return items

    def _commit(self, items: list[ItemT], operation: str) -> None:
        self._store.save(self.kind, items)
        self._items = items
        ITEM_MUTATIONS.labels(kind=self.kind.value, operation=operation).inc()
        STORED_ITEMS.labels(kind=self.kind.value).set(len(items))


def note_collection(store: CollectionStore, **kwargs) -> ItemCollection[Note, NoteDraft]:
    return ItemCollection(NOTES_SPEC, store, **kwargs)


def bookmark_collection(
    store: CollectionStore, **kwargs
) -> ItemCollection[Bookmark, BookmarkDraft]:
    return ItemCollection(BOOKMARKS_SPEC, store, **kwargs)
