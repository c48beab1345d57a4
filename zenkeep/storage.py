"""Persistence backends for the note and bookmark collections.

Each collection kind is stored as a single JSON array under a fixed
namespaced key. Every save replaces the whole blob.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

import redis
from pydantic import TypeAdapter, ValidationError

from zenkeep.config import Settings
from zenkeep.exceptions import StorageCorruptError
from zenkeep.models import Bookmark, ItemKind, Note

logger = logging.getLogger(__name__)

KEY_PREFIX = "zenkeep_"

Item = Union[Note, Bookmark]

_ADAPTERS: dict[ItemKind, TypeAdapter] = {
    ItemKind.NOTES: TypeAdapter(list[Note]),
    ItemKind.BOOKMARKS: TypeAdapter(list[Bookmark]),
}


def storage_key(kind: ItemKind) -> str:
    """Namespaced key a collection kind is stored under."""
    return f"{KEY_PREFIX}{kind.value}"


class CollectionStore:
    """Base store: JSON encoding on top of a raw ``key -> str`` backend.

    Subclasses implement ``_read`` and ``_write``.
    """

    def load(self, kind: ItemKind) -> list[Item]:
        """Return the stored collection, or ``[]`` if nothing is stored.

        Raises:
            StorageCorruptError: the stored blob is not a valid collection.
        """
        key = storage_key(kind)
        try:
            blob = self._read(key)
        except UnicodeDecodeError as exc:
            raise StorageCorruptError(key, f"not valid UTF-8 ({exc.reason})") from exc
        if blob is None:
            return []
        try:
            items = _ADAPTERS[kind].validate_json(blob)
        except ValidationError as exc:
            raise StorageCorruptError(key, f"{exc.error_count()} validation error(s)") from exc
        logger.debug("Loaded %d %s from %s", len(items), kind.value, key)
        return items

    def save(self, kind: ItemKind, items: list[Item]) -> None:
        """Serialize *items* and overwrite whatever is stored for *kind*."""
        key = storage_key(kind)
        blob = _ADAPTERS[kind].dump_json(items, by_alias=True, indent=2).decode("utf-8")
        self._write(key, blob)
        logger.debug("Saved %d %s to %s", len(items), kind.value, key)

    def _read(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def _write(self, key: str, blob: str) -> None:
        raise NotImplementedError


class MemoryStore(CollectionStore):
    """Keeps blobs in a dict. Used in tests and with ``storage_backend=memory``."""

    def __init__(self) -> None:
        self.blobs: dict[str, str] = {}

    def _read(self, key: str) -> Optional[str]:
        return self.blobs.get(key)

    def _write(self, key: str, blob: str) -> None:
        self.blobs[key] = blob


class JsonFileStore(CollectionStore):
    """One ``<key>.json`` file per collection inside *directory*."""

    def __init__(self, directory: Path) -> None:
        self._dir = Path(directory)

    def path_for(self, key: str) -> Path:
        return self._dir / f"{key}.json"

    def _read(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.exists():
            logger.info("No storage file at %s — starting empty", path)
            return None
        return path.read_text(encoding="utf-8")

    def _write(self, key: str, blob: str) -> None:
        path = self.path_for(key)
        self._dir.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        try:
            tmp.write_text(blob, encoding="utf-8")
            tmp.replace(path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise


class RedisStore(CollectionStore):
    """One Redis string per collection key."""

    def __init__(self, redis_url: str, client: Optional[redis.Redis] = None) -> None:
        self._redis_url = redis_url
        self._client = client or redis.Redis.from_url(redis_url, decode_responses=True)

    def _read(self, key: str) -> Optional[str]:
        return self._client.get(key)

    def _write(self, key: str, blob: str) -> None:
        self._client.set(key, blob)

    def close(self) -> None:
        self._client.close()


def build_store(settings: Settings) -> CollectionStore:
    """Create the store selected by ``settings.storage_backend``."""
    if settings.storage_backend == "redis":
        logger.info("Using Redis store at %s", settings.redis_url)
        return RedisStore(settings.redis_url)
    if settings.storage_backend == "memory":
        logger.warning("Using in-memory store — data will not survive a restart")
        return MemoryStore()
    logger.info("Using JSON file store in %s", settings.data_dir)
    return JsonFileStore(settings.data_dir)
