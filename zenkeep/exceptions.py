"""Exception hierarchy for ZenKeep.

Validation and not-found errors are raised by the collection manager and
mapped to HTTP responses in ``zenkeep.main``. Storage corruption is raised by
the stores and recovered by the collection on load.
"""

from __future__ import annotations


class ZenkeepError(Exception):
    """Base exception for all ZenKeep errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ItemValidationError(ZenkeepError):
    """A draft failed its required-field check; nothing was mutated."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(message)


class ItemNotFoundError(ZenkeepError):
    """No item with the given id exists in the collection."""

    def __init__(self, kind: str, item_id: str) -> None:
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"No item '{item_id}' in {kind}")


class StorageCorruptError(ZenkeepError):
    """A stored collection blob could not be decoded."""

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Stored collection '{key}' is unreadable: {reason}")
