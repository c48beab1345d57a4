"""Pydantic models for notes, bookmarks, form drafts and AI schemas."""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

UNTITLED = "Untitled"

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")
# Schemes that are meaningless without a host part.
_NETLOC_SCHEMES = {"http", "https", "ftp", "ws", "wss"}


class ItemKind(str, Enum):
    """The two collections ZenKeep manages."""

    NOTES = "notes"
    BOOKMARKS = "bookmarks"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def normalize_tags(tags: list[str]) -> list[str]:
    """Trim tags and drop empty values and exact duplicates, keeping order."""
    result: list[str] = []
    for tag in tags:
        cleaned = tag.strip()
        if cleaned and cleaned not in result:
            result.append(cleaned)
    return result


def _check_timestamp(value: str) -> str:
    datetime.fromisoformat(value)
    return value


def is_absolute_url(value: str) -> bool:
    """Return True if *value* parses as an absolute URL (scheme + target).

    Whitespace is allowed in the path, query and fragment, where browsers
    percent-encode it, but not in the scheme or host.
    """
    if not value:
        return False
    try:
        parsed = urlparse(value)
        parsed.port  # raises ValueError on a malformed port
    except ValueError:
        return False
    if any(ch.isspace() for ch in parsed.scheme + parsed.netloc):
        return False
    if not parsed.scheme or not _SCHEME_RE.match(parsed.scheme):
        return False
    if parsed.scheme.lower() in _NETLOC_SCHEMES:
        return bool(parsed.hostname)
    return bool(parsed.netloc or parsed.path)


# ---------------------------------------------------------------------------
# Persisted entities
# ---------------------------------------------------------------------------


class Note(BaseModel):
    """A free-form note. Field order matches the stored JSON layout."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str = ""
    content: str
    tags: list[str] = Field(default_factory=list)
    is_favorite: bool = False
    created_at: str = Field(..., description="ISO-8601 creation timestamp")
    updated_at: str = Field(..., description="ISO-8601 last edit timestamp")

    @field_validator("created_at", "updated_at")
    @classmethod
    def _iso_timestamps(cls, value: str) -> str:
        return _check_timestamp(value)

    @property
    def display_title(self) -> str:
        return self.title or UNTITLED


class Bookmark(BaseModel):
    """A saved URL with optional title and description."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    url: str
    title: str = ""
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    is_favorite: bool = False
    created_at: str = Field(..., description="ISO-8601 creation timestamp")

    @field_validator("created_at")
    @classmethod
    def _iso_timestamp(cls, value: str) -> str:
        return _check_timestamp(value)

    @property
    def hostname(self) -> str:
        """Host part of the URL, or the raw URL if it has none."""
        try:
            return urlparse(self.url).hostname or self.url
        except ValueError:
            return self.url


# ---------------------------------------------------------------------------
# Drafts (create / edit form contents)
# ---------------------------------------------------------------------------


class NoteDraft(BaseModel):
    """Editable fields of a note."""

    title: str = ""
    content: str = ""
    tags: list[str] = Field(default_factory=list)

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, value: list[str]) -> list[str]:
        return normalize_tags(value)


class BookmarkDraft(BaseModel):
    """Editable fields of a bookmark."""

    url: str = ""
    title: str = ""
    description: str = ""
    tags: list[str] = Field(default_factory=list)

    @field_validator("url")
    @classmethod
    def _strip_url(cls, value: str) -> str:
        return value.strip()

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, value: list[str]) -> list[str]:
        return normalize_tags(value)


class ListQuery(BaseModel):
    """Filters applied by ``ItemCollection.list_filtered``."""

    search: str = ""
    favorites_only: bool = False
    tag: str | None = None


# ---------------------------------------------------------------------------
# AI structured-output schemas
# ---------------------------------------------------------------------------


class BookmarkMetadata(BaseModel):
    """Suggested metadata for a bookmark URL."""

    title: str
    description: str
    tags: list[str]


class TagSuggestion(BaseModel):
    """Suggested tags for a note."""

    tags: list[str]
