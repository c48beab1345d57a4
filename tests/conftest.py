"""Shared fixtures: a stepping clock, an in-memory store and a stub suggester."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Optional

import pytest

from zenkeep.models import BookmarkMetadata
from zenkeep.storage import MemoryStore


class FakeClock:
    """Returns ISO timestamps that advance one second per call."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 9, 0, tzinfo=UTC)) -> None:
        self.now = start

    def __call__(self) -> str:
        self.now += timedelta(seconds=1)
        return self.now.isoformat()


class StubSuggester:
    """Deterministic stand-in for ``OllamaSuggester``."""

    def __init__(
        self,
        metadata: Optional[BookmarkMetadata] = None,
        tags: Optional[list[str]] = None,
        enabled: bool = True,
    ) -> None:
        self.metadata = metadata
        self.tags = tags or []
        self.enabled = enabled
        self.calls: list[tuple] = []

    async def suggest_bookmark_metadata(self, url: str) -> Optional[BookmarkMetadata]:
        self.calls.append(("bookmark_metadata", url))
        return self.metadata

    async def suggest_note_tags(self, title: str, content: str) -> list[str]:
        self.calls.append(("note_tags", title, content))
        return list(self.tags)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()
