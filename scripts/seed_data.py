"""Seed a running ZenKeep instance with sample notes and bookmarks.

Creates a handful of notes and bookmarks through the HTTP API, marks a few
as favorites, and optionally asks the AI endpoints to fill in tags and
metadata first.

Usage:
    python scripts/seed_data.py [--base-url http://localhost:8000] [--ai]
"""

from __future__ import annotations

import argparse
import sys
import time

import requests

DEFAULT_BASE_URL = "http://localhost:8000"
TIMEOUT = 10
AI_TIMEOUT = 120  # local models can be slow on first load


# Each entry: (title, content, tags, favorite)
NOTES: list[tuple[str, str, list[str], bool]] = [
    (
        "Project Ideas",
        "Build a reading tracker that pulls highlights from e-books and "
        "groups them by theme.",
        ["ideas", "side-project"],
        True,
    ),
    (
        "Meeting Notes",
        "Discussed moving the nightly export to an event-driven pipeline. "
        "Decision: prototype with Redis Streams before committing.",
        ["meetings", "architecture"],
        False,
    ),
    ("", "Buy milk, eggs and coffee beans", ["errand"], False),
    (
        "Reading List",
        "Designing Data-Intensive Applications; The Pragmatic Programmer; "
        "A Philosophy of Software Design.",
        ["reading", "books"],
        True,
    ),
]

# Each entry: (url, title, description, tags, favorite)
BOOKMARKS: list[tuple[str, str, str, list[str], bool]] = [
    (
        "https://docs.python.org/3/",
        "Python 3 documentation",
        "Language reference, library reference and tutorials.",
        ["python", "docs"],
        True,
    ),
    (
        "https://fastapi.tiangolo.com/",
        "FastAPI",
        "Modern, fast web framework for building APIs with Python.",
        ["python", "web"],
        False,
    ),
    ("https://redis.io/docs/", "", "", ["databases"], False),
    ("https://ollama.com/library", "", "", [], False),
]


def check_health(base_url: str) -> bool:
    """Verify the service is reachable and healthy."""
    try:
        resp = requests.get(f"{base_url}/health", timeout=TIMEOUT)
        return resp.json().get("status") == "healthy"
    except Exception as e:
        print(f"  Health check failed: {e}")
        return False


def post(base_url: str, path: str, payload: dict, timeout: float = TIMEOUT) -> dict:
    """POST JSON and return the parsed response."""
    resp = requests.post(f"{base_url}{path}", json=payload, timeout=timeout)
    resp.raise_for_status()
    return resp.json()


def seed_notes(base_url: str, use_ai: bool) -> int:
    created = 0
    for i, (title, content, tags, favorite) in enumerate(NOTES, 1):
        draft = {"title": title, "content": content, "tags": tags}
        print(f"  [note {i}/{len(NOTES)}] {title or 'Untitled'}")
        try:
            if use_ai:
                draft = post(base_url, "/notes/suggest-tags", draft, timeout=AI_TIMEOUT)
                print(f"         Tags:    {draft['tags']}")
            note = post(base_url, "/notes", draft)
            if favorite:
                post(base_url, f"/notes/{note['id']}/favorite", {})
            created += 1
        except Exception as e:
            print(f"         ERROR:   {e}")
    return created


def seed_bookmarks(base_url: str, use_ai: bool) -> int:
    created = 0
    for i, (url, title, description, tags, favorite) in enumerate(BOOKMARKS, 1):
        draft = {"url": url, "title": title, "description": description, "tags": tags}
        print(f"  [bookmark {i}/{len(BOOKMARKS)}] {url}")
        try:
            if use_ai:
                draft = post(
                    base_url, "/bookmarks/suggest-metadata", draft, timeout=AI_TIMEOUT
                )
                print(f"         Title:   {draft['title'] or '(none)'}")
            bookmark = post(base_url, "/bookmarks", draft)
            if favorite:
                post(base_url, f"/bookmarks/{bookmark['id']}/favorite", {})
            created += 1
        except Exception as e:
            print(f"         ERROR:   {e}")
    return created


def main() -> None:
    """Create all sample items sequentially."""
    parser = argparse.ArgumentParser(description="Seed ZenKeep with sample data")
    parser.add_argument(
        "--base-url",
        default=DEFAULT_BASE_URL,
        help=f"ZenKeep API base URL (default: {DEFAULT_BASE_URL})",
    )
    parser.add_argument(
        "--ai",
        action="store_true",
        help="Run AI suggestions on each item before saving it",
    )
    args = parser.parse_args()
    base_url = args.base_url.rstrip("/")

    print(f"\n  Seeding data via {base_url}")
    print("  " + "=" * 58)

    if not check_health(base_url):
        print("  FAIL: ZenKeep is not healthy. Is the server running?")
        sys.exit(1)

    start = time.time()
    notes = seed_notes(base_url, args.ai)
    bookmarks = seed_bookmarks(base_url, args.ai)
    elapsed = time.time() - start

    print("  " + "=" * 58)
    print(f"  Done! {notes} notes and {bookmarks} bookmarks in {elapsed:.1f}s.")
    print(f"  Tags: notes={requests.get(f'{base_url}/notes/tags', timeout=TIMEOUT).json()}")
    print(f"  API docs: {base_url}/docs")
    print()


if __name__ == "__main__":
    main()
