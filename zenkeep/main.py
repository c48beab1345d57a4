"""FastAPI application for ZenKeep.

Endpoints:
  GET    /notes                    — Filtered note listing
  POST   /notes                    — Create a note
  GET    /notes/tags               — Sorted tag index
  POST   /notes/suggest-tags       — Merge AI-suggested tags into a draft
  GET    /notes/{id}               — Fetch one note
  PUT    /notes/{id}               — Overwrite a note's editable fields
  DELETE /notes/{id}               — Delete a note (no-op if absent)
  POST   /notes/{id}/favorite      — Toggle the favorite flag
  ...    /bookmarks/...            — Same set, with /bookmarks/suggest-metadata
  GET    /dashboard                — Totals and most recent items
  GET    /health                   — Service status
  GET    /metrics                  — Prometheus metrics
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, ConfigDict, computed_field
from pydantic.alias_generators import to_camel
from starlette.middleware.base import BaseHTTPMiddleware

from zenkeep import __version__
from zenkeep.ai import OllamaSuggester, autofill_bookmark, autotag_note
from zenkeep.collection import ItemCollection, bookmark_collection, note_collection
from zenkeep.config import Settings, settings
from zenkeep.exceptions import ItemNotFoundError, ItemValidationError
from zenkeep.metrics import HTTP_DURATION, HTTP_REQUESTS
from zenkeep.models import Bookmark, BookmarkDraft, ListQuery, Note, NoteDraft
from zenkeep.storage import CollectionStore, RedisStore, build_store

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger(__name__)

# Endpoints excluded from HTTP metrics
_METRICS_EXCLUDE = {"/metrics", "/openapi.json", "/docs", "/redoc"}


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record HTTP request count and duration for Prometheus."""

    async def dispatch(self, request: Request, call_next):
        """Wrap each request with timing and counting."""
        path = request.url.path
        if path in _METRICS_EXCLUDE:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start

        # Label by route template so item ids don't explode cardinality
        route = request.scope.get("route")
        endpoint = getattr(route, "path", path)
        HTTP_REQUESTS.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()
        HTTP_DURATION.labels(endpoint=endpoint).observe(elapsed)
        return response


# --- Response models ---


class NoteCard(Note):
    """Note as listed on the dashboard."""

    @computed_field(alias="displayTitle")
    @property
    def display_title(self) -> str:
        return super().display_title


class BookmarkCard(Bookmark):
    """Bookmark as listed on the dashboard."""

    @computed_field(alias="hostname")
    @property
    def hostname(self) -> str:
        return super().hostname


class DashboardResponse(BaseModel):
    """Summary shown on the landing screen."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_notes: int
    total_bookmarks: int
    recent_notes: list[NoteCard]
    recent_bookmarks: list[BookmarkCard]


# --- Dependencies ---


def get_notes(request: Request) -> ItemCollection:
    return request.app.state.notes


def get_bookmarks(request: Request) -> ItemCollection:
    return request.app.state.bookmarks


def get_suggester(request: Request) -> OllamaSuggester:
    return request.app.state.suggester


def list_query(
    search: str = "", favorites_only: bool = False, tag: Optional[str] = None
) -> ListQuery:
    return ListQuery(search=search, favorites_only=favorites_only, tag=tag or None)


router = APIRouter()


# --- Notes ---


@router.get("/notes", response_model=list[Note])
async def list_notes(
    query: ListQuery = Depends(list_query), notes: ItemCollection = Depends(get_notes)
) -> list[Note]:
    """List notes matching the search term, favorite flag and tag."""
    return notes.list_filtered(query)


@router.post("/notes", response_model=Note, status_code=201)
async def create_note(draft: NoteDraft, notes: ItemCollection = Depends(get_notes)) -> Note:
    return notes.create(draft)


@router.get("/notes/tags", response_model=list[str])
async def note_tags(notes: ItemCollection = Depends(get_notes)) -> list[str]:
    return notes.tag_index()


@router.post("/notes/suggest-tags", response_model=NoteDraft)
async def suggest_note_tags(
    draft: NoteDraft, suggester: OllamaSuggester = Depends(get_suggester)
) -> NoteDraft:
    """Return *draft* with AI-suggested tags merged in. Never fails on AI errors."""
    return await autotag_note(suggester, draft)


@router.get("/notes/{note_id}", response_model=Note)
async def get_note(note_id: str, notes: ItemCollection = Depends(get_notes)) -> Note:
    note = notes.get(note_id)
    if note is None:
        raise ItemNotFoundError(notes.kind.value, note_id)
    return note


@router.put("/notes/{note_id}", response_model=Note)
async def update_note(
    note_id: str, draft: NoteDraft, notes: ItemCollection = Depends(get_notes)
) -> Note:
    return notes.update(note_id, draft)


@router.delete("/notes/{note_id}", status_code=204)
async def delete_note(note_id: str, notes: ItemCollection = Depends(get_notes)) -> Response:
    notes.delete(note_id)
    return Response(status_code=204)


@router.post("/notes/{note_id}/favorite", response_model=Note)
async def favorite_note(note_id: str, notes: ItemCollection = Depends(get_notes)) -> Note:
    note = notes.toggle_favorite(note_id)
    if note is None:
        raise ItemNotFoundError(notes.kind.value, note_id)
    return note


# --- Bookmarks ---


@router.get("/bookmarks", response_model=list[Bookmark])
async def list_bookmarks(
    query: ListQuery = Depends(list_query),
    bookmarks: ItemCollection = Depends(get_bookmarks),
) -> list[Bookmark]:
    """List bookmarks matching the search term, favorite flag and tag."""
    return bookmarks.list_filtered(query)


@router.post("/bookmarks", response_model=Bookmark, status_code=201)
async def create_bookmark(
    draft: BookmarkDraft, bookmarks: ItemCollection = Depends(get_bookmarks)
) -> Bookmark:
    return bookmarks.create(draft)


@router.get("/bookmarks/tags", response_model=list[str])
async def bookmark_tags(bookmarks: ItemCollection = Depends(get_bookmarks)) -> list[str]:
    return bookmarks.tag_index()


@router.post("/bookmarks/suggest-metadata", response_model=BookmarkDraft)
async def suggest_bookmark_metadata(
    draft: BookmarkDraft, suggester: OllamaSuggester = Depends(get_suggester)
) -> BookmarkDraft:
    """Fill empty title/description and merge tags from an AI suggestion."""
    return await autofill_bookmark(suggester, draft)


@router.get("/bookmarks/{bookmark_id}", response_model=Bookmark)
async def get_bookmark(
    bookmark_id: str, bookmarks: ItemCollection = Depends(get_bookmarks)
) -> Bookmark:
    bookmark = bookmarks.get(bookmark_id)
    if bookmark is None:
        raise ItemNotFoundError(bookmarks.kind.value, bookmark_id)
    return bookmark


@router.put("/bookmarks/{bookmark_id}", response_model=Bookmark)
async def update_bookmark(
    bookmark_id: str,
    draft: BookmarkDraft,
    bookmarks: ItemCollection = Depends(get_bookmarks),
) -> Bookmark:
    return bookmarks.update(bookmark_id, draft)


@router.delete("/bookmarks/{bookmark_id}", status_code=204)
async def delete_bookmark(
    bookmark_id: str, bookmarks: ItemCollection = Depends(get_bookmarks)
) -> Response:
    bookmarks.delete(bookmark_id)
    return Response(status_code=204)


@router.post("/bookmarks/{bookmark_id}/favorite", response_model=Bookmark)
async def favorite_bookmark(
    bookmark_id: str, bookmarks: ItemCollection = Depends(get_bookmarks)
) -> Bookmark:
    bookmark = bookmarks.toggle_favorite(bookmark_id)
    if bookmark is None:
        raise ItemNotFoundError(bookmarks.kind.value, bookmark_id)
    return bookmark


# --- Overview ---


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    notes: ItemCollection = Depends(get_notes),
    bookmarks: ItemCollection = Depends(get_bookmarks),
) -> DashboardResponse:
    """Item totals plus the three most recent notes and bookmarks."""
    return DashboardResponse(
        total_notes=notes.count,
        total_bookmarks=bookmarks.count,
        recent_notes=[NoteCard(**note.model_dump()) for note in notes.recent()],
        recent_bookmarks=[BookmarkCard(**b.model_dump()) for b in bookmarks.recent()],
    )


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    state = request.app.state
    return {
        "status": "healthy",
        "version": __version__,
        "notes": state.notes.count,
        "bookmarks": state.bookmarks.count,
        "ai_enabled": state.suggester.enabled,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# --- Error handlers ---


async def _validation_error(request: Request, exc: ItemValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": exc.message, "field": exc.field})


async def _not_found(request: Request, exc: ItemNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": exc.message})


# --- Application factory ---


def create_app(
    app_settings: Settings = settings,
    store: Optional[CollectionStore] = None,
    suggester: Optional[OllamaSuggester] = None,
) -> FastAPI:
    """Build the app. *store* and *suggester* default to the configured ones."""
    store = store or build_store(app_settings)
    suggester = suggester or OllamaSuggester.from_settings(app_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup: load both collections from the store."""
        app.state.notes.load()
        app.state.bookmarks.load()
        logger.info(
            "ZenKeep ready — %d notes, %d bookmarks",
            app.state.notes.count,
            app.state.bookmarks.count,
        )
        yield
        if isinstance(store, RedisStore):
            store.close()
        logger.info("ZenKeep shut down.")

    app = FastAPI(title="ZenKeep", version=__version__, lifespan=lifespan)
    app.state.notes = note_collection(store)
    app.state.bookmarks = bookmark_collection(store)
    app.state.suggester = suggester

    app.add_middleware(MetricsMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ItemValidationError, _validation_error)
    app.add_exception_handler(ItemNotFoundError, _not_found)
    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
