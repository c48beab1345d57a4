"""AI-assisted metadata and tag suggestions via a local Ollama instance.

Suggestions are best-effort: connection errors, timeouts and responses that
do not match the requested JSON schema are logged and turned into "no
suggestion" (``None`` or ``[]``). Nothing here raises to the caller.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from zenkeep.config import Settings
from zenkeep.metrics import AI_DURATION, AI_SUGGESTIONS
from zenkeep.models import (
    BookmarkDraft,
    BookmarkMetadata,
    NoteDraft,
    TagSuggestion,
    normalize_tags,
)

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL)


def _strip_thinking_tags(text: str) -> str:
    """Remove ``<think>...</think>`` blocks that Qwen3 may produce."""
    return _THINK_RE.sub("", text).strip()


def _bookmark_prompt(url: str) -> str:
    return (
        f"Generate a title, a brief description, and 3 relevant tags for this URL: {url}\n"
        "Respond with JSON only."
    )


def _note_prompt(title: str, content: str) -> str:
    return (
        "Suggest 3 to 5 concise tags for a note with the following title and content:\n"
        f"Title: {title}\n"
        f"Content: {content}\n"
        "Respond with JSON only."
    )


class OllamaSuggester:
    """Calls Ollama's ``/api/generate`` with a structured-output schema."""

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout: float = 60.0,
        enabled: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._generate_url = f"{base_url.rstrip('/')}/api/generate"
        self._base_url = base_url
        self._model = model
        self._timeout = timeout
        self._enabled = enabled
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "OllamaSuggester":
        return cls(
            base_url=settings.ollama_base_url,
            model=settings.ollama_model,
            timeout=settings.ai_timeout,
            enabled=settings.ai_enabled,
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------

    async def suggest_bookmark_metadata(self, url: str) -> Optional[BookmarkMetadata]:
        """Suggest a title, description and tags for *url*, or None."""
        return await self._suggest("bookmark_metadata", _bookmark_prompt(url), BookmarkMetadata)

    async def suggest_note_tags(self, title: str, content: str) -> list[str]:
        """Suggest tags for a note. Returns ``[]`` when nothing usable came back."""
        result = await self._suggest("note_tags", _note_prompt(title, content), TagSuggestion)
        return normalize_tags(result.tags) if result else []

    async def _suggest(
        self, operation: str, prompt: str, schema: type[SchemaT]
    ) -> Optional[SchemaT]:
        if not self._enabled:
            AI_SUGGESTIONS.labels(operation=operation, outcome="disabled").inc()
            return None

        with AI_DURATION.labels(operation=operation).time():
            raw = await self._generate(prompt, schema.model_json_schema())

        result = self._parse(raw, schema) if raw is not None else None
        outcome = "success" if result is not None else "failure"
        AI_SUGGESTIONS.labels(operation=operation, outcome=outcome).inc()
        logger.info("AI %s suggestion — %s", operation, outcome)
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _generate(self, prompt: str, schema: dict[str, Any]) -> Optional[str]:
        """Send *prompt* to Ollama and return the response text, or None."""
        payload = {
            "model": self._model,
            "prompt": prompt,
            "format": schema,
            "stream": False,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.post(self._generate_url, json=payload)
                resp.raise_for_status()
                data = resp.json()
        except httpx.ConnectError:
            logger.error("Cannot connect to Ollama at %s", self._base_url)
            return None
        except httpx.TimeoutException:
            logger.error("Ollama request timed out after %ss", self._timeout)
            return None
        except Exception as exc:
            logger.error("Ollama request failed: %s", exc)
            return None

        if not isinstance(data, dict) or not isinstance(data.get("response"), str):
            logger.warning("Ollama reply has no text response: %r", data)
            return None
        return _strip_thinking_tags(data["response"])

    @staticmethod
    def _parse(raw: str, schema: type[SchemaT]) -> Optional[SchemaT]:
        try:
            return schema.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning(
                "AI response does not match %s schema (%d errors): %.200s",
                schema.__name__,
                exc.error_count(),
                raw,
            )
            return None


# ---------------------------------------------------------------------------
# Merge policy
# ---------------------------------------------------------------------------


def merge_tags(existing: list[str], suggested: list[str]) -> list[str]:
    """Union of *existing* and *suggested*, existing order first, no duplicates."""
    return normalize_tags([*existing, *suggested])


def apply_bookmark_metadata(
    draft: BookmarkDraft, metadata: Optional[BookmarkMetadata]
) -> BookmarkDraft:
    """Fill empty title/description from *metadata* and merge its tags."""
    if metadata is None:
        return draft
    return draft.model_copy(
        update={
            "title": draft.title or metadata.title,
            "description": draft.description or metadata.description,
            "tags": merge_tags(draft.tags, metadata.tags),
        }
    )


def apply_note_tags(draft: NoteDraft, tags: list[str]) -> NoteDraft:
    return draft.model_copy(update={"tags": merge_tags(draft.tags, tags)})


async def autofill_bookmark(suggester: OllamaSuggester, draft: BookmarkDraft) -> BookmarkDraft:
    """Run a metadata suggestion for *draft* and merge it in."""
    if not draft.url:
        return draft
    metadata = await suggester.suggest_bookmark_metadata(draft.url)
    return apply_bookmark_metadata(draft, metadata)


async def autotag_note(suggester: OllamaSuggester, draft: NoteDraft) -> NoteDraft:
    """Run a tag suggestion for *draft* and merge the tags in."""
    if not draft.content:
        return draft
    tags = await suggester.suggest_note_tags(draft.title, draft.content)
    return apply_note_tags(draft, tags)
