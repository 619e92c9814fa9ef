"""Summarization pipeline: validate -> cache lookup -> model or fallback -> cache write.

Quality mode asks the model for a strict JSON digest and falls back to the
extractive formatter on any failure. Fast mode never calls the model. The
caller always gets real content or an explicit input error.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx
from pydantic import ValidationError

from .blocks import normalize_blocks, parse_model_json
from .cache_keys import derive_summary_cache_key
from .config import Settings
from .dates import utc_now_iso
from .errors import StoreError, SummarizeInputError
from .fallback import PLACEHOLDER_TEXT, format_fallback
from .models import (
    NewsItem,
    SummarizeRequest,
    SummaryBlock,
    SummaryMode,
    SummaryPayload,
    SummaryStyle,
)
from .prompts import build_json_prompt
from .schema import SUMMARY_PAYLOAD, validate_payload
from .store import KeyValueStore

log = logging.getLogger("news_digest.summarizer")

NO_ITEMS_ERROR = "No items provided. Pass 'items: NewsItem[]' from /search."
NO_USABLE_ITEMS_ERROR = (
    "No usable items after normalization. Each item must include: "
    "title, url, source, publishedAt."
)
NO_USABLE_ITEMS_HINT = (
    "Ensure your /search response provides 'source' and ISO 'publishedAt' for every item."
)

# Store failures worth swallowing; anything else is a bug and propagates.
_STORE_FAILURES = (StoreError, httpx.HTTPError)


class CompletionModel(Protocol):
    quality_model: str

    def complete(
        self, system: str, user: str, *, model: Optional[str] = None, json_mode: bool = False
    ) -> str: ...


@dataclass
class SummarizeOutcome:
    payload: SummaryPayload
    cached: bool
    cache_key: str

    def to_response(self) -> Dict[str, Any]:
        return {"ok": True, "cached": self.cached, **self.payload.to_wire()}


@dataclass
class ModelDigest:
    blocks: List[SummaryBlock]
    header: Optional[str] = None
    intro: Optional[str] = None
    outro: Optional[str] = None


def _example_item() -> Dict[str, str]:
    return {
        "title": "Sample",
        "url": "https://example.com",
        "source": "Example",
        "publishedAt": datetime.now(timezone.utc).isoformat(),
    }


def compact_items(items: Sequence[NewsItem], limit: int) -> List[NewsItem]:
    """Drop unusable items, then keep the first ``limit``."""
    return [item for item in items if item.is_usable()][:limit]


def validate_request(request: SummarizeRequest) -> List[NewsItem]:
    """Return the usable, clamped item list or raise SummarizeInputError."""
    if not request.items:
        raise SummarizeInputError(
            NO_ITEMS_ERROR,
            example={
                "items": [_example_item()],
                "lang": "en",
                "maxItems": 5,
                "summaryStyle": "key-points",
            },
        )
    items = compact_items(request.items, request.max_items)
    if not items:
        raise SummarizeInputError(
            NO_USABLE_ITEMS_ERROR,
            hint=NO_USABLE_ITEMS_HINT,
            received_count=len(request.items),
            example=_example_item(),
        )
    return items


def read_cached_payload(store: KeyValueStore, key: str) -> Optional[SummaryPayload]:
    """
    Return a cached payload with real content, or None.

    Store failures, malformed entries and empty payloads all count as a miss.
    """
    try:
        raw = store.get(key)
    except _STORE_FAILURES as exc:
        log.warning("Cache read failed for %s: %s", key, exc)
        return None
    if not raw:
        return None
    try:
        data = json.loads(raw)
        validate_payload(data, SUMMARY_PAYLOAD)
        payload = SummaryPayload.model_validate(data)
    except (ValueError, ValidationError) as exc:
        log.warning("Ignoring malformed cache entry %s: %s", key, exc)
        return None
    if not payload.has_content():
        log.debug("Ignoring empty cache entry %s", key)
        return None
    return payload


def write_cached_payload(
    store: KeyValueStore, key: str, payload: SummaryPayload, ttl_seconds: int
) -> bool:
    """Persist a payload that carries content; returns whether a write happened."""
    if not payload.has_content():
        return False
    try:
        store.setex(key, json.dumps(payload.to_wire(), ensure_ascii=False), ttl_seconds)
    except _STORE_FAILURES as exc:
        log.warning("Cache write failed for %s: %s", key, exc)
        return False
    return True


def _optional_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def request_model_digest(
    model: CompletionModel, items: Sequence[NewsItem], lang: str, style: SummaryStyle
) -> ModelDigest:
    """
    Ask the quality model for a JSON digest and normalize it.

    Raises on transport errors, unparsable output, or when no valid block survives.
    """
    prompt = build_json_prompt(items, lang, style)
    raw = model.complete(
        prompt.system, prompt.user, model=model.quality_model, json_mode=prompt.expect_json
    )
    parsed = parse_model_json(raw)
    blocks = normalize_blocks(parsed.get("blocks"), style)
    if not blocks:
        raise ValueError("Model output contained no usable blocks")
    return ModelDigest(
        blocks=blocks,
        header=_optional_text(parsed.get("header")),
        intro=_optional_text(parsed.get("intro")),
        outro=_optional_text(parsed.get("outro")),
    )


def summarize_news(
    request: SummarizeRequest,
    *,
    settings: Settings,
    store: Optional[KeyValueStore] = None,
    model: Optional[CompletionModel] = None,
) -> SummarizeOutcome:
    """Run the full summarization pipeline for one request."""
    items = validate_request(request)
    cache_key = derive_summary_cache_key(
        version=settings.summary_cache_version,
        lang=request.lang,
        max_items=request.max_items,
        mode=request.mode,
        style=request.style,
        items=items,
    )
    use_cache = store is not None and not settings.disable_cache

    if use_cache:
        cached = read_cached_payload(store, cache_key)
        if cached is not None:
            log.info("Cache hit %s", cache_key)
            return SummarizeOutcome(payload=cached, cached=True, cache_key=cache_key)

    digest: Optional[ModelDigest] = None
    summary_text: Optional[str] = None

    if request.mode is SummaryMode.QUALITY:
        try:
            if model is None:
                raise RuntimeError("No model configured; OPENAI_API_KEY is missing")
            digest = request_model_digest(model, items, request.lang, request.style)
        except Exception as exc:
            level = logging.WARNING if settings.debug else logging.DEBUG
            log.log(level, "Quality digest failed, using extractive fallback: %s", exc)
            summary_text = format_fallback(items, request.lang, request.style)
    else:
        summary_text = format_fallback(items, request.lang, request.style)

    if digest is None and not (summary_text and summary_text.strip()):
        summary_text = format_fallback(items, request.lang, request.style)
        if not summary_text.strip():
            summary_text = PLACEHOLDER_TEXT

    payload = SummaryPayload(
        mode=request.mode,
        style=request.style,
        count=len(items),
        summary_text=summary_text,
        header=digest.header if digest else None,
        intro=digest.intro if digest else None,
        outro=digest.outro if digest else None,
        blocks=digest.blocks if digest else None,
        at=utc_now_iso(),
    )

    if use_cache:
        write_cached_payload(store, cache_key, payload, settings.summary_cache_ttl_seconds)

    return SummarizeOutcome(payload=payload, cached=False, cache_key=cache_key)
