"""Search pipeline: rate limit upstream, cache, provider chain, dedupe and freshness."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Protocol, Sequence
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import httpx

from .cache_keys import derive_search_cache_key, sha256_hex
from .config import Settings
from .dates import parse_timestamp
from .errors import SearchInputError, StoreError
from .models import NewsItem, SearchRequest
from .providers import ProviderResult
from .store import KeyValueStore

log = logging.getLogger("news_digest.search")

MIN_QUERY_CHARS = 2
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class ProviderChain(Protocol):
    preference: str

    def search(self, query: str, lang: str, max_items: int) -> ProviderResult: ...


@dataclass
class SearchOutcome:
    provider: str
    cached: bool
    took_ms: int
    items: List[NewsItem] = field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "provider": self.provider,
            "cached": self.cached,
            "tookMs": self.took_ms,
            "items": [item.to_wire() for item in self.items],
        }


def normalize_url(url: str) -> str:
    """Strip ``utm_*`` tracking parameters."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.scheme or not parts.netloc:
        return url
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if not k.startswith("utm_")]
    return urlunsplit(parts._replace(query=urlencode(query)))


def _published(item: NewsItem) -> datetime:
    return parse_timestamp(item.published_at) or _EPOCH


def dedupe_and_sort(items: Sequence[NewsItem]) -> List[NewsItem]:
    """Drop repeats of the same (clean url, title) and sort newest first."""
    seen = set()
    out: List[NewsItem] = []
    for item in items:
        key = sha256_hex(f"{normalize_url(item.url or '')}|{(item.title or '').strip().lower()}")
        if key in seen:
            continue
        seen.add(key)
        out.append(item)
    return sorted(out, key=_published, reverse=True)


def apply_freshness(
    items: Sequence[NewsItem], max_age_hours: int, now: Optional[datetime] = None
) -> List[NewsItem]:
    """Keep items inside the window; when none qualify, keep everything."""
    threshold = (now or datetime.now(timezone.utc)) - timedelta(hours=max_age_hours)
    fresh = [item for item in items if _published(item) >= threshold]
    return fresh if fresh else list(items)


def _read_cache(store: KeyValueStore, key: str) -> Optional[Dict[str, Any]]:
    try:
        raw = store.get(key)
    except (StoreError, httpx.HTTPError) as exc:
        log.warning("Search cache read failed: %s", exc)
        return None
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    return data if isinstance(data, dict) and isinstance(data.get("items"), list) else None


def _write_cache(store: KeyValueStore, key: str, result: ProviderResult, ttl: int) -> None:
    body = json.dumps(
        {"provider": result.provider, "items": [item.to_wire() for item in result.items]},
        ensure_ascii=False,
    )
    try:
        store.setex(key, body, ttl)
    except (StoreError, httpx.HTTPError) as exc:
        log.warning("Search cache write failed: %s", exc)


def search_news(
    request: SearchRequest,
    *,
    settings: Settings,
    providers: ProviderChain,
    store: Optional[KeyValueStore] = None,
) -> SearchOutcome:
    started = time.monotonic()
    if len(request.query) < MIN_QUERY_CHARS:
        raise SearchInputError(
            "Invalid 'q': provide at least 2 characters.",
            example={"q": "AI regulation", "lang": "en", "maxItems": 10},
        )

    cache_key = derive_search_cache_key(
        request.query, request.lang, request.max_items, providers.preference
    )
    if store is not None:
        cached = _read_cache(store, cache_key)
        if cached is not None:
            return SearchOutcome(
                provider=str(cached.get("provider") or providers.preference),
                cached=True,
                took_ms=int((time.monotonic() - started) * 1000),
                items=[NewsItem.model_validate(entry) for entry in cached["items"] if isinstance(entry, dict)],
            )

    result = providers.search(request.query, request.lang, request.max_items)
    items = apply_freshness(dedupe_and_sort(result.items), settings.freshness_hours)
    final = ProviderResult(provider=result.provider, items=items[: request.max_items])

    if store is not None:
        _write_cache(store, cache_key, final, settings.search_cache_ttl_seconds)

    log.info("Search %r via %s returned %d items", request.query, final.provider, len(final.items))
    return SearchOutcome(
        provider=final.provider,
        cached=False,
        took_ms=int((time.monotonic() - started) * 1000),
        items=final.items,
    )
