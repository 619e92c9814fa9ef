"""GNews and NewsAPI clients that return normalized ``NewsItem`` lists."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx

from .config import Settings
from .dates import parse_timestamp, utc_now_iso
from .errors import ProviderError
from .models import NewsItem

log = logging.getLogger("news_digest.providers")

GNEWS_URL = "https://gnews.io/api/v4/search"
NEWSAPI_URL = "https://newsapi.org/v2/everything"
USER_AGENT = "news-digest/0.1"


@dataclass
class ProviderResult:
    provider: str
    items: List[NewsItem]


def _iso_or_now(raw: Any) -> str:
    parsed = parse_timestamp(raw)
    if parsed is None:
        return utc_now_iso()
    return parsed.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _normalize_articles(articles: Any, default_source: str) -> List[NewsItem]:
    items: List[NewsItem] = []
    if not isinstance(articles, list):
        return items
    for article in articles:
        if not isinstance(article, dict) or not article.get("title") or not article.get("url"):
            continue
        source = article.get("source") if isinstance(article.get("source"), dict) else {}
        items.append(
            NewsItem(
                title=article["title"],
                url=article["url"],
                source=source.get("name") or default_source,
                published_at=_iso_or_now(article.get("publishedAt")),
                description=article.get("description"),
            )
        )
    return items


def _get_json(client: httpx.Client, url: str, params: Dict[str, Any], label: str) -> Dict[str, Any]:
    try:
        resp = client.get(url, params=params, headers={"User-Agent": USER_AGENT})
    except httpx.HTTPError as exc:
        raise ProviderError(f"{label} request failed: {exc}") from exc
    if resp.status_code >= 400:
        raise ProviderError(f"{label} HTTP {resp.status_code}: {resp.text[:200]}")
    try:
        data = resp.json()
    except ValueError as exc:
        raise ProviderError(f"{label} returned invalid JSON") from exc
    return data if isinstance(data, dict) else {}


def fetch_gnews(
    client: httpx.Client, api_key: Optional[str], query: str, lang: str, max_items: int
) -> ProviderResult:
    if not api_key:
        raise ProviderError("GNEWS_API_KEY missing")
    params = {"q": query, "lang": lang, "max": str(max_items), "token": api_key, "sortby": "publishedAt"}
    data = _get_json(client, GNEWS_URL, params, "GNews")
    return ProviderResult(provider="gnews", items=_normalize_articles(data.get("articles"), "GNews"))


def fetch_newsapi(
    client: httpx.Client, api_key: Optional[str], query: str, lang: str, max_items: int
) -> ProviderResult:
    if not api_key:
        raise ProviderError("NEWSAPI_KEY missing")
    params = {
        "q": query,
        "language": lang,
        "pageSize": str(max_items),
        "sortBy": "publishedAt",
        "apiKey": api_key,
    }
    data = _get_json(client, NEWSAPI_URL, params, "NewsAPI")
    return ProviderResult(provider="newsapi", items=_normalize_articles(data.get("articles"), "NewsAPI"))


Fetcher = Callable[[str, str, int], ProviderResult]


class NewsProviders:
    """Provider chain built from settings; the preferred provider falls back to the other."""

    def __init__(self, settings: Settings, client: Optional[httpx.Client] = None) -> None:
        self._settings = settings
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(settings.provider_timeout_seconds),
            follow_redirects=True,
        )

    def close(self) -> None:
        self._client.close()

    @property
    def preference(self) -> str:
        pref = (self._settings.news_provider or "gnews").lower()
        return pref if pref in ("gnews", "newsapi", "auto") else "gnews"

    def _gnews(self, query: str, lang: str, max_items: int) -> ProviderResult:
        return fetch_gnews(self._client, self._settings.gnews_api_key, query, lang, max_items)

    def _newsapi(self, query: str, lang: str, max_items: int) -> ProviderResult:
        return fetch_newsapi(self._client, self._settings.newsapi_key, query, lang, max_items)

    def chain(self) -> List[Fetcher]:
        pref = self.preference
        if pref == "newsapi":
            chain = [self._newsapi]
            if self._settings.gnews_api_key:
                chain.append(self._gnews)
            return chain
        chain = [self._gnews]
        if pref == "auto" or self._settings.newsapi_key:
            chain.append(self._newsapi)
        return chain

    def search(self, query: str, lang: str, max_items: int) -> ProviderResult:
        """
        Try each provider in order; an empty result moves on to the next one.

        Raises ProviderError only when every provider failed.
        """
        last_error: Optional[Exception] = None
        empty: Optional[ProviderResult] = None
        for fetch in self.chain():
            try:
                result = fetch(query, lang, max_items)
            except ProviderError as exc:
                log.warning("Provider failed: %s", exc)
                last_error = exc
                continue
            if result.items:
                return result
            empty = empty or result
        if empty is not None:
            return empty
        raise ProviderError(f"All providers failed: {last_error}")
