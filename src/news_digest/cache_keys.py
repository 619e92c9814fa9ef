"""Stable, order-independent fingerprints for cache entries."""

from __future__ import annotations

import hashlib
import json
from typing import Sequence

from .models import NewsItem, SummaryMode, SummaryStyle


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def derive_summary_cache_key(
    *,
    version: str,
    lang: str,
    max_items: int,
    mode: SummaryMode,
    style: SummaryStyle,
    items: Sequence[NewsItem],
) -> str:
    """
    Key a summarization request as ``summ:v<version>:<sha256>``.

    Only title and url of each item participate, sorted by url+title, so item
    order never changes the key. The version sits both in the hashed body and
    in the prefix, so a bump makes old entries unreachable.
    """
    projected = sorted(
        ({"t": item.title or "", "u": item.url or ""} for item in items),
        key=lambda entry: entry["u"] + entry["t"],
    )
    body = json.dumps(
        {
            "v": version,
            "lang": lang,
            "max": max_items,
            "mode": mode.value,
            "style": style.value,
            "items": projected,
        },
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return f"summ:v{version}:{sha256_hex(body)}"


def derive_search_cache_key(query: str, lang: str, max_items: int, provider: str) -> str:
    return "search:" + sha256_hex("|".join([query, lang, str(max_items), provider]))
