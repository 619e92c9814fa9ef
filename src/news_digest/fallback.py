"""Deterministic, style-aware extractive digest used when the model is skipped or fails."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .dates import short_date
from .models import NewsItem, SummaryStyle

ELLIPSIS = "…"
PLACEHOLDER_TEXT = "No valid articles to summarize for the selected query."


@dataclass(frozen=True)
class FallbackPolicy:
    max_items: int
    title_words: int
    header: str
    footer: str
    marker: str = ""
    show_date: bool = False


POLICIES: Dict[SummaryStyle, FallbackPolicy] = {
    SummaryStyle.HEADLINE_FIRST: FallbackPolicy(
        max_items=8,
        title_words=12,
        header="Headlines digest ({lang}) — top {n} item(s):",
        footer="— End of headlines —",
    ),
    SummaryStyle.KEY_POINTS: FallbackPolicy(
        max_items=8,
        title_words=18,
        header="Key points ({lang}) — facts & dates across {n} item(s):",
        footer="— End of key points —",
        show_date=True,
    ),
    SummaryStyle.RISKS: FallbackPolicy(
        max_items=6,
        title_words=14,
        header="⚠ Risk scan ({lang}) — review of {n} item(s):",
        footer="— Risk scan complete —",
        marker="⚠ ",
    ),
    SummaryStyle.BALANCED: FallbackPolicy(
        max_items=10,
        title_words=16,
        header="Balanced summary ({lang}) — {n} item(s):",
        footer="— End of summary —",
    ),
}


def clamp_words(text: Optional[str], max_words: int) -> str:
    """Keep the first ``max_words`` words, appending an ellipsis when truncated."""
    value = text or "Untitled"
    words = value.split()
    if len(words) <= max_words:
        return value
    return " ".join(words[:max_words]) + ELLIPSIS


def _format_line(position: int, item: NewsItem, policy: FallbackPolicy) -> str:
    title = clamp_words(item.title, policy.title_words)
    meta_parts: List[str] = [item.source] if item.source else []
    if policy.show_date:
        date = short_date(item.published_at)
        if date:
            meta_parts.append(date)
    meta = " · ".join(meta_parts)
    suffix = f" — {meta}" if meta else ""
    return f"{policy.marker}[{position}] {title}{suffix} » {item.url}"


def format_fallback(items: Sequence[NewsItem], lang: str, style: SummaryStyle) -> str:
    """
    Render ``header``, one line per item (up to the style's cap) and ``footer``.

    The header counts every item passed in, not just the ones shown.
    """
    policy = POLICIES.get(style, POLICIES[SummaryStyle.BALANCED])
    header = policy.header.format(lang=lang, n=len(items))
    lines = [
        _format_line(position, item, policy)
        for position, item in enumerate(items[: policy.max_items], start=1)
    ]
    return f"{header}\n\n" + "\n".join(lines) + f"\n\n{policy.footer}"
