"""Data models for the news digest pipeline."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_SUMMARY_MAX_ITEMS = 8
DEFAULT_SEARCH_MAX_ITEMS = 10
MAX_ITEMS_CEILING = 25


class SummaryStyle(str, Enum):
    BALANCED = "balanced"
    HEADLINE_FIRST = "headline-first"
    KEY_POINTS = "key-points"
    RISKS = "risks"

    @classmethod
    def coerce(cls, raw: Any) -> "SummaryStyle":
        """Unknown or missing styles fall back to balanced."""
        try:
            return cls(raw)
        except ValueError:
            return cls.BALANCED


class SummaryMode(str, Enum):
    FAST = "fast"
    QUALITY = "quality"

    @classmethod
    def coerce(cls, raw: Any) -> "SummaryMode":
        return cls.QUALITY if raw == cls.QUALITY.value else cls.FAST


class BlockKind(str, Enum):
    HEADLINE = "headline"
    KEY_POINT = "keyPoint"
    RISK = "risk"
    BALANCED = "balanced"


class NewsItem(BaseModel):
    """One article as returned by a news provider; fields may be missing on input."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: Optional[str] = None
    url: Optional[str] = None
    source: Optional[str] = None
    published_at: Optional[str] = Field(None, alias="publishedAt")
    description: Optional[str] = None

    @field_validator("title", "url", "source", "published_at", "description", mode="before")
    @classmethod
    def _text_or_none(cls, value: Any) -> Optional[str]:
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, str):
            return value
        return None

    def is_usable(self) -> bool:
        """Title, url, source and publishedAt must all be present and non-blank."""
        return all(
            (value or "").strip()
            for value in (self.title, self.url, self.source, self.published_at)
        )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class SummaryBlock(BaseModel):
    """Structured digest unit tied to a single source article."""

    model_config = ConfigDict(populate_by_name=True)

    kind: BlockKind
    idx: int = Field(..., ge=1, description="1-based position.")
    title: str
    url: str = Field(..., min_length=1)
    source: Optional[str] = None
    date: Optional[str] = Field(None, description="YYYY-MM-DD")
    facts: Optional[List[str]] = Field(None, description="Only meaningful for keyPoint blocks.")


class SummaryPayload(BaseModel):
    """Unit returned to the caller and persisted to the cache."""

    model_config = ConfigDict(populate_by_name=True)

    mode: SummaryMode
    style: SummaryStyle
    count: int
    summary_text: Optional[str] = Field(None, alias="summaryText")
    header: Optional[str] = None
    intro: Optional[str] = None
    outro: Optional[str] = None
    blocks: Optional[List[SummaryBlock]] = None
    at: str

    def has_content(self) -> bool:
        has_text = bool(self.summary_text and self.summary_text.strip())
        return has_text or bool(self.blocks)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ArticleSummary(BaseModel):
    """Per-article model output used by the batch summarizer."""

    summary: str = ""
    sentiment: Literal["positive", "neutral", "negative"] = "neutral"
    entities: List[str] = Field(default_factory=list)


# --- Request containers ----------------------------------------------------

def normalize_lang(raw: Any) -> str:
    """Two-letter lower-case language code; anything else becomes ``en``."""
    if isinstance(raw, str) and len(raw) == 2:
        return raw.lower()
    return "en"


def clamp_max_items(raw: Any, default: int) -> int:
    value = default
    if isinstance(raw, (int, float)) and not isinstance(raw, bool) and math.isfinite(raw):
        value = int(raw)
    return max(1, min(MAX_ITEMS_CEILING, value))


def _parse_items(raw: Any) -> List[NewsItem]:
    if not isinstance(raw, list):
        return []
    items: List[NewsItem] = []
    for entry in raw:
        if isinstance(entry, dict):
            items.append(NewsItem.model_validate(entry))
        else:
            # Keep the slot so the raw count stays visible; it is never usable.
            items.append(NewsItem())
    return items


@dataclass
class SummarizeRequest:
    items: List[NewsItem]
    lang: str = "en"
    max_items: int = DEFAULT_SUMMARY_MAX_ITEMS
    mode: SummaryMode = SummaryMode.FAST
    style: SummaryStyle = SummaryStyle.BALANCED

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "SummarizeRequest":
        """Build a request from an untrusted JSON body, applying defaults and clamps."""
        return cls(
            items=_parse_items(payload.get("items")),
            lang=normalize_lang(payload.get("lang")),
            max_items=clamp_max_items(payload.get("maxItems"), DEFAULT_SUMMARY_MAX_ITEMS),
            mode=SummaryMode.coerce(payload.get("mode")),
            style=SummaryStyle.coerce(payload.get("summaryStyle")),
        )


@dataclass
class SearchRequest:
    query: str
    lang: str = "en"
    max_items: int = DEFAULT_SEARCH_MAX_ITEMS

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "SearchRequest":
        raw_q = payload.get("q")
        return cls(
            query=raw_q.strip() if isinstance(raw_q, str) else "",
            lang=normalize_lang(payload.get("lang")),
            max_items=clamp_max_items(payload.get("maxItems"), DEFAULT_SEARCH_MAX_ITEMS),
        )


@dataclass
class BatchRequest:
    topic: str
    items: List[NewsItem] = field(default_factory=list)
    concurrency: int = 3

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "BatchRequest":
        topic = payload.get("topic")
        concurrency = payload.get("concurrency")
        return cls(
            topic=topic.strip() if isinstance(topic, str) else "",
            items=[item for item in _parse_items(payload.get("items")) if item.title and item.url],
            concurrency=concurrency if isinstance(concurrency, int) and not isinstance(concurrency, bool) else 3,
        )
