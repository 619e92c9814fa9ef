"""Per-article summaries for a list of items, run on a small worker pool."""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from .models import ArticleSummary, NewsItem
from .summarizer import CompletionModel

log = logging.getLogger("news_digest.batch")

DEFAULT_CONCURRENCY = 3
MAX_CONCURRENCY = 8
MAX_ENTITIES = 5

ARTICLE_SYSTEM_PROMPT = """You are a concise news summarizer.
- Produce a factual, neutral summary in 50-70 words.
- Also return "sentiment" as one of "positive" | "neutral" | "negative".
- Also return up to 5 key "entities" (strings).
- If only the title/description is available, prefix the summary with "Preview: ".
- Output strict JSON only: {"summary": string, "sentiment": "...", "entities": string[]}."""


@dataclass
class BatchItemResult:
    index: int
    item: NewsItem
    summary: Optional[ArticleSummary]
    error: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        body = self.item.to_wire()
        if self.summary is not None:
            body.update(self.summary.model_dump())
        if self.error is not None:
            body["error"] = self.error
        return body


@dataclass
class BatchRunResult:
    items: List[BatchItemResult]
    model: str

    @property
    def failures(self) -> List[BatchItemResult]:
        return [item for item in self.items if item.error is not None]


def parse_article_summary(raw: Optional[str]) -> ArticleSummary:
    """Lenient parse: anything unusable degrades to an empty neutral summary."""
    try:
        data = json.loads(raw or "{}")
    except json.JSONDecodeError:
        return ArticleSummary()
    if not isinstance(data, dict):
        return ArticleSummary()
    entities = data.get("entities")
    try:
        return ArticleSummary(
            summary=data.get("summary") if isinstance(data.get("summary"), str) else "",
            sentiment=data.get("sentiment") or "neutral",
            entities=[e for e in entities if isinstance(e, str)][:MAX_ENTITIES]
            if isinstance(entities, list)
            else [],
        )
    except ValidationError:
        return ArticleSummary(summary=data.get("summary") if isinstance(data.get("summary"), str) else "")


def summarize_article(
    model: CompletionModel, topic: str, item: NewsItem, *, model_name: Optional[str] = None
) -> ArticleSummary:
    user_prompt = (
        f"Topic: {topic}\n"
        f"Title: {item.title}\n"
        f"Description: {item.description or 'N/A'}"
    )
    raw = model.complete(ARTICLE_SYSTEM_PROMPT, user_prompt, model=model_name, json_mode=True)
    return parse_article_summary(raw)


def clamp_concurrency(requested: Optional[int]) -> int:
    return max(1, min(requested or DEFAULT_CONCURRENCY, MAX_CONCURRENCY))


def summarize_batch(
    topic: str,
    items: Sequence[NewsItem],
    model: CompletionModel,
    *,
    concurrency: Optional[int] = DEFAULT_CONCURRENCY,
    model_name: Optional[str] = None,
) -> BatchRunResult:
    """
    Summarize each item independently.

    Each result lands in the slot of its source index, so output order matches
    input order whatever the completion order. Failures are recorded per item.
    """
    resolved_model = model_name or model.quality_model
    if not items:
        return BatchRunResult(items=[], model=resolved_model)

    worker_count = min(clamp_concurrency(concurrency), len(items))
    slots: List[Optional[BatchItemResult]] = [None] * len(items)

    with ThreadPoolExecutor(max_workers=worker_count) as executor:
        future_map = {
            executor.submit(summarize_article, model, topic, item, model_name=resolved_model): idx
            for idx, item in enumerate(items)
        }
        for future in as_completed(future_map):
            idx = future_map[future]
            try:
                slots[idx] = BatchItemResult(index=idx, item=items[idx], summary=future.result())
            except Exception as exc:
                log.warning("Article %d failed: %s", idx, exc)
                slots[idx] = BatchItemResult(
                    index=idx, item=items[idx], summary=None, error=str(exc)
                )

    return BatchRunResult(items=[slot for slot in slots if slot is not None], model=resolved_model)
