"""Repair loosely-typed model output into strict ``SummaryBlock`` lists."""

from __future__ import annotations

import json
import math
from typing import Any, Dict, List, Optional

from .dates import short_date
from .models import BlockKind, SummaryBlock, SummaryStyle

MAX_FACTS = 2

KIND_ALIASES: Dict[str, BlockKind] = {
    "headline": BlockKind.HEADLINE,
    "headline-first": BlockKind.HEADLINE,
    "keypoint": BlockKind.KEY_POINT,
    "key-points": BlockKind.KEY_POINT,
    "key_points": BlockKind.KEY_POINT,
    "risk": BlockKind.RISK,
    "risks": BlockKind.RISK,
    "balanced": BlockKind.BALANCED,
}

STYLE_DEFAULT_KIND: Dict[SummaryStyle, BlockKind] = {
    SummaryStyle.HEADLINE_FIRST: BlockKind.HEADLINE,
    SummaryStyle.KEY_POINTS: BlockKind.KEY_POINT,
    SummaryStyle.RISKS: BlockKind.RISK,
    SummaryStyle.BALANCED: BlockKind.BALANCED,
}


def parse_model_json(raw_text: str) -> Dict[str, Any]:
    """
    Parse raw model output into an untyped dict.
    Raises ValueError if the text is not a JSON object.
    """
    cleaned = raw_text.strip()
    # Tolerate a markdown fence even though the prompt forbids it.
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else cleaned[3:]
        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]
        cleaned = cleaned.strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON from model: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("Model output is not a JSON object")
    return data


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def normalize_kind(raw: Any, fallback: BlockKind) -> BlockKind:
    key = raw.lower() if isinstance(raw, str) else ""
    return KIND_ALIASES.get(key, fallback)


def _normalize_idx(raw: Any, position: int) -> int:
    if isinstance(raw, (int, float)) and not isinstance(raw, bool) and math.isfinite(raw):
        if int(raw) >= 1:
            return int(raw)
    return position


def _normalize_facts(raw: Any) -> Optional[List[str]]:
    if not isinstance(raw, list):
        return None
    facts = [fact.strip() for fact in raw if isinstance(fact, str) and fact.strip()]
    return facts[:MAX_FACTS] or None


def normalize_blocks(raw_blocks: Any, style: SummaryStyle) -> Optional[List[SummaryBlock]]:
    """
    Convert an untrusted array into valid blocks, preserving order.

    Entries without a url are dropped; every other field gets a default or is
    omitted. Returns None when nothing survives so callers can fall back.
    """
    if not isinstance(raw_blocks, list):
        return None
    fallback_kind = STYLE_DEFAULT_KIND[style]

    out: List[SummaryBlock] = []
    for position, entry in enumerate(raw_blocks, start=1):
        if not isinstance(entry, dict):
            continue
        url = _text(entry.get("url"))
        if not url:
            continue
        out.append(
            SummaryBlock(
                kind=normalize_kind(entry.get("kind"), fallback_kind),
                idx=_normalize_idx(entry.get("idx"), position),
                title=_text(entry.get("title")) or "Untitled",
                url=url,
                source=_text(entry.get("source")) or None,
                date=short_date(entry.get("date")),
                facts=_normalize_facts(entry.get("facts")),
            )
        )
    return out or None
