"""Prompt templates for the text and strict-JSON digest builders."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence

from .dates import short_date
from .models import NewsItem, SummaryStyle

TEXT_PROMPT_ITEM_LIMIT = 25
TEXT_TITLE_MAX_CHARS = 180


@dataclass(frozen=True)
class PromptPair:
    system: str
    user: str
    expect_json: bool = False


# --- Text builder ------------------------------------------------------------

TEXT_STYLE_RULES: Dict[SummaryStyle, tuple[str, str]] = {
    SummaryStyle.BALANCED: (
        "Balanced digest",
        "Write 3–5 short sentences covering the main themes across all items.\n"
        "Include at most 1 notable quote (optional). End with a one-line takeaway.",
    ),
    SummaryStyle.HEADLINE_FIRST: (
        "Headlines digest",
        "List 5–8 ultra-concise headline-style bullets (max ~14 words each).\n"
        "Each bullet should be self-contained and newsy. No commentary lines.",
    ),
    SummaryStyle.KEY_POINTS: (
        "Key points",
        "Produce 4–7 bullet points with concrete facts (numbers, names, dates).\n"
        "Avoid repetition and adjectives. Each bullet must contain a distinct data point.",
    ),
    SummaryStyle.RISKS: (
        "Risks & uncertainties",
        "Write 3–6 bullets focusing ONLY on risks, unknowns, controversies, or caveats.\n"
        "If risk is low/unclear, call it out explicitly. Provide short rationale per bullet.",
    ),
}


def line_clamp(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 1] + "…"


def _text_item_list(items: Sequence[NewsItem]) -> str:
    lines = []
    for position, item in enumerate(items[:TEXT_PROMPT_ITEM_LIMIT], start=1):
        title = line_clamp(item.title or "Untitled", TEXT_TITLE_MAX_CHARS)
        source = f" — {item.source}" if item.source else ""
        lines.append(f"{position}. {title}{source}\n   {item.url or ''}")
    return "\n".join(lines)


def build_text_prompt(items: Sequence[NewsItem], lang: str, style: SummaryStyle) -> PromptPair:
    """Plain-text digest prompt: heading line, then bullets or sentences per style."""
    title, rules = TEXT_STYLE_RULES[style]
    system = (
        "You are an expert news summarizer. Always be concise, non-repetitive, "
        "and faithful to sources.\n"
        "- Do not invent facts.\n"
        "- Use the requested style exactly.\n"
        f"- Keep output in {lang}.\n"
        "- Never include markdown code fences."
    )
    user = (
        f"{title} for a set of news items (language: {lang}).\n\n"
        f"Rules:\n{rules}\n\n"
        f"Items:\n{_text_item_list(items)}\n\n"
        "Output format:\n"
        f'- Start with a single line heading: "{title} ({lang})"\n'
        "- Then your bullets/sentences.\n"
        '- For each item referenced, append a "Read more » <URL>" anchor line on its own '
        "ONLY if it adds value.\n"
        "- Do NOT output markdown code blocks. No extra preambles."
    )
    return PromptPair(system=system, user=user)


# --- JSON builder ------------------------------------------------------------

JSON_SYSTEM_PROMPT = (
    "You are a precise, style-aware news summarizer that returns STRICT JSON only.\n"
    "Follow the schema exactly. Refuse to output markdown or free text."
)

JSON_SCHEMA_BRIEF = """Return a strict JSON object with this shape:
{{
  "ok": true,
  "style": "{style}",
  "lang": "{lang}",
  "header": string,
  "intro": string | null,
  "outro": string | null,
  "blocks": Array<{{
    "kind": "headline" | "keyPoint" | "risk" | "balanced",
    "idx": number,          // 1-based
    "title": string,        // concise rewrite, not verbatim; <= 14 words for headlines, <= 18 for others
    "url": string,
    "source": string | null,
    "date": string | null,  // YYYY-MM-DD if known
    "facts": string[] | null // ONLY for keyPoint (numbers, %s, "Week 10", years...), max 2 items
  }}>
}}
No extra keys. No markdown."""

LOW_RISK_INTRO = "Low apparent risk in this set."

JSON_STYLE_RULES: Dict[SummaryStyle, str] = {
    SummaryStyle.HEADLINE_FIRST: (
        "STYLE: Headlines.\n"
        "- 5–8 bullets, ultra-concise, newsy, at most 14 words each.\n"
        "- Do NOT include commentary sentences.\n"
        "- Max 1 item per domain if possible (prefer diverse sources).\n"
        '- NO "Read more" text.'
    ),
    SummaryStyle.KEY_POINTS: (
        "STYLE: Key points.\n"
        "- 4–7 bullets, each must contain a concrete fact (number, %, date, \"Week 10\", year, etc.).\n"
        '- Populate "facts" with up to 2 tokens extracted from the bullet\'s content.\n'
        "- Keep blocks factual; avoid adjectives."
    ),
    SummaryStyle.RISKS: (
        "STYLE: Risks & uncertainties.\n"
        "- 3–6 bullets ONLY if risk-/uncertainty-related.\n"
        f'- If very few items contain risk signals, set "intro" to "{LOW_RISK_INTRO}" '
        "and still output 3–4 most relevant.\n"
        "- Title should hint the risk (ban, probe, outage, lawsuit, recall, etc.)."
    ),
    SummaryStyle.BALANCED: (
        "STYLE: Balanced.\n"
        "- 5–9 bullets mixed; include (source | date) in metadata but keep titles concise.\n"
        '- "intro" may include "Top sources: X ×2, Y ×1".'
    ),
}

JSON_COMMON_RULES = """Important:
- Do NOT copy headlines verbatim; lightly rewrite them to be concise.
- Keep output language: {lang}.
- Every block MUST include a valid non-empty "url".
- Never include "Read more" text; links are represented by the "url" field only."""


def _json_item_list(items: Sequence[NewsItem]) -> str:
    lines = []
    for position, item in enumerate(items, start=1):
        date = short_date(item.published_at) or ""
        lines.append(
            f'{position}. title="{item.title or "Untitled"}" src="{item.source or ""}" '
            f'date="{date}" url="{item.url or ""}"'
        )
    return "\n".join(lines)


def build_json_prompt(items: Sequence[NewsItem], lang: str, style: SummaryStyle) -> PromptPair:
    """Strict-JSON digest prompt for quality mode."""
    user = (
        f"{JSON_SCHEMA_BRIEF.format(style=style.value, lang=lang)}\n\n"
        f"{JSON_STYLE_RULES[style]}\n\n"
        f"{JSON_COMMON_RULES.format(lang=lang)}\n\n"
        f"Here are the items:\n{_json_item_list(items)}\n\n"
        "Now produce the JSON object."
    )
    return PromptPair(system=JSON_SYSTEM_PROMPT, user=user, expect_json=True)
