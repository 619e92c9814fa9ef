from news_digest.models import NewsItem, SummaryStyle
from news_digest.prompts import (
    LOW_RISK_INTRO,
    build_json_prompt,
    build_text_prompt,
    line_clamp,
)


def _items(count: int = 3):
    return [
        NewsItem(
            title=f"Headline {i}",
            url=f"https://example.com/{i}",
            source=f"Source {i}",
            publishedAt=f"2025-04-1{i % 10}T10:00:00Z",
        )
        for i in range(1, count + 1)
    ]


def test_text_prompt_enumerates_items_with_source_and_url():
    pair = build_text_prompt(_items(2), "en", SummaryStyle.BALANCED)
    assert "1. Headline 1 — Source 1\n   https://example.com/1" in pair.user
    assert "2. Headline 2 — Source 2\n   https://example.com/2" in pair.user
    assert "Keep output in en." in pair.system
    assert "markdown code fences" in pair.system
    assert pair.expect_json is False


def test_text_prompt_caps_items_and_clamps_titles():
    items = _items(30)
    items[0].title = "x" * 300
    pair = build_text_prompt(items, "en", SummaryStyle.HEADLINE_FIRST)
    assert "25. Headline 25" in pair.user
    assert "26. Headline 26" not in pair.user
    assert ("x" * 179 + "…") in pair.user
    assert "x" * 180 not in pair.user


def test_text_prompt_rules_differ_per_style():
    rules = {
        style: build_text_prompt(_items(), "en", style).user for style in SummaryStyle
    }
    assert "5–8 ultra-concise" in rules[SummaryStyle.HEADLINE_FIRST]
    assert "4–7 bullet points" in rules[SummaryStyle.KEY_POINTS]
    assert "3–6 bullets" in rules[SummaryStyle.RISKS]
    assert "3–5 short sentences" in rules[SummaryStyle.BALANCED]
    assert len(set(rules.values())) == 4


def test_json_prompt_embeds_schema_style_and_lang():
    pair = build_json_prompt(_items(), "de", SummaryStyle.KEY_POINTS)
    assert pair.expect_json is True
    assert "STRICT JSON" in pair.system
    assert '"style": "key-points"' in pair.user
    assert '"lang": "de"' in pair.user
    assert '"facts"' in pair.user
    assert "Keep output language: de." in pair.user
    assert "Populate \"facts\" with up to 2" in pair.user
    assert 'Never include "Read more" text' in pair.user


def test_json_prompt_items_use_short_dates():
    items = _items(1)
    items.append(NewsItem(title="No date", url="https://example.com/x", source="S", publishedAt="garbage"))
    pair = build_json_prompt(items, "en", SummaryStyle.BALANCED)
    assert '1. title="Headline 1" src="Source 1" date="2025-04-11" url="https://example.com/1"' in pair.user
    assert '2. title="No date" src="S" date="" url="https://example.com/x"' in pair.user


def test_json_prompt_risk_style_requests_low_risk_notice():
    pair = build_json_prompt(_items(), "en", SummaryStyle.RISKS)
    assert LOW_RISK_INTRO in pair.user
    assert "3–6 bullets" in pair.user


def test_line_clamp():
    assert line_clamp("short", 10) == "short"
    assert line_clamp("abcdef", 4) == "abc…"
