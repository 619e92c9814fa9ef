from itertools import permutations

from news_digest.cache_keys import derive_search_cache_key, derive_summary_cache_key
from news_digest.models import NewsItem, SummaryMode, SummaryStyle


def _items():
    return [
        NewsItem(title="Rates held", url="https://a.example/1", source="A", publishedAt="2025-01-01"),
        NewsItem(title="Chip export rules", url="https://b.example/2", source="B", publishedAt="2025-01-02"),
        NewsItem(title="Storm warning", url="https://c.example/3", source="C", publishedAt="2025-01-03"),
    ]


def _key(items, **overrides):
    args = {
        "version": "7",
        "lang": "en",
        "max_items": 8,
        "mode": SummaryMode.FAST,
        "style": SummaryStyle.BALANCED,
        "items": items,
    }
    args.update(overrides)
    return derive_summary_cache_key(**args)


def test_key_is_stable_across_item_order():
    keys = {_key(list(order)) for order in permutations(_items())}
    assert len(keys) == 1


def test_key_has_version_prefix_and_hex_digest():
    key = _key(_items())
    prefix, version, digest = key.split(":")
    assert prefix == "summ"
    assert version == "v7"
    assert len(digest) == 64
    int(digest, 16)


def test_any_semantic_change_changes_key():
    base = _key(_items())
    changed_url = _items()
    changed_url[0].url = "https://a.example/other"
    changed_title = _items()
    changed_title[2].title = "Storm warning lifted"

    variants = [
        _key(changed_url),
        _key(changed_title),
        _key(_items(), lang="de"),
        _key(_items(), mode=SummaryMode.QUALITY),
        _key(_items(), style=SummaryStyle.RISKS),
        _key(_items(), max_items=5),
    ]
    assert base not in variants
    assert len(set(variants)) == len(variants)


def test_fields_outside_title_and_url_do_not_change_key():
    tweaked = _items()
    tweaked[1].source = "Somebody else"
    tweaked[1].published_at = "2024-06-06"
    assert _key(tweaked) == _key(_items())


def test_version_bump_isolates_keys():
    assert _key(_items(), version="7") != _key(_items(), version="8")
    assert _key(_items(), version="8").startswith("summ:v8:")


def test_empty_items_still_produce_deterministic_key():
    assert _key([]) == _key([])
    assert _key([]).startswith("summ:v7:")


def test_search_key_depends_on_provider():
    assert derive_search_cache_key("ai", "en", 10, "gnews") != derive_search_cache_key(
        "ai", "en", 10, "newsapi"
    )
    assert derive_search_cache_key("ai", "en", 10, "gnews").startswith("search:")
