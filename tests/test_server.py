import json

import pytest
from fastapi.testclient import TestClient

from news_digest.config import Settings
from news_digest.errors import ProviderError
from news_digest.models import NewsItem
from news_digest.providers import ProviderResult
from news_digest.server import app, get_app_settings, get_model, get_providers, get_store
from news_digest.store import InMemoryStore


class FakeModel:
    quality_model = "gpt-5-mini"
    fast_model = "gpt-5-nano"

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = 0

    def complete(self, system, user, *, model=None, json_mode=False):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.reply


class FakeProviders:
    preference = "gnews"

    def __init__(self, items=None, error=None):
        self.items = items or []
        self.error = error

    def search(self, query, lang, max_items):
        if self.error is not None:
            raise self.error
        return ProviderResult(provider="gnews", items=list(self.items))


def _items(count=3):
    return [
        {
            "title": f"Headline {i}",
            "url": f"https://news.example/{i}",
            "source": f"Source {i}",
            "publishedAt": f"2025-06-0{i}T08:00:00Z",
        }
        for i in range(1, count + 1)
    ]


@pytest.fixture
def configure():
    def _configure(store=None, model=None, providers=None, **settings_overrides):
        settings = Settings(_env_file=None, **settings_overrides)
        app.dependency_overrides[get_app_settings] = lambda: settings
        app.dependency_overrides[get_store] = lambda: store
        app.dependency_overrides[get_model] = lambda: model
        app.dependency_overrides[get_providers] = lambda: providers or FakeProviders()
        return TestClient(app)

    yield _configure
    app.dependency_overrides.clear()


def test_health(configure):
    client = configure()
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_cors_wildcard_disables_credentials():
    cors = next(m for m in app.user_middleware if m.cls.__name__ == "CORSMiddleware")
    assert cors.kwargs["allow_origins"] == ["*"]
    assert cors.kwargs["allow_credentials"] is False


def test_summarize_without_items_is_400(configure):
    client = configure()
    resp = client.post("/summarize", json={"items": []})
    assert resp.status_code == 400
    body = resp.json()
    assert body["ok"] is False
    assert "/search" in body["error"]
    assert body["example"]["items"]


def test_summarize_without_body_is_400(configure):
    resp = configure().post("/summarize")
    assert resp.status_code == 400


def test_summarize_with_unusable_items_is_400(configure):
    resp = configure().post("/summarize", json={"items": [{"title": "x", "url": "https://x"}]})
    assert resp.status_code == 400
    body = resp.json()
    assert "title, url, source, publishedAt" in body["error"]
    assert body["receivedCount"] == 1


def test_summarize_fast_mode(configure):
    client = configure(store=InMemoryStore())
    resp = client.post("/summarize", json={"items": _items(), "mode": "fast"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["cached"] is False
    assert body["count"] == 3
    assert body["summaryText"].startswith("Balanced summary (en) — 3 item(s):")
    assert "blocks" not in body

    again = client.post("/summarize", json={"items": list(reversed(_items())), "mode": "fast"})
    assert again.json()["cached"] is True


def test_summarize_quality_mode_failure_still_returns_200(configure):
    model = FakeModel(error=RuntimeError("upstream timeout"))
    resp = configure(model=model).post(
        "/summarize", json={"items": _items(), "mode": "quality", "summaryStyle": "key-points"}
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["summaryText"].startswith("Key points (en)")
    assert model.calls == 1


def test_summarize_quality_mode_blocks(configure):
    reply = json.dumps(
        {
            "header": "Brief",
            "blocks": [
                {"kind": "headline", "idx": 1, "title": "One", "url": "https://news.example/1", "source": "S"},
                {"kind": "headline", "idx": 2, "title": "Two", "url": "https://news.example/2"},
            ],
        }
    )
    resp = configure(model=FakeModel(reply=reply)).post(
        "/summarize", json={"items": _items(), "mode": "quality", "summaryStyle": "headline-first"}
    )
    body = resp.json()
    assert resp.status_code == 200
    assert [block["idx"] for block in body["blocks"]] == [1, 2]
    assert body["header"] == "Brief"
    assert "summaryText" not in body


def test_rate_limit_returns_429_with_retry_after(configure):
    client = configure(store=InMemoryStore(), rate_limit_max=2, rate_limit_window_seconds=300)
    for _ in range(2):
        assert client.post("/summarize", json={"items": _items()}).status_code == 200
    resp = client.post("/summarize", json={"items": _items()})
    assert resp.status_code == 429
    body = resp.json()
    assert body["ok"] is False
    assert 1 <= body["retryAfter"] <= 300
    assert resp.headers["Retry-After"] == str(body["retryAfter"])


def test_rate_limit_is_per_client_ip(configure):
    client = configure(store=InMemoryStore(), rate_limit_max=1)
    assert client.post("/summarize", json={"items": _items()}, headers={"X-Forwarded-For": "1.1.1.1"}).status_code == 200
    assert client.post("/summarize", json={"items": _items()}, headers={"X-Forwarded-For": "2.2.2.2, 10.0.0.1"}).status_code == 200
    assert client.post("/summarize", json={"items": _items()}, headers={"X-Forwarded-For": "1.1.1.1"}).status_code == 429


def test_internal_token_required_when_configured(configure):
    client = configure(internal_token="secret")
    assert client.post("/summarize", json={"items": _items()}).status_code == 401
    ok = client.post("/summarize", json={"items": _items()}, headers={"X-Internal-Token": "secret"})
    assert ok.status_code == 200


def test_search_returns_items(configure):
    items = [NewsItem(title="A", url="https://a", source="S", publishedAt="2025-06-01T00:00:00Z")]
    resp = configure(providers=FakeProviders(items=items)).post("/search", json={"q": "energy"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["provider"] == "gnews"
    assert body["items"][0]["url"] == "https://a"
    assert "tookMs" in body


def test_search_short_query_is_400(configure):
    resp = configure().post("/search", json={"q": "a"})
    assert resp.status_code == 400
    assert resp.json()["ok"] is False


def test_search_provider_failure_is_502(configure):
    resp = configure(providers=FakeProviders(error=ProviderError("All providers failed"))).post(
        "/search", json={"q": "energy"}
    )
    assert resp.status_code == 502
    assert "All providers failed" in resp.json()["error"]


def test_articles_endpoint(configure):
    reply = json.dumps({"summary": "Short", "sentiment": "negative", "entities": ["ACME"]})
    resp = configure(model=FakeModel(reply=reply)).post(
        "/summarize/articles", json={"topic": "energy", "items": _items(2)}
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["failed"] == 0
    assert body["model"] == "gpt-5-mini"
    assert [article["title"] for article in body["articles"]] == ["Headline 1", "Headline 2"]
    assert body["articles"][0]["sentiment"] == "negative"


def test_articles_endpoint_validation_and_missing_model(configure):
    assert configure().post("/summarize/articles", json={"topic": "energy"}).status_code == 400
    assert configure().post("/summarize/articles", json={"topic": "energy", "items": _items(1)}).status_code == 503


def test_topic_validation(configure):
    valid = configure(model=FakeModel(reply='{"valid": true, "topic": "golf"}')).post(
        "/topics/validate", json={"raw": "Golf"}
    )
    assert valid.status_code == 200
    assert valid.json() == {"valid": True, "topic": "golf"}

    rejected = configure(model=FakeModel(reply='{"valid": false, "topic": "stuff", "reason": "vague"}')).post(
        "/topics/validate", json={"raw": "stuff"}
    )
    assert rejected.status_code == 400
    assert rejected.json()["reason"] == "vague"

    broken = configure(model=FakeModel(reply="nope")).post("/topics/validate", json={"raw": "golf"})
    assert broken.status_code == 502

    assert configure(model=FakeModel(reply="{}")).post("/topics/validate", json={"raw": " "}).status_code == 400


def test_cors_explicit_origins_keep_credentials():
    from fastapi import FastAPI

    from news_digest.server import _add_cors

    local = FastAPI()
    settings = Settings(
        _env_file=None,
        cors_allow_all=False,
        cors_allow_origins="https://digest.example, https://admin.example",
    )
    _add_cors(local, settings)
    cors = next(m for m in local.user_middleware if m.cls.__name__ == "CORSMiddleware")
    assert cors.kwargs["allow_origins"] == ["https://digest.example", "https://admin.example"]
    assert cors.kwargs["allow_credentials"] is True
