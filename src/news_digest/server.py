"""FastAPI service exposing search, digest summaries, per-article batches and topic checks."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, Callable, Dict, Optional

from fastapi import Body, Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .batch import summarize_batch
from .config import Settings, get_settings
from .errors import (
    ProviderError,
    RateLimitExceeded,
    SearchInputError,
    SummarizeInputError,
)
from .llm import ChatModel, build_model
from .logging_utils import setup_logging
from .models import BatchRequest, SearchRequest, SummarizeRequest
from .providers import NewsProviders
from .rate_limit import RateLimiter
from .search import search_news
from .store import KeyValueStore, build_store
from .summarizer import summarize_news
from .topics import validate_topic

log = logging.getLogger("news_digest.server")


class Unauthorized(Exception):
    pass


@asynccontextmanager
async def _lifespan(app: FastAPI):
    setup_logging(get_app_settings().log_level)
    yield


app = FastAPI(title="News Digest", lifespan=_lifespan)


def _add_cors(app: FastAPI, settings: Settings) -> None:
    """Open the digest API to the web client; an explicit origin list may carry cookies."""
    origins = [o.strip() for o in settings.cors_allow_origins.split(",") if o.strip()]
    if settings.cors_allow_all or not origins:
        origins = ["*"]
    # Browsers reject credentialed responses for a wildcard origin.
    credentials = settings.cors_allow_credentials and origins != ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=credentials,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Internal-Token"],
    )


_add_cors(app, get_settings())


# --- Dependencies ---------------------------------------------------------

@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


@lru_cache(maxsize=1)
def get_store() -> Optional[KeyValueStore]:
    return build_store(get_app_settings())


@lru_cache(maxsize=1)
def get_model() -> Optional[ChatModel]:
    return build_model(get_app_settings())


@lru_cache(maxsize=1)
def get_providers() -> NewsProviders:
    return NewsProviders(get_app_settings())


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for", "")
    first = forwarded.split(",")[0].strip()
    if first:
        return first
    if request.client and request.client.host:
        return request.client.host
    return "0.0.0.0"


def require_token(request: Request, settings: Settings = Depends(get_app_settings)) -> None:
    if not settings.internal_token:
        return
    if request.headers.get("x-internal-token") != settings.internal_token:
        raise Unauthorized()


def rate_limited(prefix: str) -> Callable[..., None]:
    def dependency(
        request: Request,
        settings: Settings = Depends(get_app_settings),
        store: Optional[KeyValueStore] = Depends(get_store),
    ) -> None:
        if store is None or settings.rate_limit_max <= 0:
            return
        limiter = RateLimiter(
            store,
            prefix=prefix,
            window_seconds=settings.rate_limit_window_seconds,
            max_hits=settings.rate_limit_max,
        )
        limiter.enforce(client_ip(request))

    return dependency


# --- Error mapping ----------------------------------------------------------

def _error(status_code: int, body: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body, headers=headers)


@app.exception_handler(Unauthorized)
async def _unauthorized(request: Request, exc: Unauthorized) -> JSONResponse:
    return _error(status.HTTP_401_UNAUTHORIZED, {"ok": False, "error": "Unauthorized"})


@app.exception_handler(RateLimitExceeded)
async def _rate_limit_exceeded(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return _error(
        status.HTTP_429_TOO_MANY_REQUESTS,
        {
            "ok": False,
            "error": "Too many requests. Please try again later.",
            "retryAfter": exc.retry_after,
        },
        headers={"Retry-After": str(exc.retry_after)},
    )


def _internal_error(exc: Exception, what: str) -> JSONResponse:
    log.exception("%s failed", what)
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        {"ok": False, "error": str(exc) or "Unknown error"},
    )


def _model_missing() -> JSONResponse:
    return _error(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        {"ok": False, "error": "OPENAI_API_KEY is required for this endpoint."},
    )


# --- Routes -------------------------------------------------------------------

@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post(
    "/summarize",
    dependencies=[Depends(require_token), Depends(rate_limited("rl:summarize"))],
)
def summarize(
    payload: Optional[Dict[str, Any]] = Body(None),
    settings: Settings = Depends(get_app_settings),
    store: Optional[KeyValueStore] = Depends(get_store),
    model: Optional[ChatModel] = Depends(get_model),
) -> JSONResponse:
    """Digest a list of items; model failures degrade to the extractive summary."""
    try:
        request = SummarizeRequest.from_payload(payload or {})
        outcome = summarize_news(request, settings=settings, store=store, model=model)
    except SummarizeInputError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, exc.to_body())
    except Exception as exc:
        return _internal_error(exc, "summarize")
    return JSONResponse(status_code=status.HTTP_200_OK, content=outcome.to_response())


@app.post(
    "/search",
    dependencies=[Depends(require_token), Depends(rate_limited("rl:search"))],
)
def search(
    payload: Optional[Dict[str, Any]] = Body(None),
    settings: Settings = Depends(get_app_settings),
    store: Optional[KeyValueStore] = Depends(get_store),
    providers: NewsProviders = Depends(get_providers),
) -> JSONResponse:
    try:
        request = SearchRequest.from_payload(payload or {})
        outcome = search_news(request, settings=settings, providers=providers, store=store)
    except SearchInputError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, exc.to_body())
    except ProviderError as exc:
        log.error("search failed: %s", exc)
        return _error(status.HTTP_502_BAD_GATEWAY, {"ok": False, "error": str(exc)})
    except Exception as exc:
        return _internal_error(exc, "search")
    return JSONResponse(status_code=status.HTTP_200_OK, content=outcome.to_response())


@app.post(
    "/summarize/articles",
    dependencies=[Depends(require_token), Depends(rate_limited("rl:summarize"))],
)
def summarize_articles(
    payload: Optional[Dict[str, Any]] = Body(None),
    model: Optional[ChatModel] = Depends(get_model),
) -> JSONResponse:
    """Summarize each article separately; per-article failures are reported inline."""
    request = BatchRequest.from_payload(payload or {})
    if not request.topic or not request.items:
        return _error(
            status.HTTP_400_BAD_REQUEST,
            {"ok": False, "error": "Provide 'topic' and at least one item with title and url."},
        )
    if model is None:
        return _model_missing()
    try:
        result = summarize_batch(
            request.topic, request.items, model, concurrency=request.concurrency
        )
    except Exception as exc:
        return _internal_error(exc, "summarize/articles")
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={
            "ok": True,
            "topic": request.topic,
            "model": result.model,
            "failed": len(result.failures),
            "articles": [item.to_wire() for item in result.items],
        },
    )


@app.post("/topics/validate", dependencies=[Depends(require_token)])
def topics_validate(
    payload: Optional[Dict[str, Any]] = Body(None),
    model: Optional[ChatModel] = Depends(get_model),
) -> JSONResponse:
    raw = (payload or {}).get("raw")
    if not isinstance(raw, str) or not raw.strip():
        return _error(status.HTTP_400_BAD_REQUEST, {"ok": False, "error": "Provide a non-empty 'raw' topic."})
    if model is None:
        return _model_missing()
    try:
        result = validate_topic(raw, model, model_name=model.fast_model)
    except ValueError as exc:
        log.warning("topic validator returned an invalid reply: %s", exc)
        return _error(status.HTTP_502_BAD_GATEWAY, {"ok": False, "error": str(exc)})
    except Exception as exc:
        return _internal_error(exc, "topics/validate")
    status_code = status.HTTP_200_OK if result.valid else status.HTTP_400_BAD_REQUEST
    return JSONResponse(status_code=status_code, content=result.to_wire())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "news_digest.server:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "false").lower() == "true",
    )
