"""Configuration helpers for the news digest service."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    openai_api_key: str | None = Field(None, alias="OPENAI_API_KEY")
    openai_model_fast: str = Field(
        "gpt-5-nano", description="Low-latency model for topic checks and per-article batches."
    )
    openai_model_quality: str = Field(
        "gpt-5-mini", description="Model used for quality-mode JSON digests."
    )
    model_max_tokens: int = Field(700, description="Completion budget per model call.")
    model_temperature: float = Field(0.2, description="Generation temperature.")
    model_timeout_seconds: float = Field(12.0, description="Timeout for the first model attempt.")
    model_retry_timeout_seconds: float = Field(
        8.0, description="Timeout for the parameter-compatibility retry."
    )

    summary_cache_version: str = Field(
        "7",
        alias="SUMM_V",
        description="Bump when the prompt or payload contract changes; old keys become unreachable.",
    )
    disable_cache: bool = Field(False, alias="SUMM_DEBUG_NOCACHE")
    summary_cache_ttl_seconds: int = 300
    search_cache_ttl_seconds: int = 120

    upstash_redis_rest_url: str | None = None
    upstash_redis_rest_token: str | None = None
    store_timeout_seconds: float = 3.0
    memory_store: bool = Field(
        False, description="Use a process-local store when Upstash is not configured."
    )

    rate_limit_max: int = 60
    rate_limit_window_seconds: int = 300

    news_provider: str = Field("gnews", description="'gnews', 'newsapi' or 'auto'.")
    gnews_api_key: str | None = None
    newsapi_key: str | None = None
    provider_timeout_seconds: float = 5.0
    freshness_hours: int = 48

    cors_allow_all: bool = True
    cors_allow_origins: str = Field("", description="Comma-separated origins, used when CORS_ALLOW_ALL is false.")
    cors_allow_credentials: bool = True

    internal_token: str | None = Field(
        None, description="Expected X-Internal-Token header; unset disables the check."
    )
    debug: bool = False
    log_level: str = "INFO"


def get_settings() -> Settings:
    """Return a fresh settings instance built from the environment."""
    return Settings()
