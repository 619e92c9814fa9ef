"""Chat-completions wrapper with a one-shot parameter-compatibility retry."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

from openai import OpenAI

from .config import Settings

log = logging.getLogger("news_digest.llm")

# Matches the API error raised when a model rejects max_tokens or max_completion_tokens.
_UNSUPPORTED_PARAM = re.compile(r"unsupported_parameter|max_tokens|max_completion_tokens", re.I)


def build_client(api_key: Optional[str] = None) -> OpenAI:
    """Create an OpenAI client; separated for easier testing."""
    return OpenAI(api_key=api_key, max_retries=0)


def _require_api_key(settings: Settings) -> str:
    if not settings.openai_api_key:
        raise RuntimeError(
            "OPENAI_API_KEY is required. Set it in the environment or .env file."
        )
    return settings.openai_api_key


def uses_max_completion_tokens(model: str) -> bool:
    """Newer nano/mini models take ``max_completion_tokens`` instead of ``max_tokens``."""
    name = model.lower()
    return "nano" in name or "mini" in name


def _content_or_raise(response: Any) -> str:
    choices = getattr(response, "choices", None) or []
    message = getattr(choices[0], "message", None) if choices else None
    content = getattr(message, "content", None)
    if isinstance(content, str) and content.strip():
        return content.strip()
    raise RuntimeError("Model returned empty content")


class ChatModel:
    """
    Thin, bounded wrapper around ``chat.completions``.

    Each attempt has its own timeout; an expired timeout aborts the request and
    raises. A rejected token-limit parameter is retried exactly once with the
    other convention.
    """

    def __init__(self, settings: Settings, client: Optional[OpenAI] = None) -> None:
        self._settings = settings
        self._client = client or build_client(_require_api_key(settings))

    @property
    def quality_model(self) -> str:
        return self._settings.openai_model_quality

    @property
    def fast_model(self) -> str:
        return self._settings.openai_model_fast

    def _call_once(
        self,
        model: str,
        system: str,
        user: str,
        *,
        use_completion_tokens: bool,
        timeout: float,
        json_mode: bool,
    ) -> str:
        request_kwargs: Dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }
        token_param = "max_completion_tokens" if use_completion_tokens else "max_tokens"
        request_kwargs[token_param] = self._settings.model_max_tokens
        # gpt-5 family rejects a non-default temperature; omit it for compatibility.
        if not model.lower().startswith("gpt-5"):
            request_kwargs["temperature"] = self._settings.model_temperature
        if json_mode:
            request_kwargs["response_format"] = {"type": "json_object"}

        client = self._client.with_options(timeout=timeout, max_retries=0)
        response = client.chat.completions.create(**request_kwargs)
        return _content_or_raise(response)

    def complete(
        self,
        system: str,
        user: str,
        *,
        model: Optional[str] = None,
        json_mode: bool = False,
    ) -> str:
        model_name = model or self.quality_model
        prefer_completion = uses_max_completion_tokens(model_name)
        log.debug("Calling %s (%s chars of prompt)", model_name, len(system) + len(user))
        try:
            return self._call_once(
                model_name,
                system,
                user,
                use_completion_tokens=prefer_completion,
                timeout=self._settings.model_timeout_seconds,
                json_mode=json_mode,
            )
        except Exception as exc:
            if not _UNSUPPORTED_PARAM.search(str(exc)):
                raise
            log.debug("Retrying %s with the other token parameter: %s", model_name, exc)
        return self._call_once(
            model_name,
            system,
            user,
            use_completion_tokens=not prefer_completion,
            timeout=self._settings.model_retry_timeout_seconds,
            json_mode=json_mode,
        )


def build_model(settings: Settings) -> Optional[ChatModel]:
    """Return a ChatModel, or None when no API key is configured."""
    if not settings.openai_api_key:
        return None
    return ChatModel(settings)
