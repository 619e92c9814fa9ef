"""Exceptions that map to distinct HTTP outcomes."""

from __future__ import annotations

from typing import Any, Dict, Optional


class SummarizeInputError(ValueError):
    """The caller sent no items, or none that survive normalization."""

    def __init__(
        self,
        error: str,
        *,
        hint: Optional[str] = None,
        example: Any = None,
        received_count: Optional[int] = None,
    ) -> None:
        super().__init__(error)
        self.error = error
        self.hint = hint
        self.example = example
        self.received_count = received_count

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"ok": False, "error": self.error}
        if self.hint:
            body["hint"] = self.hint
        if self.received_count is not None:
            body["receivedCount"] = self.received_count
        if self.example is not None:
            body["example"] = self.example
        return body


class SearchInputError(ValueError):
    """The search query is missing or too short."""

    def __init__(self, error: str, *, example: Any = None) -> None:
        super().__init__(error)
        self.error = error
        self.example = example

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"ok": False, "error": self.error}
        if self.example is not None:
            body["example"] = self.example
        return body


class StoreError(RuntimeError):
    """The key-value store answered with an HTTP error or an unexpected shape."""


class ProviderError(RuntimeError):
    """A news provider failed or is not configured."""


class RateLimitExceeded(Exception):
    """The caller used up the current fixed window."""

    def __init__(self, retry_after: int, limit: int) -> None:
        super().__init__("Too many requests")
        self.retry_after = retry_after
        self.limit = limit
